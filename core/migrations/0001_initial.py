import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                ("action", models.CharField(choices=[("create", "Create"), ("update", "Update"), ("delete", "Delete"), ("other", "Other")], db_index=True, max_length=32, verbose_name="Action")),
                ("target_object_id", models.CharField(blank=True, max_length=64, null=True, verbose_name="Target id")),
                ("message", models.TextField(blank=True, verbose_name="Message")),
                ("extra", models.JSONField(blank=True, default=dict, verbose_name="Extra data")),
                ("actor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="audit_logs", to=settings.AUTH_USER_MODEL, verbose_name="User")),
                ("target_content_type", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="audit_logs", to="contenttypes.contenttype", verbose_name="Target type")),
            ],
            options={
                "verbose_name": "Audit log",
                "verbose_name_plural": "Audit logs",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["target_content_type", "target_object_id", "created_at"], name="auditlog_target_idx"),
                    models.Index(fields=["action", "created_at"], name="auditlog_action_idx"),
                ],
            },
        ),
    ]
