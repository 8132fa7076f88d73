from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "actor", "message")
    list_filter = ("action",)
    search_fields = ("message",)
    readonly_fields = (
        "created_at",
        "action",
        "actor",
        "target_content_type",
        "target_object_id",
        "message",
        "extra",
    )
