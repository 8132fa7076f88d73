import django.core.validators
import django.utils.timezone
from django.db import migrations, models

import finance.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="InvoiceSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_prefix", models.CharField(default=finance.models.default_invoice_prefix, max_length=20, verbose_name="Invoice prefix")),
                ("invoice_sequence_length", models.PositiveSmallIntegerField(default=finance.models.default_sequence_length, help_text="Number of digits, e.g. 4 means 0001.", validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(10)], verbose_name="Sequence length")),
                ("financial_year_start", models.DateField(default=finance.models.default_financial_year_start, verbose_name="Financial year start")),
                ("financial_year_end", models.DateField(default=finance.models.default_financial_year_end, verbose_name="Financial year end")),
                ("auto_financial_year", models.BooleanField(default=True, help_text="Roll the financial year forward when the current one ends.", verbose_name="Auto financial year")),
                ("manual_financial_year", models.CharField(blank=True, help_text="Used for {FY} when auto financial year is off, e.g. FY24.", max_length=20, null=True, verbose_name="Manual financial year")),
                ("invoice_format", models.CharField(default=finance.models.default_invoice_format, help_text="Placeholders: {PREFIX}, {FY}, {SEQ} (or [PREFIX], [FY], [SEQ]).", max_length=100, verbose_name="Invoice number format")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Last updated")),
            ],
            options={
                "verbose_name": "Invoice settings",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("financial_year_start__lte", models.F("financial_year_end"))),
                        name="invoicesettings_fy_start_before_end",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False, verbose_name="Created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated at")),
                ("financial_year", models.CharField(max_length=20, unique=True, verbose_name="Financial year")),
                ("current_sequence_no", models.PositiveIntegerField(default=1, verbose_name="Next sequence number")),
            ],
            options={
                "verbose_name": "Invoice sequence",
                "verbose_name_plural": "Invoice sequences",
                "ordering": ("-financial_year",),
            },
        ),
    ]
