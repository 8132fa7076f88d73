from django.contrib import admin
from solo.admin import SingletonModelAdmin

from .models import InvoiceSequence, InvoiceSettings


@admin.register(InvoiceSettings)
class InvoiceSettingsAdmin(SingletonModelAdmin):
    fieldsets = (
        (None, {"fields": ("invoice_prefix", "invoice_sequence_length", "invoice_format", "is_active")}),
        ("Financial year", {
            "fields": (
                "financial_year_start",
                "financial_year_end",
                "auto_financial_year",
                "manual_financial_year",
            ),
        }),
    )


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ("financial_year", "current_sequence_no", "updated_at")
    search_fields = ("financial_year",)
    readonly_fields = ("financial_year", "created_at", "updated_at")
