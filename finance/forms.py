# finance/forms.py

from datetime import datetime

from django import forms
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django.utils.translation import gettext_lazy as _

from .models import DEFAULT_INVOICE_FORMAT, InvoiceSettings


class FinancialYearDateField(forms.DateField):
    """
    Accepts "2024-04-01" as well as ISO datetimes such as
    "2024-04-01T00:00:00.000Z" (the date part is kept).
    """

    default_error_messages = {
        "invalid": _("Invalid date format for financial year dates."),
    }

    def to_python(self, value):
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return None
            try:
                parsed = parse_datetime(raw) or parse_date(raw)
            except ValueError:
                parsed = None
            if parsed is None:
                raise forms.ValidationError(self.error_messages["invalid"], code="invalid")
            if isinstance(parsed, datetime):
                if timezone.is_aware(parsed):
                    parsed = timezone.localtime(parsed)
                return parsed.date()
            return parsed
        return super().to_python(value)


class InvoiceSettingsForm(forms.ModelForm):
    invoice_sequence_length = forms.IntegerField(
        min_value=1,
        max_value=10,
        error_messages={
            "required": _("Invoice sequence length must be between 1 and 10."),
            "invalid": _("Invoice sequence length must be between 1 and 10."),
            "min_value": _("Invoice sequence length must be between 1 and 10."),
            "max_value": _("Invoice sequence length must be between 1 and 10."),
        },
    )
    financial_year_start = FinancialYearDateField(
        error_messages={"required": _("Financial year start and end dates are required.")},
    )
    financial_year_end = FinancialYearDateField(
        error_messages={"required": _("Financial year start and end dates are required.")},
    )

    class Meta:
        model = InvoiceSettings
        fields = [
            "invoice_prefix",
            "invoice_sequence_length",
            "financial_year_start",
            "financial_year_end",
            "auto_financial_year",
            "manual_financial_year",
            "invoice_format",
            "is_active",
        ]
        error_messages = {
            "invoice_prefix": {
                "required": _("Invoice prefix is required."),
            },
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["invoice_format"].required = False

    def clean_invoice_prefix(self):
        prefix = (self.cleaned_data.get("invoice_prefix") or "").strip()
        if not prefix:
            raise forms.ValidationError(_("Invoice prefix is required."), code="required")
        return prefix.upper()

    def clean_manual_financial_year(self):
        value = (self.cleaned_data.get("manual_financial_year") or "").strip()
        return value or None

    def clean_invoice_format(self):
        value = (self.cleaned_data.get("invoice_format") or "").strip()
        return value or DEFAULT_INVOICE_FORMAT

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("financial_year_start")
        end = cleaned.get("financial_year_end")

        if start and end and end <= start:
            self.add_error(
                "financial_year_end",
                _("Financial year end must be after the financial year start."),
            )

        return cleaned
