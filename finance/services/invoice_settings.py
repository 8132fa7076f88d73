# finance/services/invoice_settings.py

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from core.models import AuditLog
from core.services.audit import log_event
from finance.forms import InvoiceSettingsForm
from finance.models import InvoiceSettings
from finance.services.numbering import (
    InvoiceNumber,
    InvoiceNumberingConfig,
    preview_invoice_number,
)

logger = logging.getLogger(__name__)


def _preview_for(settings: InvoiceSettings) -> Optional[InvoiceNumber]:
    if not settings.is_active:
        return None
    return preview_invoice_number(InvoiceNumberingConfig.from_settings(settings))


def get_invoice_settings() -> tuple[InvoiceSettings, Optional[InvoiceNumber]]:
    """
    Fetch the settings row (created with defaults on first access)
    plus a non-incrementing preview of the current number.
    """
    settings = InvoiceSettings.get_solo()
    preview = _preview_for(settings)
    if preview is not None:
        # the preview may have rolled the financial year forward
        settings.refresh_from_db()
    return settings, preview


def update_invoice_settings(
    data: Mapping[str, Any],
    *,
    actor: Any = None,
) -> tuple[InvoiceSettings, Optional[InvoiceNumber]]:
    """
    Validate and upsert the settings row.

    Raises ValidationError (with a field → messages dict) before anything
    is written when the input is invalid.
    """
    existing = InvoiceSettings.objects.filter(pk=InvoiceSettings.singleton_instance_id).first()
    form = InvoiceSettingsForm(data=data, instance=existing)
    if not form.is_valid():
        raise ValidationError({
            field: [error["message"] for error in errors]
            for field, errors in form.errors.get_json_data().items()
        })

    with transaction.atomic():
        settings = form.save()
        log_event(
            action=AuditLog.Action.UPDATE if existing else AuditLog.Action.CREATE,
            message="Invoice settings updated",
            actor=actor,
            target=settings,
            extra={
                "changed": sorted(form.changed_data),
                "invoice_prefix": settings.invoice_prefix,
                "invoice_format": settings.invoice_format,
                "financial_year_start": settings.financial_year_start.isoformat(),
                "financial_year_end": settings.financial_year_end.isoformat(),
            },
        )

    logger.info(
        "Invoice settings saved: prefix=%s format=%s active=%s",
        settings.invoice_prefix,
        settings.invoice_format,
        settings.is_active,
    )

    preview = _preview_for(settings)
    if preview is not None:
        settings.refresh_from_db()
    return settings, preview


def serialize_settings(settings: InvoiceSettings, preview: Optional[InvoiceNumber]) -> dict[str, Any]:
    return {
        "id": settings.pk,
        "invoice_prefix": settings.invoice_prefix,
        "invoice_sequence_length": settings.invoice_sequence_length,
        "financial_year_start": settings.financial_year_start.isoformat(),
        "financial_year_end": settings.financial_year_end.isoformat(),
        "auto_financial_year": settings.auto_financial_year,
        "manual_financial_year": settings.manual_financial_year,
        "invoice_format": settings.invoice_format,
        "is_active": settings.is_active,
        "updated_at": settings.updated_at.isoformat() if settings.updated_at else None,
        "current_sequence_no": preview.current_sequence_no if preview else 1,
    }
