# finance/handlers.py
"""
Domain event handlers for invoice numbering.

Imported from FinanceConfig.ready() so the handlers register at startup.
"""
import logging

from core.domain.dispatcher import register_handler
from core.models import AuditLog
from core.services.audit import log_event
from finance.domain import FinancialYearAdvanced, InvoiceNumberIssued

logger = logging.getLogger(__name__)


@register_handler(FinancialYearAdvanced)
def audit_financial_year_advanced(event: FinancialYearAdvanced) -> None:
    from finance.models import InvoiceSettings  # local import to avoid circular imports

    log_event(
        action=AuditLog.Action.UPDATE,
        message=f"Invoice financial year advanced to {event.financial_year}",
        target=InvoiceSettings.objects.filter(pk=InvoiceSettings.singleton_instance_id).first(),
        extra={
            "previous_start": event.previous_start.isoformat(),
            "previous_end": event.previous_end.isoformat(),
            "start": event.start.isoformat(),
            "end": event.end.isoformat(),
            "financial_year": event.financial_year,
        },
    )


@register_handler(InvoiceNumberIssued)
def log_invoice_number_issued(event: InvoiceNumberIssued) -> None:
    logger.info(
        "Invoice number issued: %s (financial_year=%s, seq=%s)",
        event.invoice_number,
        event.financial_year,
        event.sequence_no,
    )
