# finance/domain.py
from dataclasses import dataclass
from datetime import date

from core.domain.events import DomainEvent


@dataclass(frozen=True)
class FinancialYearAdvanced(DomainEvent):
    """
    Domain event: the invoice financial year window was rolled forward.
    """
    previous_start: date
    previous_end: date
    start: date
    end: date
    financial_year: str


@dataclass(frozen=True)
class InvoiceNumberIssued(DomainEvent):
    """
    Domain event: a sequence number was consumed for an invoice.
    """
    invoice_number: str
    financial_year: str
    sequence_no: int
