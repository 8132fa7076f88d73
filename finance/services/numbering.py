# finance/services/numbering.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.domain.dispatcher import emit
from finance.domain import FinancialYearAdvanced, InvoiceNumberIssued
from finance.models import (
    InvoiceSequence,
    InvoiceSettings,
    financial_year_label,
    shift_year,
)

logger = logging.getLogger(__name__)

MAX_SEQUENCE_RETRIES = 3

_PLACEHOLDERS = {
    name: re.compile(rf"\{{{name}\}}|\[{name}\]", re.IGNORECASE)
    for name in ("PREFIX", "FY", "SEQ")
}


class SequenceConflictError(RuntimeError):
    """
    The sequence row for a financial year could neither be created nor incremented.
    """


@dataclass(frozen=True)
class InvoiceNumberingConfig:
    """
    Snapshot of InvoiceSettings, loaded once per request and passed
    explicitly into the generator.
    """
    settings_id: int
    prefix: str
    sequence_length: int
    financial_year_start: date
    financial_year_end: date
    auto_financial_year: bool
    manual_financial_year: Optional[str]
    invoice_format: str
    is_active: bool

    @classmethod
    def from_settings(cls, settings: InvoiceSettings) -> "InvoiceNumberingConfig":
        return cls(
            settings_id=settings.pk,
            prefix=settings.invoice_prefix,
            sequence_length=settings.invoice_sequence_length,
            financial_year_start=settings.financial_year_start,
            financial_year_end=settings.financial_year_end,
            auto_financial_year=settings.auto_financial_year,
            manual_financial_year=settings.manual_financial_year or None,
            invoice_format=settings.invoice_format,
            is_active=settings.is_active,
        )

    @classmethod
    def load(cls) -> Optional["InvoiceNumberingConfig"]:
        """
        Read the settings row without creating it.
        None means invoicing is not configured (missing or inactive row).
        """
        settings = InvoiceSettings.objects.filter(
            pk=InvoiceSettings.singleton_instance_id,
        ).first()
        if settings is None or not settings.is_active:
            return None
        return cls.from_settings(settings)


@dataclass(frozen=True)
class InvoiceNumber:
    invoice_number: str
    financial_year: str
    sequence: str
    current_sequence_no: int
    next_sequence_no: int
    prefix: str
    format: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "invoice_number": self.invoice_number,
            "financial_year": self.financial_year,
            "sequence": self.sequence,
            "current_sequence_no": self.current_sequence_no,
            "next_sequence_no": self.next_sequence_no,
            "settings": {
                "prefix": self.prefix,
                "format": self.format,
            },
        }


# ============================================================
# Financial year resolution
# ============================================================

def roll_forward_window(start: date, end: date, today: date) -> tuple[date, date]:
    """
    Advance start/end one calendar year at a time until today <= end.
    """
    while today > end:
        start = shift_year(start)
        end = shift_year(end)
    return start, end


def advance_financial_year_if_expired(
    config: InvoiceNumberingConfig,
    *,
    today: Optional[date] = None,
) -> InvoiceNumberingConfig:
    """
    Persist a rolled-forward financial year window when auto mode is on
    and the stored window has ended. Returns the config to use from here on.
    """
    if not config.auto_financial_year:
        return config

    today = today or timezone.localdate()
    if today <= config.financial_year_end:
        return config

    start, end = roll_forward_window(
        config.financial_year_start,
        config.financial_year_end,
        today,
    )
    InvoiceSettings.objects.filter(pk=config.settings_id).update(
        financial_year_start=start,
        financial_year_end=end,
        updated_at=timezone.now(),
    )
    label = financial_year_label(start)
    logger.info(
        "Invoice financial year advanced from %s..%s to %s..%s (%s)",
        config.financial_year_start,
        config.financial_year_end,
        start,
        end,
        label,
    )
    emit(
        FinancialYearAdvanced(
            previous_start=config.financial_year_start,
            previous_end=config.financial_year_end,
            start=start,
            end=end,
            financial_year=label,
        )
    )
    return replace(config, financial_year_start=start, financial_year_end=end)


def resolve_financial_year(config: InvoiceNumberingConfig) -> str:
    if not config.auto_financial_year and config.manual_financial_year:
        return config.manual_financial_year
    return financial_year_label(config.financial_year_start)


# ============================================================
# Formatting
# ============================================================

def format_sequence(value: int, width: int) -> str:
    return str(value).zfill(width)


def render_invoice_number(template: str, *, prefix: str, financial_year: str, sequence: str) -> str:
    """
    Substitute {PREFIX}/{FY}/{SEQ} (or [PREFIX]/[FY]/[SEQ]) in any letter case.
    """
    values = {"PREFIX": prefix, "FY": financial_year, "SEQ": sequence}
    number = template
    for name, pattern in _PLACEHOLDERS.items():
        # callable replacement: values are inserted literally
        number = pattern.sub(lambda _match, value=values[name]: value, number)
    return number


# ============================================================
# Sequence counter
# ============================================================

def peek_sequence_number(financial_year: str) -> tuple[int, int]:
    """
    Read-only view of the counter: (number that would be shown, the one after).
    Never creates a row.
    """
    current = (
        InvoiceSequence.objects.for_financial_year(financial_year)
        .values_list("current_sequence_no", flat=True)
        .first()
    )
    if current is None:
        current = 1
    return current, current + 1


def acquire_sequence_number(financial_year: str) -> tuple[int, int]:
    """
    Consume one number for the financial year: (consumed, next).

    The stored current_sequence_no is always the next number to hand out;
    each call takes the value it held just before its own increment.
    """
    with transaction.atomic():
        for attempt in range(1, MAX_SEQUENCE_RETRIES + 1):
            updated = InvoiceSequence.objects.increment(financial_year)
            if updated is not None:
                return updated - 1, updated

            try:
                with transaction.atomic():
                    InvoiceSequence.objects.create(
                        financial_year=financial_year,
                        current_sequence_no=2,
                    )
            except IntegrityError:
                # a concurrent request created the row first; increment it instead
                logger.warning(
                    "Invoice sequence for %s created concurrently, retrying (attempt %d)",
                    financial_year,
                    attempt,
                )
                continue

            logger.info("Started invoice sequence for financial year %s", financial_year)
            return 1, 2

    raise SequenceConflictError(
        f"Could not acquire an invoice sequence number for {financial_year} "
        f"after {MAX_SEQUENCE_RETRIES} attempts"
    )


# ============================================================
# Public API
# ============================================================

def generate_invoice_number(
    config: Optional[InvoiceNumberingConfig] = None,
    *,
    increment: bool = True,
    today: Optional[date] = None,
) -> Optional[InvoiceNumber]:
    """
    Build the next invoice number.

    Usage:
        result = generate_invoice_number()                 # issue a number
        preview = generate_invoice_number(increment=False) # display only

    Returns None when invoice settings are missing or inactive.
    The financial year rollover and the sequence step share one transaction;
    calling this inside an outer transaction.atomic() joins that transaction.
    """
    if config is None:
        config = InvoiceNumberingConfig.load()
    if config is None or not config.is_active:
        return None

    with transaction.atomic():
        config = advance_financial_year_if_expired(config, today=today)
        financial_year = resolve_financial_year(config)

        if increment:
            sequence_no, next_sequence_no = acquire_sequence_number(financial_year)
        else:
            sequence_no, next_sequence_no = peek_sequence_number(financial_year)

        sequence = format_sequence(sequence_no, config.sequence_length)
        invoice_number = render_invoice_number(
            config.invoice_format,
            prefix=config.prefix,
            financial_year=financial_year,
            sequence=sequence,
        )

        if increment:
            emit(
                InvoiceNumberIssued(
                    invoice_number=invoice_number,
                    financial_year=financial_year,
                    sequence_no=sequence_no,
                )
            )

    return InvoiceNumber(
        invoice_number=invoice_number,
        financial_year=financial_year,
        sequence=sequence,
        current_sequence_no=sequence_no,
        next_sequence_no=next_sequence_no,
        prefix=config.prefix,
        format=config.invoice_format,
    )


def preview_invoice_number(
    config: Optional[InvoiceNumberingConfig] = None,
    *,
    today: Optional[date] = None,
) -> Optional[InvoiceNumber]:
    return generate_invoice_number(config, increment=False, today=today)
