# finance/models.py

from __future__ import annotations

import calendar
from datetime import date, timedelta

from django.conf import settings as django_settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import CheckConstraint, F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from solo.models import SingletonModel

from core.models import TimeStampedModel
from finance.managers import InvoiceSequenceManager

DEFAULT_INVOICE_FORMAT = "{PREFIX}-{FY}-{SEQ}"


# ============================================================
# Financial year helpers
# ============================================================
def shift_year(value: date, years: int = 1) -> date:
    """
    Move a date by whole calendar years.
    Feb 29 lands on Feb 28 when the target year is not a leap year.
    """
    target = value.year + years
    if value.month == 2 and value.day == 29 and not calendar.isleap(target):
        return value.replace(year=target, day=28)
    return value.replace(year=target)


def financial_year_label(start: date) -> str:
    """
    "2024-25" style label: start year + last two digits of the following year.
    """
    return f"{start.year}-{str(start.year + 1)[-2:]}"


def default_financial_year_start() -> date:
    """
    Start of the financial year that contains today (April 1 by default).
    """
    today = timezone.localdate()
    month = getattr(django_settings, "INVOICE_FY_START_MONTH", 4)
    day = getattr(django_settings, "INVOICE_FY_START_DAY", 1)
    start = date(today.year, month, day)
    if today < start:
        start = shift_year(start, -1)
    return start


def default_financial_year_end() -> date:
    start = default_financial_year_start()
    return shift_year(start) - timedelta(days=1)


def default_invoice_prefix() -> str:
    return getattr(django_settings, "INVOICE_DEFAULT_PREFIX", "INV")


def default_invoice_format() -> str:
    return getattr(django_settings, "INVOICE_DEFAULT_FORMAT", DEFAULT_INVOICE_FORMAT)


def default_sequence_length() -> int:
    return getattr(django_settings, "INVOICE_DEFAULT_SEQUENCE_LENGTH", 4)


# ============================================================
# Invoice Settings (singleton)
# ============================================================
class InvoiceSettings(SingletonModel):
    """
    Global invoice numbering settings.

    - invoice_prefix: tag rendered in place of {PREFIX}
    - invoice_sequence_length: zero-pad width for {SEQ}
    - financial_year_start / financial_year_end: the active period
    - auto_financial_year: advance the period automatically once it lapses
    - manual_financial_year: label used for {FY} when auto is off
    - invoice_format: e.g. "{PREFIX}-{FY}-{SEQ}" or "[PREFIX]/[FY]/[SEQ]"
    """

    invoice_prefix = models.CharField(
        max_length=20,
        default=default_invoice_prefix,
        verbose_name=_("Invoice prefix"),
    )
    invoice_sequence_length = models.PositiveSmallIntegerField(
        default=default_sequence_length,
        validators=[MinValueValidator(1), MaxValueValidator(10)],
        verbose_name=_("Sequence length"),
        help_text=_("Number of digits, e.g. 4 means 0001."),
    )
    financial_year_start = models.DateField(
        default=default_financial_year_start,
        verbose_name=_("Financial year start"),
    )
    financial_year_end = models.DateField(
        default=default_financial_year_end,
        verbose_name=_("Financial year end"),
    )
    auto_financial_year = models.BooleanField(
        default=True,
        verbose_name=_("Auto financial year"),
        help_text=_("Roll the financial year forward when the current one ends."),
    )
    manual_financial_year = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        verbose_name=_("Manual financial year"),
        help_text=_("Used for {FY} when auto financial year is off, e.g. FY24."),
    )
    invoice_format = models.CharField(
        max_length=100,
        default=default_invoice_format,
        verbose_name=_("Invoice number format"),
        help_text=_("Placeholders: {PREFIX}, {FY}, {SEQ} (or [PREFIX], [FY], [SEQ])."),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Active"),
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Last updated"),
    )

    class Meta:
        verbose_name = _("Invoice settings")
        constraints = [
            CheckConstraint(
                condition=Q(financial_year_start__lte=F("financial_year_end")),
                name="invoicesettings_fy_start_before_end",
            ),
        ]

    def __str__(self) -> str:
        return str(_("Invoice settings"))

    def financial_year_label(self) -> str:
        return financial_year_label(self.financial_year_start)


# ============================================================
# Invoice Sequence (one row per financial year)
# ============================================================
class InvoiceSequence(TimeStampedModel):
    """
    Counter for one financial year label.

    current_sequence_no is the next number that will be handed out:
    - current_sequence_no: 8 → the next issued invoice gets 8
    """

    financial_year = models.CharField(
        max_length=20,
        unique=True,
        verbose_name=_("Financial year"),
    )
    current_sequence_no = models.PositiveIntegerField(
        default=1,
        verbose_name=_("Next sequence number"),
    )

    objects = InvoiceSequenceManager()

    class Meta:
        verbose_name = _("Invoice sequence")
        verbose_name_plural = _("Invoice sequences")
        ordering = ("-financial_year",)

    def __str__(self) -> str:
        return f"{self.financial_year} → {self.current_sequence_no}"

    @property
    def last_issued_no(self) -> int:
        return max(self.current_sequence_no - 1, 0)
