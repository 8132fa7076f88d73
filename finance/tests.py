# finance/tests.py

import json
import threading
from datetime import date
from io import BytesIO, StringIO
from unittest import mock, skipIf

from django.core.exceptions import ValidationError
from django.core.management import CommandError, call_command
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from django.utils import timezone
from openpyxl import load_workbook

from core.models import AuditLog
from finance.forms import InvoiceSettingsForm
from finance.managers import InvoiceSequenceManager
from finance.models import (
    InvoiceSequence,
    InvoiceSettings,
    default_financial_year_end,
    default_financial_year_start,
    financial_year_label,
    shift_year,
)
from finance.services import numbering
from finance.services.invoice_settings import (
    get_invoice_settings,
    serialize_settings,
    update_invoice_settings,
)
from finance.services.numbering import (
    InvoiceNumberingConfig,
    SequenceConflictError,
    advance_financial_year_if_expired,
    format_sequence,
    generate_invoice_number,
    preview_invoice_number,
    render_invoice_number,
    resolve_financial_year,
    roll_forward_window,
)

TODAY = date(2024, 11, 15)


def current_financial_year_label():
    """Label of the default April-March window that contains today."""
    return financial_year_label(default_financial_year_start())


class InvoiceSettingsTestCase(TestCase):
    """
    Shared setup: active settings for FY 2024-25 with the default format.
    """

    def setUp(self):
        super().setUp()
        self.settings = InvoiceSettings.objects.create(
            invoice_prefix="INV",
            invoice_sequence_length=4,
            financial_year_start=date(2024, 4, 1),
            financial_year_end=date(2025, 3, 31),
            auto_financial_year=True,
            invoice_format="{PREFIX}-{FY}-{SEQ}",
            is_active=True,
        )

    def config(self, **overrides):
        for field, value in overrides.items():
            setattr(self.settings, field, value)
        self.settings.save()
        return InvoiceNumberingConfig.from_settings(self.settings)


# ============================================================
# Formatting
# ============================================================

class FormattingTests(TestCase):
    def test_sequence_is_zero_padded_to_width(self):
        for width in range(1, 11):
            for value in (1, 7, 10 ** width - 1):
                sequence = format_sequence(value, width)
                self.assertEqual(len(sequence), width)
                self.assertEqual(int(sequence), value)

    def test_sequence_wider_than_padding_is_kept(self):
        self.assertEqual(format_sequence(12345, 4), "12345")

    def test_bracket_placeholders(self):
        number = render_invoice_number(
            "[PREFIX]/[FY]/[SEQ]",
            prefix="INV",
            financial_year="2024-25",
            sequence="0007",
        )
        self.assertEqual(number, "INV/2024-25/0007")

    def test_placeholders_are_case_insensitive(self):
        number = render_invoice_number(
            "{prefix}-{Fy}-[seq]",
            prefix="INV",
            financial_year="2024-25",
            sequence="0007",
        )
        self.assertEqual(number, "INV-2024-25-0007")

    def test_repeated_placeholders_are_all_replaced(self):
        number = render_invoice_number(
            "{SEQ}-{PREFIX}-{SEQ}",
            prefix="GRC",
            financial_year="2024-25",
            sequence="01",
        )
        self.assertEqual(number, "01-GRC-01")

    def test_values_are_inserted_literally(self):
        number = render_invoice_number(
            "{PREFIX}-{SEQ}",
            prefix=r"A\1",
            financial_year="2024-25",
            sequence="0001",
        )
        self.assertEqual(number, r"A\1-0001")


# ============================================================
# Financial year
# ============================================================

class FinancialYearTests(InvoiceSettingsTestCase):
    def test_label_uses_start_year_and_next_two_digits(self):
        self.assertEqual(financial_year_label(date(2024, 4, 1)), "2024-25")
        self.assertEqual(financial_year_label(date(1999, 4, 1)), "1999-00")

    def test_shift_year_clamps_leap_day(self):
        self.assertEqual(shift_year(date(2024, 2, 29)), date(2025, 2, 28))
        self.assertEqual(shift_year(date(2023, 3, 31)), date(2024, 3, 31))

    def test_roll_forward_window_two_steps(self):
        start, end = roll_forward_window(date(2023, 4, 1), date(2024, 3, 31), date(2025, 6, 1))
        self.assertEqual(start, date(2025, 4, 1))
        self.assertEqual(end, date(2026, 3, 31))

    def test_roll_forward_window_keeps_current_window(self):
        start, end = roll_forward_window(date(2024, 4, 1), date(2025, 3, 31), date(2025, 3, 31))
        self.assertEqual((start, end), (date(2024, 4, 1), date(2025, 3, 31)))

    def test_rollover_persists_window_and_resolves_label(self):
        config = self.config(
            financial_year_start=date(2023, 4, 1),
            financial_year_end=date(2024, 3, 31),
        )

        result = generate_invoice_number(config, today=date(2025, 6, 1))

        self.settings.refresh_from_db()
        self.assertEqual(self.settings.financial_year_start, date(2025, 4, 1))
        self.assertEqual(self.settings.financial_year_end, date(2026, 3, 31))
        self.assertEqual(result.financial_year, "2025-26")
        self.assertEqual(result.invoice_number, "INV-2025-26-0001")

    def test_rollover_is_audited(self):
        config = self.config(
            financial_year_start=date(2023, 4, 1),
            financial_year_end=date(2024, 3, 31),
        )

        advance_financial_year_if_expired(config, today=date(2025, 6, 1))

        log = AuditLog.objects.get()
        self.assertEqual(log.action, AuditLog.Action.UPDATE)
        self.assertEqual(log.extra["financial_year"], "2025-26")
        self.assertEqual(log.target, self.settings)

    def test_audit_failure_does_not_block_issue(self):
        self.config(
            financial_year_start=date(2023, 4, 1),
            financial_year_end=date(2024, 3, 31),
        )

        with mock.patch.object(
            AuditLog,
            "_save_table",
            side_effect=DatabaseError("audit table unavailable"),
        ):
            with self.assertLogs("core.domain.dispatcher", level="ERROR"):
                result = generate_invoice_number(today=date(2025, 6, 1))

        self.assertEqual(result.invoice_number, "INV-2025-26-0001")
        self.settings.refresh_from_db()
        self.assertEqual(self.settings.financial_year_start, date(2025, 4, 1))
        self.assertEqual(InvoiceSequence.objects.get().current_sequence_no, 2)
        self.assertFalse(AuditLog.objects.exists())

    def test_no_rollover_when_window_is_current(self):
        config = self.config()
        same = advance_financial_year_if_expired(config, today=TODAY)

        self.assertIs(same, config)
        self.assertFalse(AuditLog.objects.exists())

    def test_manual_label_takes_precedence(self):
        config = self.config(
            auto_financial_year=False,
            manual_financial_year="FY24",
            financial_year_start=date(2019, 4, 1),
            financial_year_end=date(2020, 3, 31),
        )

        self.assertEqual(resolve_financial_year(config), "FY24")
        result = generate_invoice_number(config, today=TODAY)
        self.assertEqual(result.invoice_number, "INV-FY24-0001")

    def test_manual_mode_without_label_uses_stored_dates_without_rollover(self):
        config = self.config(
            auto_financial_year=False,
            manual_financial_year=None,
            financial_year_start=date(2019, 4, 1),
            financial_year_end=date(2020, 3, 31),
        )

        result = generate_invoice_number(config, today=TODAY)

        self.assertEqual(result.financial_year, "2019-20")
        self.settings.refresh_from_db()
        self.assertEqual(self.settings.financial_year_start, date(2019, 4, 1))


# ============================================================
# Generator
# ============================================================

class GenerateInvoiceNumberTests(InvoiceSettingsTestCase):
    def test_first_invoice_of_new_year(self):
        result = generate_invoice_number(today=TODAY)

        self.assertEqual(result.invoice_number, "INV-2024-25-0001")
        self.assertEqual(result.current_sequence_no, 1)
        self.assertEqual(result.next_sequence_no, 2)
        self.assertEqual(
            InvoiceSequence.objects.get(financial_year="2024-25").current_sequence_no,
            2,
        )

    def test_consumed_numbers_are_strictly_increasing(self):
        consumed = [
            generate_invoice_number(today=TODAY).current_sequence_no
            for _ in range(5)
        ]

        self.assertEqual(consumed, [1, 2, 3, 4, 5])
        self.assertEqual(
            InvoiceSequence.objects.get(financial_year="2024-25").current_sequence_no,
            6,
        )

    def test_increment_hands_out_stored_value(self):
        InvoiceSequence.objects.create(financial_year="2024-25", current_sequence_no=42)

        result = generate_invoice_number(today=TODAY)

        self.assertEqual(result.current_sequence_no, 42)
        self.assertEqual(result.next_sequence_no, 43)
        self.assertEqual(result.sequence, "0042")

    def test_preview_is_idempotent_and_never_creates_a_row(self):
        first = preview_invoice_number(today=TODAY)
        second = preview_invoice_number(today=TODAY)
        third = generate_invoice_number(increment=False, today=TODAY)

        self.assertEqual(first.invoice_number, "INV-2024-25-0001")
        self.assertEqual(first.invoice_number, second.invoice_number)
        self.assertEqual(second.invoice_number, third.invoice_number)
        self.assertEqual(first.next_sequence_no, 2)
        self.assertFalse(InvoiceSequence.objects.exists())

    def test_preview_does_not_mutate_existing_row(self):
        seq = InvoiceSequence.objects.create(financial_year="2024-25", current_sequence_no=8)
        updated_at = seq.updated_at

        for _ in range(3):
            preview = preview_invoice_number(today=TODAY)
            self.assertEqual(preview.invoice_number, "INV-2024-25-0008")
            self.assertEqual(preview.next_sequence_no, 9)

        seq.refresh_from_db()
        self.assertEqual(seq.current_sequence_no, 8)
        self.assertEqual(seq.updated_at, updated_at)

    def test_preview_after_issue_shows_next_number(self):
        generate_invoice_number(today=TODAY)
        generate_invoice_number(today=TODAY)

        preview = preview_invoice_number(today=TODAY)

        self.assertEqual(preview.invoice_number, "INV-2024-25-0003")

    def test_inactive_settings_return_none_without_mutation(self):
        self.settings.is_active = False
        self.settings.financial_year_start = date(2020, 4, 1)
        self.settings.financial_year_end = date(2021, 3, 31)
        self.settings.save()

        self.assertIsNone(generate_invoice_number(today=TODAY))
        self.assertIsNone(generate_invoice_number(increment=False, today=TODAY))

        self.settings.refresh_from_db()
        self.assertEqual(self.settings.financial_year_start, date(2020, 4, 1))
        self.assertFalse(InvoiceSequence.objects.exists())

    def test_inactive_config_passed_explicitly_returns_none(self):
        config = self.config(is_active=False)
        self.assertIsNone(generate_invoice_number(config, today=TODAY))

    def test_missing_settings_return_none(self):
        InvoiceSettings.objects.all().delete()

        self.assertIsNone(InvoiceNumberingConfig.load())
        self.assertIsNone(generate_invoice_number(today=TODAY))
        self.assertFalse(InvoiceSettings.objects.exists())

    def test_sequences_are_kept_per_financial_year(self):
        generate_invoice_number(today=TODAY)
        generate_invoice_number(today=TODAY)

        result = generate_invoice_number(today=date(2025, 5, 2))

        self.assertEqual(result.invoice_number, "INV-2025-26-0001")
        self.assertEqual(
            InvoiceSequence.objects.get(financial_year="2024-25").current_sequence_no,
            3,
        )

    def test_result_echoes_prefix_and_format(self):
        config = self.config(invoice_prefix="GRC", invoice_format="[PREFIX]/[FY]/[SEQ]", invoice_sequence_length=6)

        result = generate_invoice_number(config, today=TODAY)

        self.assertEqual(result.invoice_number, "GRC/2024-25/000001")
        self.assertEqual(
            result.as_dict()["settings"],
            {"prefix": "GRC", "format": "[PREFIX]/[FY]/[SEQ]"},
        )

    def test_failed_issue_rolls_back_financial_year_advance(self):
        self.config(
            financial_year_start=date(2023, 4, 1),
            financial_year_end=date(2024, 3, 31),
        )

        with mock.patch.object(
            numbering,
            "acquire_sequence_number",
            side_effect=SequenceConflictError("boom"),
        ):
            with self.assertRaises(SequenceConflictError):
                generate_invoice_number(today=date(2025, 6, 1))

        self.settings.refresh_from_db()
        self.assertEqual(self.settings.financial_year_start, date(2023, 4, 1))
        self.assertEqual(self.settings.financial_year_end, date(2024, 3, 31))


class SequenceCreationRaceTests(InvoiceSettingsTestCase):
    """
    A concurrent request creating the financial year row between our
    lookup and our create must not break numbering.
    """

    def test_unique_violation_falls_back_to_increment(self):
        InvoiceSequence.objects.create(financial_year="2024-25", current_sequence_no=5)
        real_increment = InvoiceSequenceManager.increment
        calls = []

        def racing_increment(manager, financial_year):
            calls.append(financial_year)
            if len(calls) == 1:
                # the row "did not exist yet" when we first looked
                return None
            return real_increment(manager, financial_year)

        with mock.patch.object(
            InvoiceSequenceManager,
            "increment",
            autospec=True,
            side_effect=racing_increment,
        ):
            result = generate_invoice_number(today=TODAY)

        self.assertEqual(len(calls), 2)
        self.assertEqual(result.current_sequence_no, 5)
        self.assertEqual(result.next_sequence_no, 6)
        self.assertEqual(InvoiceSequence.objects.count(), 1)
        self.assertEqual(InvoiceSequence.objects.get().current_sequence_no, 6)

    def test_row_inserted_between_increment_and_create(self):
        real_increment = InvoiceSequenceManager.increment
        calls = []

        def increment_then_competing_insert(manager, financial_year):
            calls.append(financial_year)
            updated = real_increment(manager, financial_year)
            if len(calls) == 1:
                # another request issues the first number of the year right now
                InvoiceSequence.objects.create(financial_year=financial_year, current_sequence_no=2)
            return updated

        with mock.patch.object(
            InvoiceSequenceManager,
            "increment",
            autospec=True,
            side_effect=increment_then_competing_insert,
        ):
            result = generate_invoice_number(today=TODAY)

        self.assertEqual(len(calls), 2)
        self.assertEqual(result.invoice_number, "INV-2024-25-0002")
        self.assertEqual(result.next_sequence_no, 3)
        self.assertEqual(InvoiceSequence.objects.get().current_sequence_no, 3)

    def test_retries_are_bounded(self):
        InvoiceSequence.objects.create(financial_year="2024-25", current_sequence_no=5)

        with mock.patch.object(
            InvoiceSequenceManager,
            "increment",
            autospec=True,
            return_value=None,
        ):
            with self.assertRaises(SequenceConflictError):
                generate_invoice_number(today=TODAY)

        self.assertEqual(InvoiceSequence.objects.get().current_sequence_no, 5)


@skipIf(
    connection.vendor == "sqlite",
    "needs a database with concurrent writers (set DATABASE_ENGINE=django.db.backends.postgresql)",
)
class ConcurrentIssueTests(TransactionTestCase):
    def setUp(self):
        InvoiceSettings.objects.create(
            invoice_prefix="INV",
            invoice_sequence_length=4,
            financial_year_start=date(2024, 4, 1),
            financial_year_end=date(2025, 3, 31),
            auto_financial_year=True,
        )

    def test_parallel_first_invoices_get_distinct_numbers(self):
        from django.db import connections

        workers = 8
        barrier = threading.Barrier(workers)
        consumed = []
        errors = []

        def issue():
            try:
                barrier.wait()
                consumed.append(generate_invoice_number(today=TODAY).current_sequence_no)
            except Exception as exc:  # collected and asserted below
                errors.append(exc)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=issue) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(sorted(consumed), list(range(1, workers + 1)))
        self.assertEqual(
            InvoiceSequence.objects.get(financial_year="2024-25").current_sequence_no,
            workers + 1,
        )


# ============================================================
# Settings validation and service
# ============================================================

def settings_payload(**overrides):
    data = {
        "invoice_prefix": " grc ",
        "invoice_sequence_length": 5,
        "financial_year_start": "2024-04-01",
        "financial_year_end": "2025-03-31",
        "auto_financial_year": True,
        "manual_financial_year": "",
        "invoice_format": "[PREFIX]/[FY]/[SEQ]",
        "is_active": True,
    }
    data.update(overrides)
    return data


class InvoiceSettingsFormTests(TestCase):
    def test_prefix_is_trimmed_and_upper_cased(self):
        form = InvoiceSettingsForm(data=settings_payload())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["invoice_prefix"], "GRC")

    def test_blank_prefix_rejected(self):
        form = InvoiceSettingsForm(data=settings_payload(invoice_prefix="   "))
        self.assertFalse(form.is_valid())
        self.assertIn("invoice_prefix", form.errors)

    def test_sequence_length_bounds(self):
        for value in (0, 11, -1, "abc"):
            form = InvoiceSettingsForm(data=settings_payload(invoice_sequence_length=value))
            self.assertFalse(form.is_valid(), value)
            self.assertIn("invoice_sequence_length", form.errors)

        for value in (1, 10):
            form = InvoiceSettingsForm(data=settings_payload(invoice_sequence_length=value))
            self.assertTrue(form.is_valid(), form.errors)

    def test_dates_required(self):
        form = InvoiceSettingsForm(data=settings_payload(financial_year_start=""))
        self.assertFalse(form.is_valid())
        self.assertEqual(
            form.errors["financial_year_start"],
            ["Financial year start and end dates are required."],
        )

    def test_unparseable_dates_rejected(self):
        for value in ("not-a-date", "2024-13-45"):
            form = InvoiceSettingsForm(data=settings_payload(financial_year_end=value))
            self.assertFalse(form.is_valid(), value)
            self.assertEqual(
                form.errors["financial_year_end"],
                ["Invalid date format for financial year dates."],
            )

    def test_iso_datetime_accepted(self):
        form = InvoiceSettingsForm(
            data=settings_payload(
                financial_year_start="2024-04-01T00:00:00",
                financial_year_end="2025-03-31T00:00:00",
            )
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["financial_year_start"], date(2024, 4, 1))

    def test_end_must_follow_start(self):
        form = InvoiceSettingsForm(
            data=settings_payload(financial_year_end="2024-03-31")
        )
        self.assertFalse(form.is_valid())
        self.assertIn("financial_year_end", form.errors)

    def test_blank_format_and_manual_year_fall_back(self):
        form = InvoiceSettingsForm(
            data=settings_payload(invoice_format="", manual_financial_year="  ")
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data["invoice_format"], "{PREFIX}-{FY}-{SEQ}")
        self.assertIsNone(form.cleaned_data["manual_financial_year"])

    def test_string_booleans(self):
        form = InvoiceSettingsForm(
            data=settings_payload(auto_financial_year="false", is_active="true")
        )
        self.assertTrue(form.is_valid(), form.errors)
        self.assertFalse(form.cleaned_data["auto_financial_year"])
        self.assertTrue(form.cleaned_data["is_active"])


class InvoiceSettingsServiceTests(TestCase):
    def test_get_creates_defaults(self):
        settings, preview = get_invoice_settings()

        self.assertEqual(InvoiceSettings.objects.count(), 1)
        self.assertEqual(settings.invoice_prefix, "INV")
        self.assertEqual(settings.invoice_sequence_length, 4)
        self.assertEqual(settings.invoice_format, "{PREFIX}-{FY}-{SEQ}")
        self.assertTrue(settings.auto_financial_year)
        self.assertTrue(settings.is_active)
        self.assertEqual(settings.financial_year_start.month, 4)
        self.assertEqual(settings.financial_year_start.day, 1)
        self.assertEqual(
            settings.financial_year_end,
            date(settings.financial_year_start.year + 1, 3, 31),
        )
        self.assertEqual(preview.current_sequence_no, 1)
        self.assertFalse(InvoiceSequence.objects.exists())

    def test_default_window_helpers(self):
        start = default_financial_year_start()
        end = default_financial_year_end()
        self.assertEqual((start.month, start.day), (4, 1))
        self.assertEqual(end, date(start.year + 1, 3, 31))
        self.assertTrue(start <= timezone.localdate() <= end)

    def test_update_creates_then_updates_single_row(self):
        settings, _ = update_invoice_settings(settings_payload())
        self.assertEqual(settings.invoice_prefix, "GRC")

        settings, _ = update_invoice_settings(settings_payload(invoice_prefix="inv"))

        self.assertEqual(InvoiceSettings.objects.count(), 1)
        self.assertEqual(InvoiceSettings.get_solo().invoice_prefix, "INV")
        self.assertEqual(
            list(
                AuditLog.objects.filter(message="Invoice settings updated")
                .order_by("created_at", "pk")
                .values_list("action", flat=True)
            ),
            [AuditLog.Action.CREATE, AuditLog.Action.UPDATE],
        )

    def test_invalid_update_writes_nothing(self):
        with self.assertRaises(ValidationError) as ctx:
            update_invoice_settings(settings_payload(invoice_sequence_length=11))

        self.assertIn("invoice_sequence_length", ctx.exception.message_dict)
        self.assertFalse(InvoiceSettings.objects.exists())
        self.assertFalse(AuditLog.objects.exists())

    def test_serialized_settings_include_preview_number(self):
        settings, preview = update_invoice_settings(
            settings_payload(auto_financial_year=False, manual_financial_year="FY24")
        )
        InvoiceSequence.objects.create(financial_year="FY24", current_sequence_no=12)
        settings, preview = get_invoice_settings()

        data = serialize_settings(settings, preview)

        self.assertEqual(data["current_sequence_no"], 12)
        self.assertEqual(data["manual_financial_year"], "FY24")
        self.assertEqual(data["financial_year_start"], "2024-04-01")

    def test_inactive_settings_serialize_with_default_number(self):
        settings, preview = update_invoice_settings(settings_payload(is_active=False))

        self.assertIsNone(preview)
        self.assertEqual(serialize_settings(settings, preview)["current_sequence_no"], 1)


# ============================================================
# API
# ============================================================

class InvoiceSettingsApiTests(TestCase):
    def put_json(self, url, payload):
        return self.client.put(url, data=json.dumps(payload), content_type="application/json")

    def test_get_settings_creates_defaults(self):
        response = self.client.get(reverse("finance:invoice_settings"))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["invoice_prefix"], "INV")
        self.assertEqual(body["data"]["current_sequence_no"], 1)

    def test_put_settings(self):
        response = self.put_json(reverse("finance:invoice_settings"), settings_payload())

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Invoice settings updated successfully")
        self.assertEqual(body["data"]["invoice_prefix"], "GRC")
        self.assertEqual(body["data"]["invoice_sequence_length"], 5)

    def test_form_post_settings(self):
        response = self.client.post(
            reverse("finance:invoice_settings"),
            data=settings_payload(auto_financial_year="true", is_active="true"),
        )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(InvoiceSettings.get_solo().is_active)

    def test_put_invalid_settings(self):
        response = self.put_json(
            reverse("finance:invoice_settings"),
            settings_payload(invoice_prefix=""),
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "Invoice prefix is required.")
        self.assertIn("invoice_prefix", body["errors"])

    def test_malformed_json(self):
        response = self.client.put(
            reverse("finance:invoice_settings"),
            data="{not json",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(InvoiceSettings.objects.exists())

    def test_method_not_allowed(self):
        response = self.client.delete(reverse("finance:invoice_settings"))
        self.assertEqual(response.status_code, 405)


class InvoiceNumberApiTests(TestCase):
    def setUp(self):
        # a settings row for the financial year that contains today
        self.settings, _ = get_invoice_settings()
        self.label = current_financial_year_label()

    def test_get_previews_without_consuming(self):
        url = reverse("finance:invoice_number")

        first = self.client.get(url).json()
        second = self.client.get(url).json()

        self.assertEqual(first, second)
        self.assertEqual(
            first["data"],
            {"invoice_number": f"INV-{self.label}-0001", "next_sequence_no": 2},
        )
        self.assertFalse(InvoiceSequence.objects.exists())

    def test_post_issues_numbers(self):
        url = reverse("finance:invoice_number")

        first = self.client.post(url).json()["data"]
        second = self.client.post(url).json()["data"]

        self.assertEqual(first["invoice_number"], f"INV-{self.label}-0001")
        self.assertEqual(first["financial_year"], self.label)
        self.assertEqual(second["invoice_number"], f"INV-{self.label}-0002")
        self.assertEqual(second["current_sequence_no"], 2)
        self.assertEqual(second["next_sequence_no"], 3)
        self.assertEqual(second["sequence"], "0002")
        self.assertEqual(second["settings"], {"prefix": "INV", "format": "{PREFIX}-{FY}-{SEQ}"})

    def test_not_configured(self):
        self.settings.is_active = False
        self.settings.save()

        response = self.client.post(reverse("finance:invoice_number"))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {"success": False, "error": "Invoice settings not configured or inactive"},
        )
        self.assertFalse(InvoiceSequence.objects.exists())

    def test_storage_failure_is_reported(self):
        with mock.patch(
            "finance.api.generate_invoice_number",
            side_effect=DatabaseError("db down"),
        ):
            response = self.client.get(reverse("finance:invoice_number"))

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Failed to generate invoice number")

    def test_sequence_list_and_export(self):
        self.client.post(reverse("finance:invoice_number"))
        self.client.post(reverse("finance:invoice_number"))

        listing = self.client.get(reverse("finance:invoice_sequence_list")).json()
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["results"][0]["financial_year"], self.label)
        self.assertEqual(listing["results"][0]["current_sequence_no"], 3)
        self.assertEqual(listing["results"][0]["last_issued_no"], 2)

        response = self.client.get(reverse("finance:invoice_sequence_export"))
        self.assertEqual(response.status_code, 200)
        self.assertIn("invoice_sequences.xlsx", response["Content-Disposition"])

        ws = load_workbook(BytesIO(response.content)).active
        rows = list(ws.iter_rows(values_only=True))
        self.assertEqual(rows[0][:3], ("financial_year", "next_sequence_no", "last_issued_no"))
        self.assertEqual(rows[1][:3], (self.label, 3, 2))


# ============================================================
# Management commands
# ============================================================

class ManagementCommandTests(TestCase):
    def test_seed_invoice_settings(self):
        out = StringIO()
        call_command("seed_invoice_settings", stdout=out)
        call_command("seed_invoice_settings", stdout=out)

        self.assertEqual(InvoiceSettings.objects.count(), 1)
        self.assertIn("Created invoice settings", out.getvalue())
        self.assertIn("already exist", out.getvalue())

    def test_invoice_number_preview_and_issue(self):
        call_command("seed_invoice_settings", stdout=StringIO())
        label = current_financial_year_label()

        out = StringIO()
        call_command("invoice_number", stdout=out)
        self.assertIn(f"Current: INV-{label}-0001", out.getvalue())
        self.assertFalse(InvoiceSequence.objects.exists())

        out = StringIO()
        call_command("invoice_number", "--issue", stdout=out)
        self.assertIn(f"Issued: INV-{label}-0001", out.getvalue())
        self.assertEqual(InvoiceSequence.objects.get().current_sequence_no, 2)

    def test_invoice_number_not_configured(self):
        with self.assertRaises(CommandError):
            call_command("invoice_number", stdout=StringIO())
