# core/tests.py

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.db import transaction
from django.test import TestCase

from core.domain.dispatcher import DomainEventDispatcher
from core.domain.events import DomainEvent
from core.models import AuditLog
from core.services.audit import log_event
from finance.models import InvoiceSettings

User = get_user_model()


@dataclass(frozen=True)
class SampleEvent(DomainEvent):
    value: int


class AuditLogServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="admin", password="pass123")
        self.settings = InvoiceSettings.get_solo()

    def test_log_event_with_actor_and_target(self):
        log = log_event(
            action=AuditLog.Action.UPDATE,
            message="Invoice settings updated",
            actor=self.user,
            target=self.settings,
            extra={"changed": ["invoice_prefix"]},
        )

        self.assertEqual(log.action, "update")
        self.assertEqual(log.actor, self.user)
        self.assertEqual(log.target, self.settings)
        self.assertEqual(log.extra, {"changed": ["invoice_prefix"]})

    def test_anonymous_actor_is_not_stored(self):
        log = log_event(action="create", actor=AnonymousUser())
        self.assertIsNone(log.actor)
        self.assertIsNone(log.target_object_id)

    def test_invalid_action_rejected(self):
        with self.assertRaises(ValueError):
            log_event(action="explode")
        self.assertFalse(AuditLog.objects.exists())


class DomainEventDispatcherTests(TestCase):
    def setUp(self):
        self.dispatcher = DomainEventDispatcher()

    def test_handlers_receive_event(self):
        received = []

        @self.dispatcher.register_handler(SampleEvent)
        def handle(event):
            received.append(event.value)

        self.dispatcher.emit(SampleEvent(value=3))

        self.assertEqual(received, [3])

    def test_failing_handler_does_not_stop_others(self):
        received = []

        @self.dispatcher.register_handler(SampleEvent)
        def broken(event):
            raise RuntimeError("boom")

        @self.dispatcher.register_handler(SampleEvent)
        def working(event):
            received.append(event.value)

        with self.assertLogs("core.domain.dispatcher", level="ERROR"):
            self.dispatcher.emit(SampleEvent(value=7))

        self.assertEqual(received, [7])

    def test_emit_without_handlers_is_a_noop(self):
        self.dispatcher.emit(SampleEvent(value=1))

    def test_failed_handler_is_rolled_back_and_transaction_stays_usable(self):
        @self.dispatcher.register_handler(SampleEvent)
        def half_written(event):
            log_event(action=AuditLog.Action.OTHER, message="half written")
            raise RuntimeError("boom")

        with transaction.atomic():
            with self.assertLogs("core.domain.dispatcher", level="ERROR"):
                self.dispatcher.emit(SampleEvent(value=1))
            log_event(action=AuditLog.Action.OTHER, message="after emit")

        self.assertEqual(
            list(AuditLog.objects.values_list("message", flat=True)),
            ["after emit"],
        )
