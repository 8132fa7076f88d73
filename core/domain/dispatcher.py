# core/domain/dispatcher.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Type, TypeVar

from django.db import transaction

from .events import DomainEvent

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=DomainEvent)
Handler = Callable[[EventT], None]


class DomainEventDispatcher:
    """
    In-process, synchronous domain event dispatcher.

    Events are emitted from inside the numbering service's transaction
    (financial year rollover, invoice number issued). Each handler runs in
    its own savepoint: a handler that fails is rolled back and logged, and
    the caller's transaction stays usable.

    Usage:

        from core.domain.dispatcher import register_handler, emit

        @register_handler(FinancialYearAdvanced)
        def audit_rollover(event: FinancialYearAdvanced) -> None:
            ...

        emit(FinancialYearAdvanced(...))
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def register_handler(self, event_type: Type[EventT]):
        def decorator(func: Handler) -> Handler:
            if func not in self._handlers[event_type]:
                self._handlers[event_type].append(func)
            logger.debug(
                "Registered domain event handler %s for %s",
                func.__name__,
                event_type.__name__,
            )
            return func

        return decorator

    def emit(self, event: DomainEvent) -> None:
        """
        Run every handler registered for type(event), each inside
        transaction.atomic(). A failing handler is logged and does not
        stop the others.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type, [])

        if not handlers:
            logger.debug("No handlers registered for event %s", event_type.__name__)
            return

        for handler in handlers:
            try:
                with transaction.atomic():
                    handler(event)  # type: ignore[arg-type]
            except Exception:
                logger.exception(
                    "Error while handling event %s in handler %s",
                    event_type.__name__,
                    handler.__name__,
                )


# Global dispatcher for the project
dispatcher = DomainEventDispatcher()

register_handler = dispatcher.register_handler
emit = dispatcher.emit
