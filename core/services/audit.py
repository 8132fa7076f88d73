# core/services/audit.py

from __future__ import annotations

from typing import Any, Mapping, Optional

from django.contrib.contenttypes.models import ContentType

from core.models import AuditLog


def log_event(
    *,
    action: str | AuditLog.Action,
    message: str = "",
    actor: Any = None,
    target: Optional[Any] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    """
    Create a single audit log entry.

    Two kinds of entries are written today:

        # a back-office user saved the invoice settings
        log_event(action=AuditLog.Action.UPDATE, message="Invoice settings updated",
                  actor=request.user, target=settings, extra={"changed": [...]})

        # the numbering service rolled the financial year forward (system actor)
        log_event(action=AuditLog.Action.UPDATE,
                  message="Invoice financial year advanced to 2025-26",
                  target=settings, extra={"previous_start": ..., "start": ...})

    Called inside the caller's transaction; when it runs from a domain event
    handler the dispatcher wraps it in a savepoint of its own.

    Parameters
    ----------
    action:
        One of AuditLog.Action.* (or its string value).

    message:
        Human-readable description of what happened.

    actor:
        The user who performed the action. Only stored when
        user.is_authenticated is True; system actions pass None.

    target:
        Optional model instance the event relates to (InvoiceSettings, ...),
        stored through the generic foreign key.

    extra:
        Optional JSON-serializable mapping with structured details.
    """

    if isinstance(action, AuditLog.Action):
        action_value = action.value
    else:
        action_value = str(action)

    valid_actions = {choice[0] for choice in AuditLog.Action.choices}
    if action_value not in valid_actions:
        raise ValueError(
            f"Invalid audit action '{action_value}'. "
            f"Allowed values: {sorted(valid_actions)}"
        )

    data: dict[str, Any] = {
        "action": action_value,
        "message": message or "",
        "extra": dict(extra) if extra is not None else {},
    }

    if actor is not None and getattr(actor, "is_authenticated", False):
        data["actor"] = actor

    if target is not None:
        obj_id = getattr(target, "pk", None)
        if obj_id is not None:
            data["target_content_type"] = ContentType.objects.get_for_model(
                target, for_concrete_model=True
            )
            data["target_object_id"] = str(obj_id)

    return AuditLog.objects.create(**data)
