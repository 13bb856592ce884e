import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from django.db import DatabaseError, transaction

from apps.audit.models import AuditLog

logger = logging.getLogger(__name__)


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class AuditChange:
    """Before/after snapshot of the fields an action touched."""

    old: Optional[dict[str, Any]] = None
    new: Optional[dict[str, Any]] = None
    fields: tuple = field(default=())

    @classmethod
    def created(cls, snapshot):
        return cls(old=None, new=_plain(snapshot), fields=tuple(snapshot))

    @classmethod
    def deleted(cls, snapshot):
        return cls(old=_plain(snapshot), new=None, fields=tuple(snapshot))

    @classmethod
    def between(cls, before, after):
        changed = tuple(k for k in after if before.get(k) != after.get(k))
        return cls(
            old=_plain({k: before.get(k) for k in changed}),
            new=_plain({k: after.get(k) for k in changed}),
            fields=changed,
        )


def record_audit(*, actor, action, entity_type, entity_id, entity_name="", change=None):
    """
    Write an audit entry without ever failing the caller.

    The insert runs in its own savepoint, so a failed write rolls back only
    itself and the surrounding ledger transaction keeps going.
    """
    change = change or AuditChange()
    try:
        with transaction.atomic():
            AuditLog.objects.create(
                actor=actor if getattr(actor, "is_authenticated", False) else None,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                entity_name=entity_name or "",
                old_value=change.old,
                new_value=change.new,
            )
    except DatabaseError:
        logger.exception("Failed to write audit log for %s %s (%s)", entity_type, entity_id, action)
