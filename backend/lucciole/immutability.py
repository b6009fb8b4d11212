# Overview: ORM-level append-only enforcement for the Transaction Log.

"""
The Transaction Log is the sole input to reporting, so a row, once flushed,
must never change.

SQLAlchemy fires before_update/before_delete on the mapper before any SQL is
sent; the listeners below refuse both for LogEntry and abort the flush.

Bulk Query.update()/Query.delete() and raw SQL bypass mapper events. Service
code never issues those against `logs`.
"""

from flask import current_app, has_app_context
from sqlalchemy import event

from .models import LogEntry


class ImmutabilityViolationError(Exception):
    """Attempted to modify or delete an append-only record."""

    def __init__(self, entity_type: str, entity_id, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Immutability violation on {entity_type} {entity_id}: {reason}")


def _blocked(operation: str, target: LogEntry, reason: str):
    if has_app_context():
        current_app.logger.error(
            "immutability violation blocked: %s on LogEntry %s", operation, target.id
        )
    raise ImmutabilityViolationError("LogEntry", target.id, reason)


def _check_log_entry_update(mapper, connection, target):
    _blocked("UPDATE", target, "Transaction log entries are immutable")


def _check_log_entry_delete(mapper, connection, target):
    _blocked("DELETE", target, "Transaction log entries cannot be deleted")


_registered = False


def register_immutability_listeners() -> None:
    """Idempotent; create_app may run more than once per process (tests)."""
    global _registered
    if _registered:
        return
    event.listen(LogEntry, "before_update", _check_log_entry_update)
    event.listen(LogEntry, "before_delete", _check_log_entry_delete)
    _registered = True
