"""
Audit trail for catalog and identity changes.

Services report every meaningful state change and every authentication
attempt to an audit port with a single ``record(event_type, message)``
method. The port is fire-and-forget: ``SafeAuditLog`` wraps whatever
implementation is injected so that a broken audit sink never fails or
rolls back the operation being audited.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import List, Optional, Protocol


class AuditEvent(str, Enum):
    BOOK_ADDED = "BOOK_ADDED"
    BOOK_UPDATED = "BOOK_UPDATED"
    BOOK_DELETED = "BOOK_DELETED"
    COPIES_ADDED = "COPIES_ADDED"
    COPY_LENT = "COPY_LENT"
    COPY_RETURNED = "COPY_RETURNED"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    AUTH_SUCCEEDED = "AUTH_SUCCEEDED"
    AUTH_FAILED = "AUTH_FAILED"
    OPERATION_FAILED = "OPERATION_FAILED"


class AuditLog(Protocol):
    def record(self, event_type: str, message: str) -> None:
        ...


@dataclass
class AuditRecord:
    event_type: str
    message: str
    recorded_at: datetime = field(default_factory=datetime.utcnow)


class LoggingAuditLog:
    """Writes audit events to the ``bibliotheca.audit`` logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("bibliotheca.audit")

    def record(self, event_type: str, message: str) -> None:
        self.logger.info("%s %s", _event_name(event_type), message)


class MemoryAuditLog:
    """Append-only in-process audit trail."""

    def __init__(self) -> None:
        self._records: List[AuditRecord] = []
        self._lock = Lock()

    def record(self, event_type: str, message: str) -> None:
        with self._lock:
            self._records.append(AuditRecord(_event_name(event_type), message))

    @property
    def records(self) -> List[AuditRecord]:
        with self._lock:
            return list(self._records)

    def of_type(self, event_type: str) -> List[AuditRecord]:
        name = _event_name(event_type)
        return [r for r in self.records if r.event_type == name]


class SafeAuditLog:
    """Suppresses failures of the wrapped audit port; operators see them in the log."""

    def __init__(self, inner: AuditLog) -> None:
        self.inner = inner
        self.logger = logging.getLogger(__name__)

    def record(self, event_type: str, message: str) -> None:
        try:
            self.inner.record(_event_name(event_type), message)
        except Exception:
            self.logger.warning(
                "audit sink failed for %s", _event_name(event_type), exc_info=True
            )


def _event_name(event_type: str) -> str:
    return event_type.value if isinstance(event_type, AuditEvent) else str(event_type)
