"""
Audit Logging for holonguard.

Records security-relevant events for later review:
- Single access decisions (allowed/denied)
- Operation permission checks (submit events, modify schema)
- Document registrations
- Permission matrix changes

Collection filtering never writes to the audit trail, so the trail
cannot be used to learn how many items a filter removed.

Supports two backends:
- In-memory (development/testing)
- JSON Lines file
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from holonguard.models import AccessDecision, ClassificationLevel, Document, UserContext


logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events."""
    ACCESS_ALLOWED = "access_allowed"
    ACCESS_DENIED = "access_denied"
    OPERATION_ALLOWED = "operation_allowed"
    OPERATION_DENIED = "operation_denied"
    DOCUMENT_REGISTERED = "document_registered"
    PERMISSIONS_CHANGED = "permissions_changed"


_DENIAL_TYPES = (AuditEventType.ACCESS_DENIED, AuditEventType.OPERATION_DENIED)


@dataclass
class AuditEvent:
    """
    A single audit event.

    Attributes:
        event_type: Type of event
        timestamp: When the event occurred
        actor_id: ID of the user the decision was made for
        actor_roles: Role names the actor held
        actor_clearance: Clearance of the actor
        operation: Operation that was checked
        entity_kind: Kind of entity checked, if any
        entity_id: ID of the entity or document involved
        required_level: Clearance the entity required
        allowed: Whether the action was allowed
        reason: Denial reason
        details: Additional event-specific details
        session_id: Session identifier for grouping events
    """
    event_type: AuditEventType
    timestamp: datetime = field(default_factory=datetime.now)
    actor_id: Optional[str] = None
    actor_roles: list[str] = field(default_factory=list)
    actor_clearance: Optional[ClassificationLevel] = None
    operation: Optional[str] = None
    entity_kind: Optional[str] = None
    entity_id: Optional[str] = None
    required_level: Optional[ClassificationLevel] = None
    allowed: Optional[bool] = None
    reason: Optional[str] = None
    details: dict = field(default_factory=dict)
    session_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert event to dictionary for serialization."""
        result: dict[str, Any] = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.actor_id:
            result["actor_id"] = self.actor_id
        if self.actor_roles:
            result["actor_roles"] = list(self.actor_roles)
        if self.actor_clearance is not None:
            result["actor_clearance"] = self.actor_clearance.name
        if self.operation:
            result["operation"] = self.operation
        if self.entity_kind:
            result["entity_kind"] = self.entity_kind
        if self.entity_id:
            result["entity_id"] = self.entity_id
        if self.required_level is not None:
            result["required_level"] = self.required_level.name
        if self.allowed is not None:
            result["allowed"] = self.allowed
        if self.reason:
            result["reason"] = self.reason
        if self.details:
            result["details"] = self.details
        if self.session_id:
            result["session_id"] = self.session_id

        return result

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEvent":
        """Create event from dictionary."""
        actor_clearance = None
        if "actor_clearance" in data:
            actor_clearance = ClassificationLevel[data["actor_clearance"]]

        required_level = None
        if "required_level" in data:
            required_level = ClassificationLevel[data["required_level"]]

        return cls(
            event_type=AuditEventType(data["event_type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            actor_id=data.get("actor_id"),
            actor_roles=list(data.get("actor_roles", [])),
            actor_clearance=actor_clearance,
            operation=data.get("operation"),
            entity_kind=data.get("entity_kind"),
            entity_id=data.get("entity_id"),
            required_level=required_level,
            allowed=data.get("allowed"),
            reason=data.get("reason"),
            details=data.get("details", {}),
            session_id=data.get("session_id"),
        )


class AuditBackend(ABC):
    """Abstract base class for audit backends."""

    @abstractmethod
    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        ...

    @abstractmethod
    def query(
        self,
        event_type: Optional[AuditEventType] = None,
        actor_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Query audit events, most recent first."""
        ...


def _matches(
    event: AuditEvent,
    event_type: Optional[AuditEventType],
    actor_id: Optional[str],
    start_time: Optional[datetime],
    end_time: Optional[datetime],
) -> bool:
    if event_type and event.event_type != event_type:
        return False
    if actor_id and event.actor_id != actor_id:
        return False
    if start_time and event.timestamp < start_time:
        return False
    if end_time and event.timestamp > end_time:
        return False
    return True


class InMemoryAuditBackend(AuditBackend):
    """In-memory audit backend for development/testing."""

    def __init__(self, max_events: int = 10000) -> None:
        self._events: list[AuditEvent] = []
        self._max_events = max_events
        self._lock = threading.Lock()

    def log(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)
            if len(self._events) > self._max_events:
                self._events = self._events[-self._max_events:]

    def query(
        self,
        event_type: Optional[AuditEventType] = None,
        actor_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        with self._lock:
            events = self._events.copy()

        results = [
            e for e in events
            if _matches(e, event_type, actor_id, start_time, end_time)
        ]
        return list(reversed(results))[:limit]

    def get_all(self) -> list[AuditEvent]:
        """Get all events."""
        with self._lock:
            return self._events.copy()

    def clear(self) -> None:
        """Clear all events."""
        with self._lock:
            self._events.clear()


class FileAuditBackend(AuditBackend):
    """
    File-based audit backend using JSON Lines format.

    Each line is a JSON object representing one event.
    """

    def __init__(self, log_path: str | Path) -> None:
        self._path = Path(log_path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def log(self, event: AuditEvent) -> None:
        with self._lock:
            with open(self._path, "a") as f:
                f.write(json.dumps(event.to_dict()) + "\n")

    def query(
        self,
        event_type: Optional[AuditEventType] = None,
        actor_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        results = []

        if not self._path.exists():
            return results

        with open(self._path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue

                try:
                    event = AuditEvent.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.warning(f"Failed to parse audit line: {e}")
                    continue

                if _matches(event, event_type, actor_id, start_time, end_time):
                    results.append(event)

        return list(reversed(results))[:limit]

    def rotate(self, suffix: Optional[str] = None) -> Path:
        """
        Rotate the log file.

        Args:
            suffix: Optional suffix for rotated file (default: timestamp)

        Returns:
            Path to the rotated file
        """
        if not self._path.exists():
            return self._path

        suffix = suffix or datetime.now().strftime("%Y%m%d_%H%M%S")
        rotated_path = self._path.with_suffix(f".{suffix}.jsonl")

        with self._lock:
            self._path.rename(rotated_path)

        return rotated_path


class AuditLogger:
    """
    Main audit logging interface.

    Example:
        audit = AuditLogger()
        engine = create_engine(registry, audit=audit)

        engine.can_access_holon(analyst, holon)
        denials = audit.get_denials(last_hours=24)
    """

    def __init__(
        self,
        backend: Optional[AuditBackend] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Initialize the audit logger.

        Args:
            backend: Audit backend to use (default: InMemoryAuditBackend)
            session_id: Optional session ID for grouping events
        """
        self._backend = backend or InMemoryAuditBackend()
        self._session_id = session_id

    @property
    def backend(self) -> AuditBackend:
        return self._backend

    def log(self, event: AuditEvent) -> None:
        """Log a raw audit event."""
        if self._session_id and not event.session_id:
            event.session_id = self._session_id
        self._backend.log(event)

    def log_access_decision(
        self,
        user: UserContext,
        operation: str,
        decision: AccessDecision,
        entity: Any = None,
    ) -> None:
        """
        Log the outcome of a single access or operation check.

        Args:
            user: User the decision was made for
            operation: Operation that was checked
            decision: The decision returned to the caller
            entity: Entity checked, for entity-level decisions
        """
        if entity is not None:
            event_type = (
                AuditEventType.ACCESS_ALLOWED
                if decision.allowed
                else AuditEventType.ACCESS_DENIED
            )
        else:
            event_type = (
                AuditEventType.OPERATION_ALLOWED
                if decision.allowed
                else AuditEventType.OPERATION_DENIED
            )

        self.log(AuditEvent(
            event_type=event_type,
            actor_id=user.user_id,
            actor_roles=sorted(role.value for role in user.roles),
            actor_clearance=user.clearance_level,
            operation=operation,
            entity_kind=entity.kind.value if entity is not None else None,
            entity_id=getattr(entity, "id", None),
            required_level=decision.required_level,
            allowed=decision.allowed,
            reason=decision.reason,
        ))

    def log_document_registered(self, document: Document, created_by: str) -> None:
        """Log a document registration."""
        self.log(AuditEvent(
            event_type=AuditEventType.DOCUMENT_REGISTERED,
            entity_id=document.id,
            required_level=document.classification,
            details={
                "document_type": document.document_type.value,
                "created_by": created_by,
            },
        ))

    def log_permissions_changed(
        self,
        role: str,
        old_operations: list[str],
        new_operations: list[str],
    ) -> None:
        """Log a change to the operations a role may perform."""
        self.log(AuditEvent(
            event_type=AuditEventType.PERMISSIONS_CHANGED,
            details={
                "role": role,
                "old_operations": sorted(old_operations),
                "new_operations": sorted(new_operations),
            },
        ))

    def query(
        self,
        event_type: Optional[AuditEventType] = None,
        actor_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Query audit events."""
        return self._backend.query(
            event_type=event_type,
            actor_id=actor_id,
            start_time=start_time,
            end_time=end_time,
            limit=limit,
        )

    def get_denials(
        self,
        last_hours: Optional[int] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get denied access and operation checks, most recent first."""
        start_time = None
        if last_hours:
            start_time = datetime.now() - timedelta(hours=last_hours)

        denials = []
        for event_type in _DENIAL_TYPES:
            denials.extend(self.query(event_type=event_type, start_time=start_time, limit=limit))
        denials.sort(key=lambda e: e.timestamp, reverse=True)

        return denials[:limit]

    def get_user_activity(self, user_id: str, limit: int = 100) -> list[AuditEvent]:
        """Get all decisions made for a user."""
        return self.query(actor_id=user_id, limit=limit)

    def get_stats(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> dict:
        """Get audit statistics."""
        events = self.query(start_time=start_time, end_time=end_time, limit=10000)

        stats: dict[str, Any] = {
            "total_events": len(events),
            "by_type": {},
            "allowed": 0,
            "denied": 0,
        }

        for event in events:
            event_type = event.event_type.value
            stats["by_type"][event_type] = stats["by_type"].get(event_type, 0) + 1

            if event.event_type in _DENIAL_TYPES:
                stats["denied"] += 1
            elif event.allowed:
                stats["allowed"] += 1

        return stats


def create_audit_logger(
    backend_type: str = "memory",
    log_path: Optional[str] = None,
    session_id: Optional[str] = None,
) -> AuditLogger:
    """
    Create an audit logger with the specified backend.

    Args:
        backend_type: "memory" or "file"
        log_path: Path for file backend
        session_id: Optional session ID

    Returns:
        Configured AuditLogger
    """
    if backend_type == "file":
        if not log_path:
            raise ValueError("log_path required for file backend")
        backend: AuditBackend = FileAuditBackend(log_path)
    else:
        backend = InMemoryAuditBackend()

    return AuditLogger(backend=backend, session_id=session_id)
