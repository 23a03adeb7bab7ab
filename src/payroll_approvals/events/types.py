"""Domain event types for the payroll approval workflow.

All events are:
- Immutable (frozen dataclasses)
- Emitted only after the state change they describe has committed
- Self-contained: subscribers reload whatever else they need by id
- Serializable for logging and replay
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from payroll_approvals.models.enums import ApprovalAction, ApprovalLevel, PayrollStatus


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID
    actor_id: UUID | None
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        actor_id: UUID | None = None,
        correlation_id: UUID | None = None,
        source_service: str = "payroll-approvals",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = asdict(self)
        data["event_type"] = self.event_type
        return _serialize_dict(data)

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


def _serialize_dict(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize_dict(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize_dict(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, date):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


@dataclass(frozen=True)
class PayrollSubmitted(DomainEvent):
    """A payroll entered the approval chain at its first level."""

    payroll_id: UUID
    employee_id: UUID
    department_id: UUID
    submitted_by_id: UUID
    first_level: ApprovalLevel
    remarks: str | None = None


@dataclass(frozen=True)
class PayrollTransitioned(DomainEvent):
    """An approve or reject decision committed at one level."""

    payroll_id: UUID
    employee_id: UUID
    department_id: UUID
    level: ApprovalLevel
    decision: ApprovalAction
    actor_id: UUID
    status: PayrollStatus
    next_level: ApprovalLevel | None
    next_approver_id: UUID | None
    version: int
    remarks: str | None = None
