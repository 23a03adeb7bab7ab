"""Payroll approval domain events package.

This package provides:
- Typed domain events for submissions and approval decisions
- An async emitter that isolates subscriber failures
"""

from payroll_approvals.events.types import (
    DomainEvent,
    EventMetadata,
    PayrollSubmitted,
    PayrollTransitioned,
)
from payroll_approvals.events.emitter import (
    AsyncEventEmitter,
    AsyncEventHandler,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    # Events
    "PayrollSubmitted",
    "PayrollTransitioned",
    # Emitter
    "AsyncEventEmitter",
    "AsyncEventHandler",
]
