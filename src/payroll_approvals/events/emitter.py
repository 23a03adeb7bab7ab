"""Event emitter for publishing domain events.

The emitter provides:
- Handler registration by event type
- Concurrent dispatch of async handlers
- Error isolation (handler failures don't break other handlers)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from payroll_approvals.events.types import DomainEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)


@runtime_checkable
class AsyncEventHandler(Protocol):
    """Protocol for asynchronous event handlers."""

    async def __call__(self, event: DomainEvent) -> None:
        """Handle a domain event asynchronously."""
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: AsyncEventHandler
    event_types: set[str]


class AsyncEventEmitter:
    """Asynchronous event emitter.

    Handlers are isolated: if one fails, the others still receive the
    event and the failure is returned to the emitter's caller instead of
    being raised.

    Usage:
        emitter = AsyncEventEmitter()

        async def notify(event: PayrollTransitioned) -> None:
            ...

        emitter.on(PayrollTransitioned, notify)
        errors = await emitter.emit(event)
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: AsyncEventHandler,
    ) -> None:
        """Register async handler for specific event type(s)."""
        if isinstance(event_type, list):
            names = {t.__name__ for t in event_type}
        else:
            names = {event_type.__name__}
        self._handlers.append(HandlerRegistration(handler=handler, event_types=names))

    async def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Returns list of any exceptions raised by handlers.
        """
        tasks = [
            asyncio.create_task(self._call_handler(reg.handler, event))
            for reg in self._handlers
            if event.event_type in reg.event_types
        ]
        if not tasks:
            return []

        results = await asyncio.gather(*tasks, return_exceptions=True)
        return [result for result in results if isinstance(result, Exception)]

    async def _call_handler(
        self,
        handler: AsyncEventHandler,
        event: DomainEvent,
    ) -> None:
        """Call async handler with error logging."""
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Async handler %s failed for event %s",
                handler,
                event.event_type,
            )
            raise
