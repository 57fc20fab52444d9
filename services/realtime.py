"""In-process change feed for live notification updates.

Subscribers register a callback together with the principal they act for;
events are delivered only when they are addressed to that principal, which
is the same visibility rule the notification list endpoint applies.
Every subscription must be cancelled explicitly with ``unsubscribe()`` (or
by leaving its ``async with`` block).
"""

import asyncio
import enum
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from api.access import AccessContext, require_context

logger = logging.getLogger(__name__)


class EventType(str, enum.Enum):
    """Change event type."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change on a recipient-scoped table."""

    table: str
    type: EventType
    recipient_id: UUID
    record: dict = field(default_factory=dict)


Callback = Callable[[ChangeEvent], Awaitable[None] | None]


class Subscription:
    """Handle for one live subscription."""

    def __init__(
        self,
        bus: "EventBus",
        ctx: AccessContext,
        table: str,
        event_types: frozenset[EventType],
        callback: Callback,
    ):
        self.id = uuid4()
        self.ctx = ctx
        self.table = table
        self.event_types = event_types
        self.callback = callback
        self._bus = bus
        self.active = True

    def matches(self, event: ChangeEvent) -> bool:
        return (
            self.active
            and event.table == self.table
            and event.type in self.event_types
            and event.recipient_id == self.ctx.user_id
        )

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._bus._remove(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.unsubscribe()


class EventBus:
    """Fan-out of change events to matching subscriptions."""

    def __init__(self):
        self._subscriptions: dict[UUID, Subscription] = {}

    def subscribe(
        self,
        ctx: AccessContext,
        table: str,
        callback: Callback,
        event_types: tuple[EventType, ...] = (EventType.INSERT, EventType.UPDATE),
    ) -> Subscription:
        """
        Register a callback for changes visible to ``ctx``.

        Args:
            ctx: Principal the subscription acts for
            table: Table name to watch (e.g. "notifications")
            callback: Sync or async callable receiving each ChangeEvent
            event_types: Event types to deliver

        Returns:
            Subscription handle; call ``unsubscribe()`` to cancel
        """
        ctx = require_context(ctx)
        subscription = Subscription(self, ctx, table, frozenset(event_types), callback)
        self._subscriptions[subscription.id] = subscription
        logger.debug("Subscription %s opened for %s on %s", subscription.id, ctx, table)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        self._subscriptions.pop(subscription.id, None)
        logger.debug("Subscription %s closed", subscription.id)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every matching subscription.

        A failing callback is logged and does not stop delivery to others.

        Returns:
            Number of subscriptions the event was delivered to
        """
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(event):
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber %s failed handling %s event on %s",
                    subscription.id,
                    event.type.value,
                    event.table,
                )
        return delivered


class QueueListener:
    """Adapter turning a subscription into an async iterator of events."""

    def __init__(self, maxsize: int = 100):
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)

    def __call__(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Listener queue full, dropping %s event", event.type.value)

    async def get(self, timeout: float | None = None) -> ChangeEvent | None:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except TimeoutError:
            return None


event_bus = EventBus()


def get_event_bus() -> EventBus:
    """Dependency returning the process-wide event bus."""
    return event_bus
