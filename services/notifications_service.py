"""Service layer for the notification feed.

The feed is append-only; ``read`` is the only mutable field. Change events
are queued on the session and published to the event bus only after the
surrounding transaction commits (see ``commit_and_publish``), so
subscribers never see rows that were rolled back.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, require_context
from errors import NotFoundError
from models.notification import Notification, NotificationResponse, NotificationType
from models.profile import Role
from repos import notifications_repo, profiles_repo
from services.realtime import ChangeEvent, EventBus, EventType, Subscription, get_event_bus

logger = logging.getLogger(__name__)

TABLE = "notifications"
_PENDING_KEY = "pending_change_events"


def _queue_event(session: AsyncSession, event: ChangeEvent) -> None:
    session.info.setdefault(_PENDING_KEY, []).append(event)


def _event_for(notification: Notification, event_type: EventType) -> ChangeEvent:
    record = NotificationResponse.model_validate(notification).model_dump(mode="json")
    return ChangeEvent(
        table=TABLE,
        type=event_type,
        recipient_id=notification.user_id,
        record=record,
    )


async def commit_and_publish(session: AsyncSession, bus: EventBus | None = None) -> int:
    """
    Commit the session, then publish the change events queued on it.

    Returns:
        Number of events published
    """
    await session.commit()
    events = session.info.pop(_PENDING_KEY, [])
    bus = bus or get_event_bus()
    for event in events:
        await bus.publish(event)
    return len(events)


def discard_pending(session: AsyncSession) -> None:
    """Drop queued events after a rollback."""
    session.info.pop(_PENDING_KEY, None)


async def notify(
    session: AsyncSession,
    *,
    user_id: UUID,
    title: str,
    message: str,
    type: NotificationType = NotificationType.INFO,
    related_project_id: UUID | None = None,
    related_payment_id: UUID | None = None,
    related_milestone_id: UUID | None = None,
) -> Notification:
    """
    Append a notification for one recipient (does not commit).

    Args:
        session: Database session
        user_id: Recipient profile ID
        title: Short title
        message: Body text
        type: Severity
        related_*: Optional weak references for deep links

    Returns:
        Created notification
    """
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type.value,
        read=False,
        related_project_id=related_project_id,
        related_payment_id=related_payment_id,
        related_milestone_id=related_milestone_id,
    )
    notification = await notifications_repo.create(session, notification)
    _queue_event(session, _event_for(notification, EventType.INSERT))
    return notification


async def notify_admins(session: AsyncSession, *, exclude: UUID | None = None, **kwargs) -> list[Notification]:
    """Append the same notification for every active admin."""
    admins = await profiles_repo.list_by_role(session, role=Role.ADMIN)
    created = []
    for admin in admins:
        if admin.id == exclude:
            continue
        created.append(await notify(session, user_id=admin.id, **kwargs))
    return created


async def list_notifications(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    unread_only: bool = False,
) -> list[Notification]:
    """List the caller's notifications, newest first."""
    ctx = require_context(ctx)
    return await notifications_repo.list(session, user_id=ctx.user_id, unread_only=unread_only)


async def unread_count(session: AsyncSession, *, ctx: AccessContext) -> int:
    ctx = require_context(ctx)
    return await notifications_repo.count_unread(session, user_id=ctx.user_id)


async def _set_read(
    session: AsyncSession,
    ctx: AccessContext,
    notification_id: UUID,
    read: bool,
    bus: EventBus | None,
) -> Notification:
    ctx = require_context(ctx)
    notification = await notifications_repo.get_by_id(
        session,
        user_id=ctx.user_id,
        notification_id=notification_id,
    )
    if not notification:
        raise NotFoundError("Notification")

    # Idempotent: no write and no event when already in the requested state
    if notification.read == read:
        return notification

    notification.read = read
    await session.flush()
    _queue_event(session, _event_for(notification, EventType.UPDATE))
    await commit_and_publish(session, bus)
    await session.refresh(notification)
    return notification


async def mark_read(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    notification_id: UUID,
    bus: EventBus | None = None,
) -> Notification:
    """
    Mark one of the caller's notifications as read.

    Raises:
        NotFoundError: If the notification does not exist or is not addressed to the caller
    """
    return await _set_read(session, ctx, notification_id, True, bus)


async def mark_unread(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    notification_id: UUID,
    bus: EventBus | None = None,
) -> Notification:
    """Mark one of the caller's notifications as unread."""
    return await _set_read(session, ctx, notification_id, False, bus)


async def mark_all_read(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    bus: EventBus | None = None,
) -> int:
    ctx = require_context(ctx)
    unread = await notifications_repo.list(session, user_id=ctx.user_id, unread_only=True)
    changed = await notifications_repo.mark_all_read(session, user_id=ctx.user_id)
    for notification in unread:
        notification.read = True
        _queue_event(session, _event_for(notification, EventType.UPDATE))
    await commit_and_publish(session, bus)
    logger.info("Marked %d notifications read for %s", changed, ctx.user_id)
    return changed


def subscribe(
    ctx: AccessContext,
    callback,
    *,
    bus: EventBus | None = None,
    event_types: tuple[EventType, ...] = (EventType.INSERT, EventType.UPDATE),
) -> Subscription:
    """
    Subscribe to the caller's notification changes.

    Returns:
        Subscription handle; cancel it with ``unsubscribe()``
    """
    bus = bus or get_event_bus()
    return bus.subscribe(ctx, TABLE, callback, event_types)
