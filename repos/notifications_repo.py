"""Repository for Notification database operations.

Notifications are recipient-scoped: every read filters on user_id.
"""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.notification import Notification


async def get_by_id(
    session: AsyncSession,
    *,
    user_id: UUID,
    notification_id: UUID,
) -> Notification | None:
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list(
    session: AsyncSession,
    *,
    user_id: UUID,
    unread_only: bool = False,
) -> list[Notification]:
    """
    List a recipient's notifications, newest first.

    Args:
        session: Database session
        user_id: Recipient profile ID
        unread_only: If True, only unread entries

    Returns:
        List of notifications
    """
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))
    result = await session.execute(query.order_by(Notification.created_at.desc()))
    return [notification for notification in result.scalars().all()]


async def count_unread(session: AsyncSession, *, user_id: UUID) -> int:
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
    )
    return int(result.scalar_one())


async def create(session: AsyncSession, notification: Notification) -> Notification:
    session.add(notification)
    await session.flush()
    await session.refresh(notification)
    return notification


async def mark_all_read(session: AsyncSession, *, user_id: UUID) -> int:
    """Mark every unread notification of a recipient as read. Returns rows changed."""
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    return result.rowcount
