"""Notification feed endpoints, including a Server-Sent Events stream."""

import json
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_db, get_event_bus
from db import AsyncSessionLocal
from errors import DashboardError
from models.notification import NotificationResponse, UnreadCount
from services import notifications_service
from services.realtime import EventBus, QueueListener

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between keep-alive comments on an idle stream
STREAM_KEEPALIVE_SECONDS = 15.0


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications_endpoint(
    unread_only: bool = Query(False),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's notifications, newest first."""
    try:
        return await notifications_service.list_notifications(db, ctx=ctx, unread_only=unread_only)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch notifications: {str(e)}",
        )


@router.get("/notifications/unread-count", response_model=UnreadCount)
async def unread_count_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Number of unread notifications for the caller."""
    return UnreadCount(unread=await notifications_service.unread_count(db, ctx=ctx))


@router.post("/notifications/read-all")
async def mark_all_read_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Mark every notification of the caller as read."""
    try:
        changed = await notifications_service.mark_all_read(db, ctx=ctx, bus=bus)
        return {"updated": changed}
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to mark notifications read: {str(e)}",
        )


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_read_endpoint(
    notification_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """
    Mark a notification as read. Marking an already read notification is a no-op.

    Raises:
        404 if the notification is not addressed to the caller.
    """
    try:
        return await notifications_service.mark_read(
            db,
            ctx=ctx,
            notification_id=notification_id,
            bus=bus,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to mark notification read: {str(e)}",
        )


@router.post("/notifications/{notification_id}/unread", response_model=NotificationResponse)
async def mark_unread_endpoint(
    notification_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Mark a notification as unread."""
    try:
        return await notifications_service.mark_unread(
            db,
            ctx=ctx,
            notification_id=notification_id,
            bus=bus,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to mark notification unread: {str(e)}",
        )


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _current_unread(ctx: AccessContext) -> int:
    # The request-scoped session is closed once the response starts streaming
    async with AsyncSessionLocal() as session:
        return await notifications_service.unread_count(session, ctx=ctx)


@router.get("/notifications/stream")
async def notification_stream_endpoint(
    request: Request,
    ctx: AccessContext = Depends(get_access_context),
    bus: EventBus = Depends(get_event_bus),
):
    """
    Live notification feed as Server-Sent Events.

    Emits an ``unread`` event with the current count on connect. Each change
    is sent as a ``notification`` event followed by a fresh ``unread`` count.
    """
    async def event_stream():
        listener = QueueListener()
        async with notifications_service.subscribe(ctx, listener, bus=bus):
            yield _sse("unread", {"unread": await _current_unread(ctx)})
            while not await request.is_disconnected():
                event = await listener.get(timeout=STREAM_KEEPALIVE_SECONDS)
                if event is None:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(
                    "notification",
                    {"type": event.type.value, "record": event.record},
                )
                yield _sse("unread", {"unread": await _current_unread(ctx)})
        logger.debug("Notification stream closed for %s", ctx.user_id)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
