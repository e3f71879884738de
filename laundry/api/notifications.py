"""
Laundry Service — Notification routes + SSE stream over Redis pub/sub

Architecture:
  - NotificationService persists each notification, then publishes it to
    notifications:user:{user_id} or notifications:broadcast
  - The SSE endpoint subscribes to the caller's channel plus the broadcast
    channel and streams them to the browser EventSource
"""
import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import get_current_user, get_notifier, require_admin
from laundry.core.config import get_settings
from laundry.core.redis_client import get_redis
from laundry.db.database import get_db
from laundry.models import Priority, User
from laundry.schemas.admin import BroadcastRequest, IndividualNotificationRequest, NotificationResponse
from laundry.services.notifications import BROADCAST_CHANNEL, USER_CHANNEL, NotificationService

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await notifier.list_for_user(db, user, unread_only=unread_only)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await notifier.mark_read(db, notification_id, user)


@router.post("/{notification_id}/viewed", response_model=NotificationResponse)
async def mark_viewed(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await notifier.mark_viewed(db, notification_id, user)


@router.post("/broadcast", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def broadcast(
    payload: BroadcastRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    notification = await notifier.broadcast(
        db, payload.title, payload.message, Priority(payload.priority), payload.audience
    )
    logger.info("Broadcast %s sent by admin %s to %s", notification.id, admin.id, payload.audience)
    return notification


@router.post("/individual", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def individual(
    payload: IndividualNotificationRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    return await notifier.individual(db, payload.user_id, payload.title, payload.message, Priority(payload.priority))


async def _sse_generator(user: User, request: Request) -> AsyncGenerator[str, None]:
    """Subscribe to Redis pub/sub and yield SSE events."""
    channels = [USER_CHANNEL.format(user_id=user.id), BROADCAST_CHANNEL]
    pubsub = get_redis().pubsub()
    await pubsub.subscribe(*channels)

    try:
        yield f": connected as {user.id}\n\n"
        yield f"retry: {settings.SSE_RETRY_MILLISECONDS}\n\n"

        while True:
            if await request.is_disconnected():
                break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                try:
                    payload = json.loads(message["data"])
                except ValueError:
                    payload = {"raw": message["data"]}

                # Broadcasts carry their audience; skip ones meant for other roles.
                if payload.get("user_id") is None:
                    audience = (payload.get("data") or {}).get("audience", "all")
                    if audience not in ("all", user.role):
                        continue

                yield f"event: notification\ndata: {json.dumps(payload)}\n\n"
            else:
                yield ": keepalive\n\n"
                await asyncio.sleep(settings.SSE_KEEPALIVE_INTERVAL_SECONDS)

    finally:
        await pubsub.unsubscribe(*channels)
        await pubsub.aclose()


@router.get("/stream")
async def stream_notifications(request: Request, user: User = Depends(get_current_user)):
    """
    SSE endpoint. Browser creates an EventSource to this URL (token in the
    `token` query parameter). Streams notifications as they are created.
    """
    return StreamingResponse(
        _sse_generator(user, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
            "Connection": "keep-alive",
        },
    )
