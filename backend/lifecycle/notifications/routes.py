"""Notification routes: REST listing and mutations, plus the live WebSocket."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from ..accounts.models import User
from ..accounts.service import get_user_by_id
from ..database.base import get_db, session_scope
from ..dependencies import get_current_user, get_publisher, session_user_id
from .emitter import publish_unread_count
from .live import LiveDeltaPublisher
from .schemas import MarkReadRequest, NotificationPage, NotificationResponse
from .service import (
    delete_all_notifications,
    delete_notification,
    get_unread_count,
    list_for_recipient,
    mark_all_read,
    mark_many_read,
    mark_read,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])
ws_router = APIRouter(tags=["notifications-ws"])


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return list_for_recipient(db, user.id, page=page, limit=limit, unread_only=unread_only)


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return {"unread_count": get_unread_count(db, user.id)}


@router.patch("/mark-read")
def mark_selected_read(
    body: MarkReadRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    publisher: LiveDeltaPublisher = Depends(get_publisher),
):
    updated = mark_many_read(db, body.notification_ids, user.id)
    db.commit()
    unread = publish_unread_count(db, publisher, user.id)
    return {"updated": updated, "unread_count": unread}


@router.patch("/mark-all-read")
def mark_everything_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    publisher: LiveDeltaPublisher = Depends(get_publisher),
):
    updated = mark_all_read(db, user.id)
    db.commit()
    unread = publish_unread_count(db, publisher, user.id)
    return {"updated": updated, "unread_count": unread}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_one_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    publisher: LiveDeltaPublisher = Depends(get_publisher),
):
    notification = mark_read(db, notification_id, user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    publish_unread_count(db, publisher, user.id)
    return notification


@router.delete("/{notification_id}")
def remove_notification(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    publisher: LiveDeltaPublisher = Depends(get_publisher),
):
    if not delete_notification(db, notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    unread = publish_unread_count(db, publisher, user.id)
    return {"ok": True, "unread_count": unread}


@router.delete("")
def remove_all_notifications(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    publisher: LiveDeltaPublisher = Depends(get_publisher),
):
    deleted = delete_all_notifications(db, user.id)
    db.commit()
    publish_unread_count(db, publisher, user.id)
    return {"deleted": deleted, "unread_count": 0}


# ── WebSocket ─────────────────────────────────────────────────────────


def _authenticated_user_id(factory: sessionmaker, session: dict) -> UUID | None:
    user_id = session_user_id(session)
    if user_id is None:
        return None
    with session_scope(factory) as db:
        user = get_user_by_id(db, user_id)
        if user is None or not user.is_active:
            return None
        return user.id


def _read_unread_count(factory: sessionmaker, user_id: UUID) -> int:
    with session_scope(factory) as db:
        return get_unread_count(db, user_id)


def _mark_read_and_count(factory: sessionmaker, user_id: UUID, notification_id: UUID) -> int:
    with session_scope(factory) as db:
        mark_read(db, notification_id, user_id)
        db.commit()
        return get_unread_count(db, user_id)


@ws_router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket):
    publisher: LiveDeltaPublisher = websocket.app.state.publisher
    factory: sessionmaker = websocket.app.state.session_factory

    user_id = await run_in_threadpool(_authenticated_user_id, factory, websocket.session)
    if user_id is None:
        await websocket.close(code=4401)
        return

    await publisher.connect(user_id, websocket)
    try:
        unread = await run_in_threadpool(_read_unread_count, factory, user_id)
        publisher.push_unread_count(user_id, unread)

        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"message": "Invalid JSON"}})
                continue
            action = message.get("action") if isinstance(message, dict) else None

            if action == "getUnreadCount":
                unread = await run_in_threadpool(_read_unread_count, factory, user_id)
                publisher.push_unread_count(user_id, unread)
            elif action == "markAsRead":
                try:
                    notification_id = UUID(str(message.get("notificationId")))
                except ValueError:
                    await websocket.send_json({"event": "error", "data": {"message": "Invalid notificationId"}})
                    continue
                unread = await run_in_threadpool(_mark_read_and_count, factory, user_id, notification_id)
                publisher.push_unread_count(user_id, unread)
            else:
                logger.debug("Unknown socket action from %s: %r", user_id, action)
                await websocket.send_json({"event": "error", "data": {"message": "Unknown action"}})
    except WebSocketDisconnect:
        pass
    finally:
        publisher.disconnect(user_id, websocket)
