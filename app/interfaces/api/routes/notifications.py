"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import (
    count_unread_notifications as count_unread_notifications_uc,
    delete_notification as delete_notification_uc,
    list_notifications as list_notifications_uc,
    mark_all_notifications_read as mark_all_notifications_read_uc,
    mark_notification_read as mark_notification_read_uc,
    publish_notification as publish_notification_uc,
)
from app.domain.entities import Principal
from app.domain.exceptions import (
    InvalidNotificationError,
    NotFoundError,
    PersistenceFailure,
)
from app.infrastructure.database import get_db
from app.infrastructure.notifications import NotificationConnectionManager, NotificationPublisher
from app.interfaces.api.dependencies import (
    get_current_principal,
    get_notification_publisher,
    require_admin,
    resolve_principal,
)
from app.interfaces.api.schemas import (
    NotificationCreate,
    NotificationOperationStatus,
    NotificationRead,
    UnreadCountRead,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])

logger = logging.getLogger(__name__)

_POLICY_VIOLATION = 1008


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> list[NotificationRead]:
    """Return every notification of the authenticated user, newest first."""

    notifications = list_notifications_uc(db, principal.user_id)
    return [NotificationRead.from_entity(notification) for notification in notifications]


@router.get("/unread-count", response_model=UnreadCountRead)
def unread_count(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> UnreadCountRead:
    return UnreadCountRead(unread_count=count_unread_notifications_uc(db, principal.user_id))


@router.patch("/mark-all-read", response_model=NotificationOperationStatus)
def mark_all_read(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationOperationStatus:
    """Mark every notification of the authenticated user as read."""

    updated = mark_all_notifications_read_uc(db, principal.user_id)
    return NotificationOperationStatus(success=True, updated=updated)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationRead:
    """Mark a single notification as read."""

    try:
        notification = mark_notification_read_uc(
            db, notification_id, user_id=principal.user_id
        )
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return NotificationRead.from_entity(notification)


@router.delete("/{notification_id}", response_model=NotificationOperationStatus)
def delete_notification(
    notification_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationOperationStatus:
    """Permanently delete a notification of the authenticated user."""

    try:
        delete_notification_uc(db, notification_id, user_id=principal.user_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return NotificationOperationStatus(success=True)


@router.post(
    "/{recipient_id}",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
)
def publish_notification(
    recipient_id: int,
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    publisher: NotificationPublisher = Depends(get_notification_publisher),
    _: Principal = Depends(require_admin),
) -> NotificationRead:
    """Create a notification for ``recipient_id`` and push it to their clients."""

    try:
        notification = publish_notification_uc(
            db,
            publisher,
            recipient_id=recipient_id,
            notification_type=payload.type,
            title=payload.title,
            message=payload.message,
            metadata=payload.metadata,
            copy_to_admins=payload.copy_to_admins,
        )
    except InvalidNotificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except PersistenceFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    return NotificationRead.from_entity(notification)


def _websocket_token(websocket: WebSocket) -> str | None:
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return websocket.query_params.get("token")


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams ``new_notification`` events to the caller."""

    token = _websocket_token(websocket)
    if not token:
        await websocket.close(code=_POLICY_VIOLATION)
        return
    try:
        principal = resolve_principal(token)
    except HTTPException:
        await websocket.close(code=_POLICY_VIOLATION)
        return

    manager: NotificationConnectionManager = websocket.app.state.notification_manager
    channel = await manager.connect(principal.user_id, websocket, role=principal.role)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                channel.touch()
                continue

            channel.touch()
            if isinstance(message, dict) and message.get("type") == "ping":
                if not channel.offer_control({"type": "pong"}):
                    logger.debug("Skipping pong for %s: queue full", channel.connection_id)
    except WebSocketDisconnect:
        logger.debug("Connection %s closed by client", channel.connection_id)
    except RuntimeError:
        # The server side already closed this socket (eviction or overflow).
        if not channel.closed:
            raise
    finally:
        manager.unregister(channel.connection_id)
        await channel.close()
