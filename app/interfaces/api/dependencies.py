"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from app.domain.entities import Principal
from app.infrastructure.notifications import (
    NotificationConnectionManager,
    NotificationPublisher,
)
from app.infrastructure.security import principal_from_token

# Tokens are issued by the platform's auth service; this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


def resolve_principal(token: str) -> Principal:
    """Resolve the authenticated caller for the provided token."""

    try:
        return principal_from_token(token)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    """Return the authenticated caller from the bearer token."""

    return resolve_principal(token)


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Ensure the authenticated caller has administrator privileges."""

    if not principal.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized",
        )
    return principal


def get_connection_manager(request: Request) -> NotificationConnectionManager:
    """Return the connection registry owned by the running application."""

    return request.app.state.notification_manager


def get_notification_publisher(
    manager: NotificationConnectionManager = Depends(get_connection_manager),
) -> NotificationPublisher:
    return NotificationPublisher(manager)
