"""Helpers for issuing and verifying bearer credentials."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import get_settings
from app.domain.entities import Principal

ALGORITHM = "HS256"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode({**data, "exp": expire}, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


def principal_from_token(token: str) -> Principal:
    """Return the :class:`Principal` encoded in ``token``.

    The ``sub`` claim carries the user id and ``role`` the optional role name.
    """

    payload = decode_access_token(token)
    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise ValueError("Token subject is not a user id") from exc
    role = payload.get("role")
    return Principal(user_id=user_id, role=role if isinstance(role, str) else None)


def issue_token_for(principal: Principal, expires_delta: timedelta | None = None) -> str:
    """Return a signed credential for ``principal``."""

    claims: dict[str, object] = {"sub": str(principal.user_id)}
    if principal.role:
        claims["role"] = principal.role
    return create_access_token(claims, expires_delta)


__all__ = [
    "create_access_token",
    "decode_access_token",
    "issue_token_for",
    "principal_from_token",
]
