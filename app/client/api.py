"""Asynchronous REST client for the notifications API."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx
from pydantic import TypeAdapter, ValidationError

from app.domain.exceptions import AuthError, NotFoundError, TransientNetworkError
from app.interfaces.api.schemas import NotificationOperationStatus, NotificationRead

from .config import ClientSettings

logger = logging.getLogger(__name__)

_NOTIFICATION_LIST = TypeAdapter(list[NotificationRead])


class NotificationApiClient:
    """Call the notification endpoints with a bearer credential.

    Every request carries a timeout. Transport errors, timeouts and 5xx
    answers raise :class:`TransientNetworkError`; 401/403 raise
    :class:`AuthError`; 404 raises :class:`NotFoundError`.
    """

    def __init__(
        self,
        token: str,
        *,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
            transport=transport,
        )
        self._headers = {"Authorization": f"Bearer {token}"}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "NotificationApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def list_notifications(self) -> list[NotificationRead]:
        response = await self._request("GET", "/notifications")
        try:
            return _NOTIFICATION_LIST.validate_python(response.json())
        except (ValidationError, ValueError) as exc:
            raise TransientNetworkError("Malformed notification list") from exc

    async def mark_read(self, notification_id: UUID) -> NotificationRead:
        response = await self._request("PATCH", f"/notifications/{notification_id}/read")
        try:
            return NotificationRead.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            raise TransientNetworkError("Malformed notification payload") from exc

    async def mark_all_read(self) -> NotificationOperationStatus:
        response = await self._request("PATCH", "/notifications/mark-all-read")
        return self._status(response)

    async def delete(self, notification_id: UUID) -> NotificationOperationStatus:
        response = await self._request("DELETE", f"/notifications/{notification_id}")
        return self._status(response)

    async def unread_count(self) -> int:
        response = await self._request("GET", "/notifications/unread-count")
        try:
            return int(response.json()["unreadCount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientNetworkError("Malformed unread count payload") from exc

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, url)
            raise TransientNetworkError(f"{method} {url} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransientNetworkError(f"{method} {url} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(f"{method} {url} rejected the credential ({response.status_code})")
        if response.status_code == 404:
            raise NotFoundError(f"{method} {url} returned 404")
        if response.is_error:
            raise TransientNetworkError(
                f"{method} {url} returned {response.status_code}"
            )
        return response

    @staticmethod
    def _status(response: httpx.Response) -> NotificationOperationStatus:
        try:
            return NotificationOperationStatus.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            raise TransientNetworkError("Malformed status payload") from exc


__all__ = ["NotificationApiClient"]
