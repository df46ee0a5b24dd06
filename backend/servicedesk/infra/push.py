from __future__ import annotations

import logging
from typing import Any

import httpx

from servicedesk.settings import settings

logger = logging.getLogger(__name__)

EXPO_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")


def is_expo_push_token(token: str | None) -> bool:
    return bool(token) and token.startswith(EXPO_TOKEN_PREFIXES)


class NoopPushAdapter:
    async def send(self, token: str, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        del token, body, data
        logger.info("push_send_skipped", extra={"extra": {"mode": "noop", "title": title}})
        return False


class ExpoPushAdapter:
    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self.http_client = http_client

    async def send(self, token: str, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        if not is_expo_push_token(token):
            logger.warning("push_token_invalid")
            return False
        message = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
            "priority": "high",
        }
        client = self.http_client or httpx.AsyncClient()
        close_client = self.http_client is None
        try:
            response = await client.post(
                settings.expo_push_url,
                json=[message],
                headers={"Accept": "application/json"},
                timeout=settings.outbound_timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.warning("push_request_failed", extra={"extra": {"reason": type(exc).__name__}})
            return False
        finally:
            if close_client:
                await client.aclose()
        if response.status_code >= 400:
            logger.warning("push_request_error", extra={"extra": {"status_code": response.status_code}})
            return False
        return True


def resolve_push_adapter(app_settings, http_client: httpx.AsyncClient | None = None) -> ExpoPushAdapter | NoopPushAdapter:
    if app_settings.push_mode != "expo" or getattr(app_settings, "testing", False):
        return NoopPushAdapter()
    return ExpoPushAdapter(http_client)
