from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from matrix_live.config import Settings, get_settings
from matrix_live.providers.base import MessageProvider, ProviderError, RateLimitError

log = logging.getLogger("gaggle_provider")

# Gaggle answers 417 when the key is over its request quota.
RATE_LIMIT_STATUS = 417


class GaggleProvider(MessageProvider):
    """
    Gaggle group-mail provider (REST).

    - latest message:  GET {base_url}/group/{group}/messages?limit=1
    - message body:    GET {base_url}/group/{group}/message/{messageId}
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        settings = settings or get_settings()

        if not settings.gaggle_api_key:
            raise RuntimeError("Missing Gaggle API key. Set GAGGLE_API_KEY in your .env.")
        if not settings.gaggle_group_email:
            raise RuntimeError("Missing Gaggle group. Set GAGGLE_GROUP_EMAIL in your .env.")

        self.base_url = settings.gaggle_base_url.rstrip("/")
        self.group = settings.gaggle_group_email
        self._headers = {
            "x-api-key": settings.gaggle_api_key,
            "Accept": "application/json",
        }
        self._client = client or httpx.Client(timeout=settings.gaggle_timeout_seconds)

    def close(self) -> None:
        self._client.close()

    # -------------------------
    # Public interface used by the app
    # -------------------------
    def fetch_latest_message(self) -> Optional[Dict]:
        """
        Returns the newest message's metadata dict (has "messageId" and "sent"),
        or None if the group has no messages.
        """
        data = self._get_json(f"{self.base_url}/group/{self.group}/messages", {"limit": "1"})

        if not isinstance(data, list):
            log.warning("Unexpected messages payload type=%s", type(data))
            return None
        if not data or not isinstance(data[0], dict):
            return None
        return data[0]

    def fetch_message_body(self, message_id: str) -> str:
        data = self._get_json(f"{self.base_url}/group/{self.group}/message/{message_id}")

        body = data.get("cleanedBody") if isinstance(data, dict) else None
        if not isinstance(body, str):
            log.warning("Message has no text body message_id=%s", message_id)
            return ""
        return body

    # -------------------------
    # HTTP
    # -------------------------
    def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        try:
            resp = self._client.get(url, params=params, headers=self._headers)
        except httpx.HTTPError as e:
            raise ProviderError(f"Gaggle API request failed: {e!r}") from e

        if resp.status_code == RATE_LIMIT_STATUS:
            raise RateLimitError("Gaggle API rate limit exceeded")
        if resp.is_error:
            raise ProviderError(f"Gaggle API failed status={resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError("Gaggle API returned invalid JSON") from e
