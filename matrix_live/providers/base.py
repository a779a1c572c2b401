from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional


class ProviderError(RuntimeError):
    """Upstream call failed (bad status, network error, unexpected payload)."""


class RateLimitError(ProviderError):
    """Upstream refused the call because we are polling too often."""


class MessageProvider(ABC):
    """
    Provider contract (interface).

    Any provider must implement:
    - fetch_latest_message(): metadata of the newest message ({"messageId": ..., "sent": ...})
    - fetch_message_body(): the cleaned text body of one message
    """

    @abstractmethod
    def fetch_latest_message(self) -> Optional[Dict]:
        raise NotImplementedError

    @abstractmethod
    def fetch_message_body(self, message_id: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        pass
