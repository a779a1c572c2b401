from __future__ import annotations

import asyncio
import logging
import threading
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from matrix_live.models.feed import FeedPayload
from matrix_live.parsing.matrix_text import parse_email_body
from matrix_live.providers.base import MessageProvider, ProviderError
from matrix_live.series.aggregator import SnapshotAggregator
from matrix_live.storage.snapshot_file import SnapshotFileStore

log = logging.getLogger("poller")


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def fetch_feed(
    provider: MessageProvider,
    split_char: str,
    symbol_prefix: str,
) -> FeedPayload:
    """
    One upstream round trip:
    latest message metadata -> its body -> parsed records.

    Provider errors propagate; callers decide whether that is fatal.
    """
    message = provider.fetch_latest_message()
    if not message:
        log.info("No messages in group yet")
        return FeedPayload(last_updated=utcnow_iso())

    message_id = message.get("messageId")
    if message_id is not None:
        message_id = str(message_id)
    sent = message.get("sent")

    body = provider.fetch_message_body(message_id) if message_id else ""
    items = parse_email_body(body, split_char=split_char, symbol_prefix=symbol_prefix)

    return FeedPayload(
        items=items,
        last_updated=utcnow_iso(),
        message_id=message_id,
        sent=sent,
    )


@dataclass
class PollResult:
    """
    Outcome of one poll cycle.

    status:
      - "ok": fetched (absorbed says whether the message was new)
      - "skipped": another cycle was still running
      - "failed": provider error; error holds the message
    """
    status: str
    payload: Optional[FeedPayload] = None
    absorbed: bool = False
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.payload.items) if self.payload is not None else 0


class Poller:
    """
    fetch -> parse -> absorb -> persist, one cycle at a time.

    A cycle that starts while another one is still running is skipped
    instead of queueing behind it.
    """

    def __init__(
        self,
        provider: MessageProvider,
        aggregator: SnapshotAggregator,
        snapshots: Optional[SnapshotFileStore],
        split_char: str,
        symbol_prefix: str,
    ) -> None:
        self.provider = provider
        self.aggregator = aggregator
        self.snapshots = snapshots
        self.split_char = split_char
        self.symbol_prefix = symbol_prefix
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def poll_once(self) -> PollResult:
        """
        Provider failures come back as status="failed" and leave core state as it was.
        Anything else (e.g. disk errors on save) propagates.
        """
        if not self._in_flight.acquire(blocking=False):
            log.warning("Poll skipped: previous run still in progress")
            return PollResult(status="skipped")

        try:
            try:
                payload = fetch_feed(self.provider, self.split_char, self.symbol_prefix)
            except ProviderError as e:
                log.error("Poll failed error=%s", repr(e))
                return PollResult(status="failed", error=str(e))

            absorbed = self.aggregator.absorb(payload.to_envelope())
            if self.snapshots is not None:
                self.snapshots.save(payload)

            log.info(
                "Polled message_id=%s items=%d absorbed=%s",
                payload.message_id,
                len(payload.items),
                absorbed,
            )
            return PollResult(status="ok", payload=payload, absorbed=absorbed)
        finally:
            self._in_flight.release()


async def poll_loop(poller: Poller, interval_seconds: float) -> None:
    """
    Background loop:
    runs one poll cycle every interval_seconds, in a worker thread so the
    blocking HTTP calls don't stall the event loop.
    """
    while True:
        try:
            await asyncio.to_thread(poller.poll_once)
        except Exception as e:
            # Keep loop alive; state keeps reflecting the last good message.
            log.error("Poll cycle crashed error=%s", repr(e))
            log.error(traceback.format_exc())

        await asyncio.sleep(interval_seconds)
