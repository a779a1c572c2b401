from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Set

from matrix_live.models.snapshot import MessageEnvelope, SeriesKey, SeriesPoint
from matrix_live.series.store import SeriesStore

log = logging.getLogger("aggregator")


class SnapshotAggregator:
    """
    Session state for one consumer of the matrix feed.

    - seen_message_ids: every message id absorbed so far (never shrinks)
    - store: bounded per-(symbol, timeframe) point history

    absorb() and rebound() hold a lock so a background poller and request
    threads can't interleave mutations. Nothing here does I/O.
    """

    def __init__(self, max_length: int = 100) -> None:
        self.store = SeriesStore(max_length=max_length)
        self.seen_message_ids: Set[str] = set()
        self._lock = threading.Lock()

    @property
    def max_length(self) -> int:
        return self.store.max_length

    def is_duplicate(self, message_id: str) -> bool:
        # The set should be enough on its own; the series scan also catches a
        # replayed id that reached the store some other way.
        return message_id in self.seen_message_ids or self.store.contains_message(message_id)

    def absorb(self, envelope: Optional[MessageEnvelope]) -> bool:
        """
        Fold one message into the series.
        Returns True if it was new and got applied, False if it was discarded
        (missing identity or already seen).
        """
        if envelope is None or not envelope.message_id or envelope.sent is None:
            log.debug("Discarding envelope without identity")
            return False

        with self._lock:
            message_id = envelope.message_id
            if self.is_duplicate(message_id):
                log.debug("Discarding duplicate message_id=%s", message_id)
                return False

            self.seen_message_ids.add(message_id)

            inserted = 0
            for record in envelope.records:
                key = SeriesKey(record.symbol, record.timeframe)
                point = SeriesPoint(
                    sent=envelope.sent,
                    price=record.price,
                    count=record.count,
                    levels=record.levels,
                    message_id=message_id,
                )
                if self.store.upsert(key, point):
                    inserted += 1

        log.info(
            "Absorbed message_id=%s records=%d inserted=%d series=%d",
            message_id,
            len(envelope.records),
            inserted,
            len(self.store.series),
        )
        return True

    def rebound(self, max_length: int) -> int:
        with self._lock:
            dropped = self.store.rebound(max_length)
        if dropped:
            log.info("Rebound max_length=%d dropped=%d", max_length, dropped)
        return dropped

    def latest(self, key: SeriesKey) -> List[SeriesPoint]:
        return self.store.get_points(key)

    def all(self) -> Dict[SeriesKey, List[SeriesPoint]]:
        return self.store.snapshot()
