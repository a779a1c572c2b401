from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple, Union

Timestamp = Union[str, int, float]
Levels = Tuple[float, float, float, float]


@dataclass(frozen=True)
class SnapshotRecord:
    """
    One parsed line of a matrix email.

    symbol: ticker as it appears in the email (e.g., @ES)
    timeframe: "Daily", "Weekly", or a sub-day interval like "5 Min"
    price: last price
    count: signed counter (positive = up, negative = down)
    levels: four price bands, in the order the email lists them
    """
    symbol: str
    timeframe: str
    price: float
    count: float
    levels: Levels


@dataclass(frozen=True)
class MessageEnvelope:
    """
    One upstream message: its identity plus the records parsed from its body.
    message_id/sent may be missing when the upstream call returned partial data.
    """
    message_id: Optional[str]
    sent: Optional[Timestamp]
    records: List[SnapshotRecord] = field(default_factory=list)


class SeriesKey(NamedTuple):
    symbol: str
    timeframe: str


@dataclass(frozen=True)
class SeriesPoint:
    sent: Timestamp
    price: float
    count: float
    levels: Levels
    message_id: str
