from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from matrix_live.models.snapshot import SeriesKey, SeriesPoint


@dataclass
class Series:
    key: SeriesKey
    points: List[SeriesPoint] = field(default_factory=list)

    def has_message(self, message_id: str) -> bool:
        return any(p.message_id == message_id for p in self.points)

    def trim(self, max_length: int) -> int:
        """Drop oldest points until at most max_length remain. Returns how many were dropped."""
        excess = len(self.points) - max_length
        if excess <= 0:
            return 0
        del self.points[:excess]
        return excess


def _check_max_length(max_length: int) -> int:
    if isinstance(max_length, bool) or not isinstance(max_length, int) or max_length < 1:
        raise ValueError(f"max_length must be a positive int, got {max_length!r}")
    return max_length


@dataclass
class SeriesStore:
    """
    In-memory rolling history per (symbol, timeframe).

    series[(symbol, timeframe)] -> points in arrival order (oldest first)

    - a series is created on its first point and never removed
    - dict order is discovery order of the keys
    - trimming is eager: every mutation leaves each series at <= max_length
    """
    max_length: int = 100
    series: Dict[SeriesKey, Series] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_max_length(self.max_length)

    def get_or_create(self, key: SeriesKey) -> Series:
        s = self.series.get(key)
        if s is None:
            s = Series(key=key)
            self.series[key] = s
        return s

    def upsert(self, key: SeriesKey, point: SeriesPoint) -> bool:
        """
        Append one point to the series for key.
        Returns False (and changes nothing) if that series already holds this message_id.
        """
        s = self.get_or_create(key)
        if s.has_message(point.message_id):
            return False

        s.points.append(point)
        s.trim(self.max_length)
        return True

    def contains_message(self, message_id: str) -> bool:
        return any(s.has_message(message_id) for s in self.series.values())

    def rebound(self, max_length: int) -> int:
        """
        Change the bound and trim every existing series to its trailing max_length points.
        Returns the total number of points dropped.
        """
        self.max_length = _check_max_length(max_length)
        return sum(s.trim(self.max_length) for s in self.series.values())

    def keys(self) -> List[SeriesKey]:
        return list(self.series.keys())

    def get_points(self, key: SeriesKey) -> List[SeriesPoint]:
        s = self.series.get(key)
        return list(s.points) if s is not None else []

    def snapshot(self) -> Dict[SeriesKey, List[SeriesPoint]]:
        return {key: list(s.points) for key, s in self.series.items()}
