from __future__ import annotations

import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Iterable, List, Optional

from matrix_live.models.snapshot import SnapshotRecord

log = logging.getLogger("matrix_text")

DEFAULT_SPLIT_CHAR = "<br/>"
DEFAULT_SYMBOL_PREFIX = "@ES"

# Enough digits for any finite double plus two places
_FORMAT_PRECISION = 400

# Third token of a sub-day line, e.g. "@ES 5 Min ..."
SUB_DAY_TAG = "Min"

MIN_TOKENS = 8
LEVEL_COUNT = 4

_DECIMAL_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_TWO_PLACES = Decimal("0.01")


class TimeframeKind(Enum):
    """
    How the timeframe is laid out on a line.

    SUB_DAY: two tokens ("5 Min"); numbers start at token 3
    OTHER: one token ("Daily"); numbers start at token 2
    """
    SUB_DAY = "sub_day"
    OTHER = "other"

    @property
    def width(self) -> int:
        return 2 if self is TimeframeKind.SUB_DAY else 1

    @property
    def first_value_index(self) -> int:
        return 1 + self.width


def classify_timeframe(tokens: List[str]) -> TimeframeKind:
    if len(tokens) > 2 and tokens[2] == SUB_DAY_TAG:
        return TimeframeKind.SUB_DAY
    return TimeframeKind.OTHER


def parse_decimal(raw: str, strip_separators: bool = False) -> Optional[float]:
    """
    Strict decimal parse. Returns None for anything that isn't a plain finite
    number (no nan/inf, no trailing junk, no underscores).
    """
    s = raw.replace(",", "") if strip_separators else raw
    if not _DECIMAL_RE.match(s):
        return None
    value = float(s)
    if not math.isfinite(value):
        return None
    return value


def parse_line(line: str) -> Optional[SnapshotRecord]:
    """Parse one already-trimmed matrix line. Returns None if the line is unusable."""
    tokens = line.split()
    if len(tokens) < MIN_TOKENS:
        return None

    kind = classify_timeframe(tokens)
    start = kind.first_value_index

    # price, count, then exactly four levels
    if len(tokens) < start + 2 + LEVEL_COUNT:
        return None

    timeframe = " ".join(tokens[1:start])
    price = parse_decimal(tokens[start], strip_separators=True)
    count = parse_decimal(tokens[start + 1])
    levels = [
        parse_decimal(tok, strip_separators=True)
        for tok in tokens[start + 2:start + 2 + LEVEL_COUNT]
    ]

    if price is None or count is None or any(lvl is None for lvl in levels):
        return None

    return SnapshotRecord(
        symbol=tokens[0],
        timeframe=timeframe,
        price=price,
        count=count,
        levels=tuple(levels),
    )


def parse_email_body(
    body: object,
    split_char: str = DEFAULT_SPLIT_CHAR,
    symbol_prefix: str = DEFAULT_SYMBOL_PREFIX,
) -> List[SnapshotRecord]:
    """
    Turns a cleaned email body into matrix records.

    - body is split on split_char, each line trimmed
    - only lines starting with symbol_prefix are considered (the rest is prose)
    - lines that don't parse are dropped; this never raises
    """
    if not body or not isinstance(body, str):
        return []

    records: List[SnapshotRecord] = []
    dropped = 0

    # No delimiter configured: the whole body is one line
    lines = body.split(split_char) if split_char else [body]

    for raw_line in lines:
        line = raw_line.strip()
        if not line.startswith(symbol_prefix):
            continue

        record = parse_line(line)
        if record is None:
            dropped += 1
            continue
        records.append(record)

    if dropped:
        log.debug("Dropped malformed lines count=%d kept=%d", dropped, len(records))
    return records


def format_fixed2(value: float) -> str:
    """
    Two-decimal fixed formatting with ties rounded away from zero on the
    exact binary value (0.125 -> "0.13", 2.675 -> "2.67"). Zero is unsigned.
    """
    if value == 0:
        value = 0.0
    with localcontext() as ctx:
        ctx.prec = _FORMAT_PRECISION
        rounded = Decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    return format(rounded, "f")


def format_record_line(record: SnapshotRecord) -> str:
    parts = [
        record.symbol,
        record.timeframe,
        format_fixed2(record.price),
        format_fixed2(record.count),
    ]
    parts.extend(format_fixed2(lvl) for lvl in record.levels)
    return " ".join(parts)


def format_raw_matrix(records: Iterable[SnapshotRecord]) -> str:
    """Clipboard export: one line per record, newline-joined, no trailing newline."""
    return "\n".join(format_record_line(r) for r in records)
