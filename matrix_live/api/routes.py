from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from matrix_live.jobs.poller import Poller, fetch_feed
from matrix_live.models.feed import FeedPayload
from matrix_live.models.snapshot import SeriesKey, SeriesPoint
from matrix_live.parsing.matrix_text import format_raw_matrix
from matrix_live.series.aggregator import SnapshotAggregator
from matrix_live.state import get_aggregator, get_poller, get_snapshots
from matrix_live.storage.snapshot_file import SnapshotFileStore

log = logging.getLogger("api")

router = APIRouter()


def require_poller() -> Poller:
    try:
        return get_poller()
    except (RuntimeError, ValueError) as e:
        # Missing/unknown provider config
        raise HTTPException(status_code=503, detail=str(e))


def point_to_dict(p: SeriesPoint) -> dict:
    return {
        "sent": p.sent,
        "price": p.price,
        "count": p.count,
        "levels": list(p.levels),
        "messageId": p.message_id,
    }


def series_to_dict(key: SeriesKey, points: List[SeriesPoint]) -> dict:
    return {
        "symbol": key.symbol,
        "timeframe": key.timeframe,
        "points": [point_to_dict(p) for p in points],
    }


def _error_payload(message: str) -> dict:
    body = FeedPayload().to_json_dict()
    body["error"] = message
    return body


def _latest_payload(snapshots: SnapshotFileStore) -> FeedPayload:
    return snapshots.load() or FeedPayload()


def _snapshot_error(e: Exception) -> PlainTextResponse:
    log.error("Snapshot read failed error=%s", repr(e))
    return PlainTextResponse(f"Snapshot unavailable: {e}", status_code=500)


@router.get("/api/data")
def data(snapshots: SnapshotFileStore = Depends(get_snapshots)):
    """Last persisted payload (flat table view). Empty payload if nothing was polled yet."""
    try:
        payload = _latest_payload(snapshots)
    except Exception as e:
        log.error("Snapshot read failed error=%s", repr(e))
        return JSONResponse({"error": str(e)}, status_code=500)
    return payload.to_json_dict()


@router.get("/api/gaggle-direct")
def gaggle_direct(poller: Poller = Depends(require_poller)):
    """
    Fetch the latest message right now (no persistence) and fold it into the series.
    On upstream failure: 500 with the error and an empty payload.
    """
    try:
        payload = fetch_feed(poller.provider, poller.split_char, poller.symbol_prefix)
    except Exception as e:
        log.error("Direct fetch failed error=%s", repr(e))
        return JSONResponse(_error_payload(str(e)), status_code=500)

    poller.aggregator.absorb(payload.to_envelope())
    return payload.to_json_dict()


@router.get("/api/poll-gaggle")
def poll_gaggle(poller: Poller = Depends(require_poller)):
    """Run one guarded poll cycle (fetch, absorb, persist)."""
    try:
        result = poller.poll_once()
    except Exception as e:
        log.error("Poll failed error=%s", repr(e))
        return JSONResponse({"error": str(e)}, status_code=500)

    if result.status == "skipped":
        return JSONResponse({"error": "poll already in progress"}, status_code=409)
    if result.status == "failed":
        return JSONResponse({"error": result.error}, status_code=500)

    return {"success": True, "count": result.count, "absorbed": result.absorbed}


@router.get("/api/series")
def series(
    symbol: Optional[str] = Query(None, description="Symbol, e.g., @ES"),
    timeframe: Optional[str] = Query(None, description="Timeframe, e.g., Daily or 5 Min"),
    aggregator: SnapshotAggregator = Depends(get_aggregator),
):
    """
    All series in discovery order, or one series when symbol + timeframe are given.
    An unknown key returns an empty point list.
    """
    if (symbol is None) != (timeframe is None):
        raise HTTPException(status_code=400, detail="symbol and timeframe go together")

    if symbol is not None:
        key = SeriesKey(symbol, timeframe)
        return series_to_dict(key, aggregator.latest(key))

    return {
        "maxLength": aggregator.max_length,
        "series": [series_to_dict(k, pts) for k, pts in aggregator.all().items()],
    }


@router.put("/api/series/max-length")
def set_max_length(
    value: int = Query(..., ge=1, description="Points to keep per series"),
    aggregator: SnapshotAggregator = Depends(get_aggregator),
):
    dropped = aggregator.rebound(value)
    return {"ok": True, "maxLength": aggregator.max_length, "dropped": dropped}


@router.get("/api/raw", response_class=PlainTextResponse)
def raw(snapshots: SnapshotFileStore = Depends(get_snapshots)):
    """Clipboard export of the latest records."""
    try:
        payload = _latest_payload(snapshots)
    except Exception as e:
        return _snapshot_error(e)
    return format_raw_matrix(payload.items)


@router.get("/", response_class=PlainTextResponse)
def home(snapshots: SnapshotFileStore = Depends(get_snapshots)):
    try:
        payload = _latest_payload(snapshots)
    except Exception as e:
        return _snapshot_error(e)

    if not payload.items:
        return "Waiting for latest matrix email...\n"

    return f"Last Updated: {payload.last_updated or 'N/A'}\n\n{format_raw_matrix(payload.items)}\n"
