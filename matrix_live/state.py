import threading
from typing import Optional

from matrix_live.config import get_settings
from matrix_live.jobs.poller import Poller
from matrix_live.providers.loader import get_provider
from matrix_live.series.aggregator import SnapshotAggregator
from matrix_live.storage.snapshot_file import SnapshotFileStore

settings = get_settings()

# Global in-memory series for the running API process
aggregator = SnapshotAggregator(max_length=settings.max_series_points)

# Latest fetched payload, for the flat table view
snapshots = SnapshotFileStore(settings.snapshot_path)

# Built on first use: the provider needs GAGGLE_API_KEY, the rest of the app doesn't
_poller: Optional[Poller] = None
_poller_lock = threading.Lock()


def get_aggregator() -> SnapshotAggregator:
    return aggregator


def get_snapshots() -> SnapshotFileStore:
    return snapshots


def get_poller() -> Poller:
    global _poller
    with _poller_lock:
        if _poller is None:
            _poller = Poller(
                provider=get_provider(),
                aggregator=aggregator,
                snapshots=snapshots,
                split_char=settings.split_char,
                symbol_prefix=settings.symbol_prefix,
            )
        return _poller


def close_poller() -> None:
    global _poller
    with _poller_lock:
        if _poller is not None:
            _poller.provider.close()
            _poller = None
