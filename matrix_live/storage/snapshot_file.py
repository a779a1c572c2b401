from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from matrix_live.models.feed import FeedPayload

log = logging.getLogger("snapshot_file")


class SnapshotFileStore:
    """
    Keeps the most recent FeedPayload as a JSON file (overwritten on every save).
    The flat table view and /api/data read from here.

    Saves go through a temp file in the same directory plus os.replace, so a
    reader sees either the old snapshot or the new one, never a partial file.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def save(self, payload: FeedPayload) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(payload.to_json_dict(), indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        log.debug("Saved snapshot path=%s items=%d", self.path, len(payload.items))

    def load(self) -> Optional[FeedPayload]:
        if not self.path.exists():
            return None
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return FeedPayload.model_validate(data)
