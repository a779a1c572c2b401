from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from matrix_live.models.snapshot import MessageEnvelope, SnapshotRecord


class FeedPayload(BaseModel):
    """
    What one fetch cycle hands to the rest of the app.

    items:
      records parsed from the latest message body
    last_updated:
      when we fetched it (ISO, UTC)
    message_id / sent:
      identity of the upstream message; None if the fetch came back partial

    Serialized with camelCase keys (items, lastUpdated, messageId, sent)
    since that is the JSON shape the dashboard reads.
    """

    model_config = ConfigDict(populate_by_name=True)

    items: List[SnapshotRecord] = []
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    message_id: Optional[str] = Field(default=None, alias="messageId")
    sent: Optional[Union[str, int, float]] = None

    def to_envelope(self) -> MessageEnvelope:
        return MessageEnvelope(
            message_id=self.message_id,
            sent=self.sent,
            records=list(self.items),
        )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
