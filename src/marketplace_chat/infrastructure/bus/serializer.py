from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Self


class FanoutTarget(StrEnum):
    ROOM = "room"
    USER = "user"
    ALL = "all"


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


@dataclass(frozen=True, slots=True)
class FanoutEnvelope:
    """One delivery request shipped between gateway processes."""

    target: FanoutTarget
    event: str
    data: dict[str, Any] = field(default_factory=dict)
    conversation_id: int | None = None
    user_id: int | None = None
    exclude_connection: str | None = None

    def serialize(self) -> str:
        return json.dumps(asdict(self), cls=_Encoder)

    @classmethod
    def deserialize(cls, raw: str | bytes) -> Self:
        payload = json.loads(raw)
        return cls(
            target=FanoutTarget(payload["target"]),
            event=payload["event"],
            data=payload.get("data") or {},
            conversation_id=payload.get("conversation_id"),
            user_id=payload.get("user_id"),
            exclude_connection=payload.get("exclude_connection"),
        )
