"""Typed data structures used by the memory assistant."""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import DEFAULT_EXPIRES, MEMORY_TYPE


def _default_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def as_text(value: Any) -> str:
    """Render a JSON scalar as text; only a missing value becomes empty."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return json.dumps(value)
    return str(value)


def new_memory_id() -> str:
    """Return an id made of epoch milliseconds and a random suffix."""

    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class Memory:
    """A single stored fact."""

    what: str
    value: str
    type: str = MEMORY_TYPE
    expires: str = DEFAULT_EXPIRES
    id: str = field(default_factory=new_memory_id)
    created_at: str = field(default_factory=_default_timestamp)

    def with_content(self, what: str, value: str) -> "Memory":
        return replace(self, what=what, value=value)

    def to_payload(self) -> Mapping[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "what": self.what,
            "value": self.value,
            "expires": self.expires,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Memory":
        """Build a record from its JSON form, filling in missing metadata."""

        kwargs: Dict[str, Any] = {
            "what": as_text(payload.get("what")),
            "value": as_text(payload.get("value")),
            "type": str(payload.get("type") or MEMORY_TYPE),
            "expires": str(payload.get("expires") or DEFAULT_EXPIRES),
        }
        # Older exports carry numeric ids.
        if payload.get("id") is not None:
            kwargs["id"] = str(payload["id"])
        if payload.get("createdAt"):
            kwargs["created_at"] = str(payload["createdAt"])
        return cls(**kwargs)


class ResultKind(str, Enum):
    REJECTED = "rejected"
    BUSY = "busy"
    ANSWER = "answer"
    SAVED = "saved"
    UNCLEAR = "unclear"
    INVALID = "invalid"
    ERROR = "error"


@dataclass
class PipelineResult:
    """Outcome of one submitted utterance, ready to show to the user."""

    kind: ResultKind
    message: str
    memory: Optional[Memory] = None
    error_category: Optional[str] = None
    clear_input: bool = False
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind in (ResultKind.ANSWER, ResultKind.SAVED)

    def render(self) -> str:
        if self.warning:
            return f"{self.message}\n\n{self.warning}"
        return self.message


def dumps_memories(memories: Iterable[Memory], *, indent: int | None = None) -> str:
    """Render ``memories`` as a JSON array."""

    payload: List[Mapping[str, Any]] = [memory.to_payload() for memory in memories]
    return json.dumps(payload, ensure_ascii=False, indent=indent)


__all__ = [
    "Memory",
    "PipelineResult",
    "ResultKind",
    "as_text",
    "dumps_memories",
    "new_memory_id",
]
