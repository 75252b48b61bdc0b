from __future__ import annotations

import json
from typing import Any, List, Mapping, Sequence, Union

from pocketmem.errors import StorageError
from pocketmem.prompts import CLASSIFICATION_PROMPT, EXTRACTION_PROMPT
from pocketmem.storage import KeyValueDatabase

Reply = Union[str, BaseException]


class FakeLLMClient:
    """Reply from per-prompt queues; exceptions in a queue are raised."""

    def __init__(self, responses: Mapping[str, Sequence[Reply]]) -> None:
        self.responses = {key: list(queue) for key, queue in responses.items()}
        self.calls: List[Mapping[str, Any]] = []

    @staticmethod
    def _kind(system_prompt: str) -> str:
        if system_prompt == CLASSIFICATION_PROMPT:
            return "classify"
        if system_prompt == EXTRACTION_PROMPT:
            return "extract"
        return "recall"

    def complete(self, system_prompt: str, user_text: str, *, temperature: float) -> str:
        kind = self._kind(system_prompt)
        self.calls.append(
            {"kind": kind, "system": system_prompt, "user": user_text, "temperature": temperature}
        )
        queue = self.responses.get(kind)
        if not queue:
            raise AssertionError(f"No response queued for {kind} prompt")
        reply = queue.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def queue_json(data: Mapping[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False)


class BrokenDatabase(KeyValueDatabase):
    """A database whose writes always fail."""

    def set(self, key: str, value: str) -> None:
        raise StorageError("disk full")
