"""High-level orchestration of the classify / extract / recall pipeline."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol

from .config import (
    CLASSIFICATION_TEMPERATURE,
    EXTRACTION_HINT,
    EXTRACTION_TEMPERATURE,
    NOTHING_STORED_MESSAGE,
    RECALL_TEMPERATURE,
)
from .errors import (
    ExtractionParseError,
    ExtractionUnclear,
    ValidationError,
    classify_error,
)
from .prompts import CLASSIFICATION_PROMPT, EXTRACTION_PROMPT, build_recall_prompt
from .schemas import Memory, PipelineResult, ResultKind, as_text
from .storage import MemoryStore

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    def complete(self, system_prompt: str, user_text: str, *, temperature: float) -> str: ...


class PipelineState(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    RECALLING = "recalling"
    ERROR = "error"


@dataclass
class MemoryManager:
    """Drive one utterance through classification and then recall or extraction."""

    store: MemoryStore
    llm_client: CompletionClient
    state: PipelineState = PipelineState.IDLE
    history: List[PipelineResult] = field(default_factory=list)
    _busy: bool = field(default=False, init=False, repr=False)

    @property
    def busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def submit(self, utterance: str) -> PipelineResult:
        text = (utterance or "").strip()
        if not text:
            return PipelineResult(ResultKind.REJECTED, "Please enter something first.")
        if self._busy:
            return PipelineResult(ResultKind.BUSY, "Still processing the previous request.")

        self._busy = True
        try:
            result = self._run(text)
        finally:
            self._busy = False
        self.history.append(result)
        return result

    def _run(self, text: str) -> PipelineResult:
        try:
            self.state = PipelineState.CLASSIFYING
            label = self.classify(text)
            memories = self.store.memories
            if label == "question":
                if memories:
                    self.state = PipelineState.RECALLING
                    result = self._recall(text)
                else:
                    result = PipelineResult(
                        ResultKind.ANSWER, NOTHING_STORED_MESSAGE, clear_input=True
                    )
            else:
                self.state = PipelineState.EXTRACTING
                result = self._extract(text)
        except ExtractionParseError as exc:
            logger.warning("Invalid extraction response: %s", exc)
            result = PipelineResult(
                ResultKind.INVALID, f"Invalid response from the model.\n{EXTRACTION_HINT}"
            )
        except ExtractionUnclear:
            result = PipelineResult(
                ResultKind.UNCLEAR, f"Could not extract memory.\n{EXTRACTION_HINT}"
            )
        except Exception as exc:
            error = classify_error(exc)
            logger.error("Language model request failed (%s): %s", error.category.value, exc)
            self.state = PipelineState.ERROR
            return PipelineResult(
                ResultKind.ERROR, error.user_message, error_category=error.category.value
            )
        self.state = PipelineState.IDLE
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def classify(self, text: str) -> str:
        raw = self.llm_client.complete(
            CLASSIFICATION_PROMPT, text, temperature=CLASSIFICATION_TEMPERATURE
        )
        label = raw.strip().lower()
        logger.debug("Classified %r as %r", text, label)
        return label

    def _recall(self, text: str) -> PipelineResult:
        prompt = build_recall_prompt(self.store.memories, text)
        answer = self.llm_client.complete(prompt, text, temperature=RECALL_TEMPERATURE)
        return PipelineResult(ResultKind.ANSWER, f"Answer:\n\n{answer.strip()}", clear_input=True)

    def _extract(self, text: str) -> PipelineResult:
        raw = self.llm_client.complete(EXTRACTION_PROMPT, text, temperature=EXTRACTION_TEMPERATURE)
        fact = self.parse_fact(raw)
        try:
            memory = self.store.add(
                as_text(fact.get("what")),
                as_text(fact.get("value")),
                type=str(fact.get("type") or ""),
                expires=str(fact.get("expires") or ""),
            )
        except ValidationError as exc:
            raise ExtractionParseError(f"Missing fields in {raw!r}") from exc
        return PipelineResult(
            ResultKind.SAVED,
            self._confirmation(memory),
            memory=memory,
            clear_input=True,
            warning=self.store.last_warning,
        )

    def _confirmation(self, memory: Memory) -> str:
        return (
            "Memory saved!\n\n"
            f"Type: {memory.type}\n"
            f"What: {memory.what}\n"
            f"Value: {memory.value}\n"
            f"Expires: {memory.expires}\n\n"
            f"Total memories: {len(self.store)}"
        )

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------
    @classmethod
    def parse_fact(cls, raw: str) -> Mapping[str, Any]:
        try:
            parsed = cls._extract_json(raw)
        except json.JSONDecodeError as exc:
            raise ExtractionParseError(raw) from exc
        if not isinstance(parsed, Mapping):
            raise ExtractionParseError(raw)
        if parsed.get("error"):
            raise ExtractionUnclear(str(parsed["error"]))
        return parsed

    @staticmethod
    def _extract_json(message: str) -> Optional[Any]:
        sanitized = message.strip()
        if sanitized.startswith("```"):
            sanitized = sanitized[3:]
            if sanitized.lower().startswith("json"):
                sanitized = sanitized[4:]
            sanitized = sanitized.lstrip("\n")
            if sanitized.endswith("```"):
                sanitized = sanitized[:-3]
        elif sanitized.lower().startswith("json"):
            sanitized = sanitized[4:].lstrip(": ")

        try:
            return json.loads(sanitized)
        except json.JSONDecodeError:
            pass

        start = None
        depth = 0
        in_string = False
        escape = False
        for idx, char in enumerate(sanitized):
            if start is None:
                if char == "{":
                    start = idx
                    depth = 1
            else:
                if in_string:
                    if escape:
                        escape = False
                    elif char == "\\":
                        escape = True
                    elif char == '"':
                        in_string = False
                else:
                    if char == '"':
                        in_string = True
                    elif char == "{":
                        depth += 1
                    elif char == "}":
                        depth -= 1
                        if depth == 0 and start is not None:
                            return json.loads(sanitized[start : idx + 1])
        return None


__all__ = ["CompletionClient", "MemoryManager", "PipelineState"]
