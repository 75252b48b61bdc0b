"""Personal memory assistant backed by a language model.

The package wires together

* prompt templates for classification, extraction, and recall,
* an OpenAI-compatible client issuing those three request types,
* a local store that keeps the fact list as a single JSON blob, and
* a manager that runs each utterance through classify, then recall or extract.
"""

from .clients import LLMClient
from .errors import (
    ApiError,
    ErrorCategory,
    ExtractionParseError,
    ExtractionUnclear,
    MemoryImportError,
    PocketMemError,
    StorageError,
    ValidationError,
    classify_error,
)
from .manager import MemoryManager, PipelineState
from .prompts import CLASSIFICATION_PROMPT, EXTRACTION_PROMPT, build_recall_prompt
from .runtime import PocketMemRuntime, main as runtime_main
from .schemas import Memory, PipelineResult, ResultKind
from .storage import KeyValueDatabase, MemoryStore

__all__ = [
    "ApiError",
    "CLASSIFICATION_PROMPT",
    "EXTRACTION_PROMPT",
    "ErrorCategory",
    "ExtractionParseError",
    "ExtractionUnclear",
    "KeyValueDatabase",
    "LLMClient",
    "Memory",
    "MemoryImportError",
    "MemoryManager",
    "MemoryStore",
    "PipelineResult",
    "PipelineState",
    "PocketMemError",
    "PocketMemRuntime",
    "ResultKind",
    "StorageError",
    "ValidationError",
    "build_recall_prompt",
    "classify_error",
    "runtime_main",
]
