from __future__ import annotations

import httpx
import openai

from pocketmem.config import NOTHING_STORED_MESSAGE, SAVE_WARNING
from pocketmem.manager import MemoryManager, PipelineState
from pocketmem.schemas import ResultKind
from pocketmem.storage import MemoryStore

from tests.fakes import BrokenDatabase, FakeLLMClient, queue_json


def _manager(store, responses) -> tuple[MemoryManager, FakeLLMClient]:
    llm = FakeLLMClient(responses)
    return MemoryManager(store=store, llm_client=llm), llm


def _rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, request=request)
    return openai.RateLimitError("Rate limit exceeded", response=response, body=None)


def test_statement_is_extracted_and_stored(store) -> None:
    manager, llm = _manager(
        store,
        {
            "classify": ["statement"],
            "extract": [
                queue_json(
                    {"type": "Fact", "what": "favorite food", "value": "pizza", "expires": "Never"}
                )
            ],
        },
    )

    result = manager.submit("Remember my favorite food is pizza")

    assert result.kind is ResultKind.SAVED
    assert result.clear_input
    assert result.memory.what == "favorite food"
    assert result.memory.value == "pizza"
    assert "Memory saved!" in result.message
    assert "Total memories: 1" in result.message
    assert [m.value for m in store.memories] == ["pizza"]
    assert [call["temperature"] for call in llm.calls] == [0.0, 0.0]
    assert manager.state is PipelineState.IDLE


def test_question_recalls_from_stored_memories(store) -> None:
    store.add("favorite food", "pizza")
    manager, llm = _manager(
        store,
        {"classify": ["  Question\n"], "recall": ["Your favorite food is pizza."]},
    )

    result = manager.submit("What is my favorite food?")

    assert result.kind is ResultKind.ANSWER
    assert result.message == "Answer:\n\nYour favorite food is pizza."
    assert result.clear_input
    recall_call = llm.calls[-1]
    assert recall_call["kind"] == "recall"
    assert "- favorite food: pizza" in recall_call["system"]
    assert "I don't know." in recall_call["system"]
    assert recall_call["temperature"] == 0.3
    assert len(store.memories) == 1


def test_question_without_memories_does_not_extract(store) -> None:
    manager, llm = _manager(store, {"classify": ["question"]})

    result = manager.submit("What is my favorite food?")

    assert result.kind is ResultKind.ANSWER
    assert result.message == NOTHING_STORED_MESSAGE
    assert [call["kind"] for call in llm.calls] == ["classify"]
    assert store.memories == ()


def test_unclear_extraction_appends_nothing(store) -> None:
    manager, _ = _manager(
        store, {"classify": ["statement"], "extract": [queue_json({"error": "unclear"})]}
    )

    result = manager.submit("hello")

    assert result.kind is ResultKind.UNCLEAR
    assert "Could not extract memory" in result.message
    assert not result.clear_input
    assert store.memories == ()


def test_invalid_extraction_response_appends_nothing(store) -> None:
    manager, _ = _manager(
        store,
        {"classify": ["statement", "statement"], "extract": ["Sure! I'll remember.", queue_json({"what": ""})]},
    )

    assert manager.submit("I like tea").kind is ResultKind.INVALID
    assert manager.submit("I like coffee").kind is ResultKind.INVALID
    assert store.memories == ()


def test_fenced_json_is_accepted(store) -> None:
    reply = '```json\n{"type": "Fact", "what": "city", "value": "Oslo", "expires": "Never"}\n```'
    manager, _ = _manager(store, {"classify": ["statement"], "extract": [reply]})

    result = manager.submit("I live in Oslo")

    assert result.kind is ResultKind.SAVED
    assert store.memories[0].value == "Oslo"


def test_rate_limit_error_is_classified(store) -> None:
    existing = store.add("pet", "cat")
    manager, _ = _manager(store, {"classify": [_rate_limit_error()]})

    result = manager.submit("My dog is called Rex")

    assert result.kind is ResultKind.ERROR
    assert result.error_category == "rate_limited"
    assert "Rate limit" in result.message
    assert store.memories == (existing,)
    assert manager.state is PipelineState.ERROR


def test_failure_during_recall_leaves_memories(store) -> None:
    store.add("pet", "cat")
    manager, _ = _manager(
        store, {"classify": ["question"], "recall": [RuntimeError("boom")]}
    )

    result = manager.submit("What is my pet?")

    assert result.kind is ResultKind.ERROR
    assert result.error_category == "unknown"
    assert result.message == "Error: boom"
    assert len(store.memories) == 1


def test_empty_input_is_rejected_without_calls(store) -> None:
    manager, llm = _manager(store, {})

    result = manager.submit("   ")

    assert result.kind is ResultKind.REJECTED
    assert llm.calls == []
    assert manager.state is PipelineState.IDLE


def test_busy_manager_rejects_new_submission(store) -> None:
    manager, llm = _manager(store, {})
    assert not manager.busy
    manager._busy = True

    assert manager.submit("Remember this").kind is ResultKind.BUSY
    assert llm.calls == []


def test_state_recovers_after_error(store) -> None:
    manager, _ = _manager(
        store,
        {
            "classify": [TimeoutError("Request timed out"), "statement"],
            "extract": [queue_json({"what": "tea", "value": "green"})],
        },
    )

    first = manager.submit("I like green tea")
    second = manager.submit("I like green tea")

    assert first.error_category == "timeout"
    assert second.kind is ResultKind.SAVED
    assert second.memory.type == "Fact"
    assert second.memory.expires == "Never"
    assert manager.state is PipelineState.IDLE
    assert len(manager.history) == 2


def test_zero_value_is_a_valid_extraction(store) -> None:
    manager, _ = _manager(
        store,
        {
            "classify": ["statement"],
            "extract": [
                queue_json({"type": "Fact", "what": "number of siblings", "value": 0, "expires": "Never"})
            ],
        },
    )

    result = manager.submit("I have 0 siblings")

    assert result.kind is ResultKind.SAVED
    assert store.memories[0].value == "0"


def test_failed_save_is_reported_with_the_result() -> None:
    store = MemoryStore(BrokenDatabase(":memory:"))
    store.load()
    manager, _ = _manager(
        store,
        {"classify": ["statement"], "extract": [queue_json({"what": "city", "value": "Oslo"})]},
    )

    result = manager.submit("I live in Oslo")

    assert result.kind is ResultKind.SAVED
    assert result.warning == SAVE_WARNING
    assert result.render().endswith(SAVE_WARNING)
