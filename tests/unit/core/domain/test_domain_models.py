"""
Unit tests for core domain models and enums.

Tests verify:
- Message construction helpers and dict round trips used by persistence
- LoopBudget validation
- LoopState window handling
- ResourceType coercion
"""

import pytest

from toolrelay.core.domain.enums import LoopPhase, MessageRole, ResourceType
from toolrelay.core.domain.models import (
    ContextExtraction,
    LoopBudget,
    LoopResult,
    LoopState,
    Message,
    ResourceReference,
    StructuredResponse,
    ToolCallRequest,
    ToolCallResult,
)


class TestMessage:
    def test_user_message(self) -> None:
        msg = Message.user("hello")
        assert msg.role == MessageRole.USER
        assert msg.content == "hello"
        assert msg.tool_calls == ()
        assert msg.created_at

    def test_assistant_without_content(self) -> None:
        msg = Message.assistant(None, [ToolCallRequest("search", {"query": "x"})])
        assert msg.content == ""
        assert msg.tool_calls[0].name == "search"

    def test_messages_are_immutable(self) -> None:
        msg = Message.user("hello")
        with pytest.raises(AttributeError):
            msg.content = "changed"  # type: ignore[misc]

    def test_dict_round_trip_with_tool_turns(self) -> None:
        result = ToolCallResult(
            tool_name="read_file",
            server_name="files",
            success=False,
            content="No such file",
            error="No such file",
            error_type="ToolExecutionError",
            duration_ms=12,
        )
        original = Message.tool([result])

        restored = Message.from_dict(original.to_dict())

        assert restored == original
        assert restored.tool_results[0].error_type == "ToolExecutionError"

    def test_to_dict_omits_empty_tool_fields(self) -> None:
        data = Message.user("hi").to_dict()
        assert "tool_calls" not in data
        assert "tool_results" not in data
        assert data["role"] == "user"

    def test_from_dict_rejects_unknown_role(self) -> None:
        with pytest.raises(ValueError):
            Message.from_dict({"role": "robot", "content": "beep"})


class TestToolCallRequest:
    def test_from_dict_defaults_arguments(self) -> None:
        request = ToolCallRequest.from_dict({"name": "list"})
        assert request.arguments == {}


class TestStructuredResponse:
    def test_has_tool_calls(self) -> None:
        assert StructuredResponse(tool_calls=(ToolCallRequest("a"),)).has_tool_calls
        assert not StructuredResponse(content="done").has_tool_calls

    def test_defaults(self) -> None:
        response = StructuredResponse()
        assert response.content is None
        assert response.needs_more_work is False


class TestContextExtraction:
    def test_empty(self) -> None:
        assert ContextExtraction.empty().is_empty

    def test_resources_only_is_not_empty(self) -> None:
        extraction = ContextExtraction(
            resources=(ResourceReference(ResourceType.SESSION, "s-1", "sessionId"),)
        )
        assert not extraction.is_empty

    def test_resource_to_dict(self) -> None:
        resource = ResourceReference(ResourceType.CHANNEL, "C42", "channelId")
        assert resource.to_dict() == {"type": "channel", "id": "C42", "parameter": "channelId"}


class TestLoopBudget:
    def test_defaults(self) -> None:
        budget = LoopBudget()
        assert budget.max_iterations == 10
        assert budget.max_duration_seconds == 300.0
        assert budget.tool_timeout_seconds == 30.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_iterations": 0},
            {"max_duration_seconds": 0},
            {"tool_timeout_seconds": -1},
        ],
    )
    def test_rejects_non_positive_caps(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            LoopBudget(**kwargs)


class TestLoopState:
    def test_initial_state(self) -> None:
        state = LoopState(conversation_id="c1", conversation=[], budget=LoopBudget())
        assert state.phase == LoopPhase.IDLE
        assert state.iteration_count == 0
        assert state.summary == ""
        assert state.elapsed_seconds() >= 0

    def test_window_starts_at_window_start(self) -> None:
        messages = [Message.user(str(i)) for i in range(5)]
        state = LoopState(conversation_id="c1", conversation=messages, budget=LoopBudget())
        state.window_start = 3

        assert [m.content for m in state.window()] == ["3", "4"]


class TestLoopResult:
    def test_to_dict(self) -> None:
        result = LoopResult("c1", "answer", iterations=2, tool_calls_executed=3)
        assert result.to_dict() == {
            "conversation_id": "c1",
            "final_content": "answer",
            "iterations": 2,
            "tool_calls_executed": 3,
        }


class TestResourceType:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("session", ResourceType.SESSION),
            (" Connection ", ResourceType.CONNECTION),
            ("WORKSPACE", ResourceType.WORKSPACE),
            ("database", ResourceType.OTHER),
            ("", ResourceType.OTHER),
            (None, ResourceType.OTHER),
        ],
    )
    def test_coerce(self, raw, expected) -> None:
        assert ResourceType.coerce(raw) == expected
