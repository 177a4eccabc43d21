"""
Unit tests for the structured output policy and schema rejection detection.
"""

from types import SimpleNamespace

import pytest

from toolrelay.infrastructure.llm.structured_output import (
    StructuredOutputPolicy,
    error_status_code,
    is_schema_rejection,
)


class BackendError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TestStructuredOutputPolicy:
    def test_empty_denylist_supports_everything(self) -> None:
        policy = StructuredOutputPolicy()
        assert policy.supports("gpt-4o-mini")
        assert policy("ollama/llama3")

    def test_substring_match_case_insensitive(self) -> None:
        policy = StructuredOutputPolicy(["Ollama/", "deepseek-reasoner"])

        assert not policy.supports("ollama/llama3")
        assert not policy.supports("DeepSeek-Reasoner-v2")
        assert policy.supports("gpt-4o")
        assert policy.denylist == ("ollama/", "deepseek-reasoner")

    def test_blank_entries_ignored(self) -> None:
        assert StructuredOutputPolicy(["", "x"]).denylist == ("x",)


class TestErrorStatusCode:
    def test_status_code_attribute(self) -> None:
        assert error_status_code(BackendError("x", 422)) == 422

    def test_response_status(self) -> None:
        error = Exception("x")
        error.response = SimpleNamespace(status_code=400)  # type: ignore[attr-defined]
        assert error_status_code(error) == 400

    def test_missing(self) -> None:
        assert error_status_code(RuntimeError("x")) is None


class TestIsSchemaRejection:
    @pytest.mark.parametrize(
        "error",
        [
            BackendError("Invalid parameter: response_format of type json_schema"),
            BackendError("This model does not support JSON schema"),
            BackendError("Bad request", status_code=400),
            BackendError("Unprocessable entity", status_code=422),
        ],
    )
    def test_rejections(self, error) -> None:
        assert is_schema_rejection(error)

    @pytest.mark.parametrize(
        "error",
        [
            BackendError("Invalid API key", status_code=401),
            BackendError("response_format forbidden for this key", status_code=403),
            BackendError("Rate limit exceeded", status_code=429),
            BackendError("Internal server error", status_code=500),
            ConnectionError("Connection reset by peer"),
        ],
    )
    def test_not_rejections(self, error) -> None:
        assert not is_schema_rejection(error)
