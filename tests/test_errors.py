# tests/test_errors.py

from __future__ import annotations

import pytest

from todovex.errors import (
    ConfigurationError,
    ContextLengthError,
    ErrorKind,
    InvalidArgumentError,
    InvalidResponseError,
    NotFoundError,
    StoreError,
    UpstreamError,
    friendly_error_message,
)


@pytest.mark.parametrize(
    ("err", "subtask", "expected"),
    [
        (ConfigurationError("no key"), False, "AI service is not properly configured. Please contact support."),
        (ConfigurationError("no key"), True, "AI service is not properly configured. Please contact support."),
        (
            ContextLengthError("too long"),
            False,
            "Project is too large for AI analysis. Try breaking it into smaller parts.",
        ),
        (
            ContextLengthError("too long"),
            True,
            "Task content is too large for AI analysis. Try simplifying the task description.",
        ),
        (
            InvalidArgumentError("Missing required data for suggesting subtasks"),
            True,
            "Please provide all required task information before requesting suggestions.",
        ),
        (NotFoundError("Project not found"), False, "Project not found"),
        (InvalidResponseError("Invalid response format from AI"), False, "Invalid response format from AI"),
        (UpstreamError(""), False, "Failed to suggest new tasks. Please try again."),
        (RuntimeError("secret internals"), False, "Failed to suggest new tasks. Please try again."),
        (RuntimeError("secret internals"), True, "Failed to suggest new subtasks. Please try again."),
    ],
)
def test_friendly_error_message(err: Exception, subtask: bool, expected: str) -> None:
    assert friendly_error_message(err, subtask=subtask) == expected


def test_error_kinds() -> None:
    assert StoreError("x").kind is ErrorKind.STORE
    assert isinstance(StoreError("x"), UpstreamError)
    assert isinstance(ContextLengthError("x"), UpstreamError)
    assert ContextLengthError("x").kind is ErrorKind.CONTEXT_LENGTH
