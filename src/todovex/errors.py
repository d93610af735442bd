# src/todovex/errors.py

"""
Typed application errors.

Every error raised on purpose by todovex derives from TodovexError and carries
an ErrorKind. Presentation code maps kinds to user-facing text with
friendly_error_message() instead of inspecting exception wording.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_RESPONSE = "invalid_response"
    UPSTREAM = "upstream"
    CONTEXT_LENGTH = "context_length"
    STORE = "store"


class TodovexError(Exception):
    kind: ErrorKind = ErrorKind.UPSTREAM


class ConfigurationError(TodovexError):
    """Missing secret or API key. Fatal at startup."""

    kind = ErrorKind.CONFIGURATION


class NotFoundError(TodovexError):
    kind = ErrorKind.NOT_FOUND


class InvalidArgumentError(TodovexError):
    kind = ErrorKind.INVALID_ARGUMENT


class InvalidResponseError(TodovexError):
    """Model output is not the JSON shape we asked for."""

    kind = ErrorKind.INVALID_RESPONSE


class UpstreamError(TodovexError):
    """Non-success status or malformed body from a remote service."""

    kind = ErrorKind.UPSTREAM


class ContextLengthError(UpstreamError):
    kind = ErrorKind.CONTEXT_LENGTH


class StoreError(UpstreamError):
    kind = ErrorKind.STORE


_PROJECT = "project"
_SUBTASK = "subtask"

_FRIENDLY_MESSAGES: dict[tuple[ErrorKind, str], str] = {
    (ErrorKind.CONFIGURATION, _PROJECT): "AI service is not properly configured. Please contact support.",
    (ErrorKind.CONFIGURATION, _SUBTASK): "AI service is not properly configured. Please contact support.",
    (ErrorKind.CONTEXT_LENGTH, _PROJECT): (
        "Project is too large for AI analysis. Try breaking it into smaller parts."
    ),
    (ErrorKind.CONTEXT_LENGTH, _SUBTASK): (
        "Task content is too large for AI analysis. Try simplifying the task description."
    ),
    (ErrorKind.INVALID_ARGUMENT, _SUBTASK): (
        "Please provide all required task information before requesting suggestions."
    ),
}

_FALLBACK_MESSAGES = {
    _PROJECT: "Failed to suggest new tasks. Please try again.",
    _SUBTASK: "Failed to suggest new subtasks. Please try again.",
}


def friendly_error_message(err: BaseException, *, subtask: bool = False) -> str:
    target = _SUBTASK if subtask else _PROJECT
    if not isinstance(err, TodovexError):
        return _FALLBACK_MESSAGES[target]
    msg = _FRIENDLY_MESSAGES.get((err.kind, target))
    if msg is not None:
        return msg
    return str(err).strip() or _FALLBACK_MESSAGES[target]
