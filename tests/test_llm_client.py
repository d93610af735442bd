# tests/test_llm_client.py

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from todovex.errors import ConfigurationError, ContextLengthError, InvalidResponseError, UpstreamError
from todovex.llm.client import OpenAIChatClient

_REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat/completions")


class _FakeCompletions:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def _sdk(completions: _FakeCompletions) -> Any:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _response(content: str | None) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _status_error(cls: type[openai.APIStatusError], status: int, body: dict) -> openai.APIStatusError:
    return cls(
        body.get("message", "error"),
        response=httpx.Response(status, request=_REQUEST),
        body=body,
    )


def test_missing_api_key_without_client_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        OpenAIChatClient(api_key=None)


@pytest.mark.asyncio
async def test_complete_json_requests_json_object() -> None:
    completions = _FakeCompletions(result=_response('{"todos": []}'))
    client = OpenAIChatClient(api_key=None, model="gpt-test", client=_sdk(completions))

    assert await client.complete_json("system", "user") == '{"todos": []}'

    call = completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "user"},
    ]


@pytest.mark.asyncio
async def test_empty_content_is_an_invalid_response() -> None:
    client = OpenAIChatClient(api_key=None, client=_sdk(_FakeCompletions(result=_response(None))))
    with pytest.raises(InvalidResponseError, match="No suggestions received from AI"):
        await client.complete_json("s", "u")


@pytest.mark.asyncio
async def test_context_length_is_mapped() -> None:
    err = _status_error(
        openai.BadRequestError,
        400,
        {"message": "This model's maximum context length is 4097 tokens.", "code": "context_length_exceeded"},
    )
    client = OpenAIChatClient(api_key=None, client=_sdk(_FakeCompletions(error=err)))
    with pytest.raises(ContextLengthError):
        await client.complete_json("s", "u")


@pytest.mark.asyncio
async def test_auth_failure_is_an_upstream_error() -> None:
    err = _status_error(openai.AuthenticationError, 401, {"message": "Incorrect API key provided"})
    client = OpenAIChatClient(api_key=None, client=_sdk(_FakeCompletions(error=err)))
    with pytest.raises(UpstreamError, match="authentication"):
        await client.complete_json("s", "u")


@pytest.mark.asyncio
async def test_connection_failure_is_an_upstream_error() -> None:
    err = openai.APIConnectionError(request=_REQUEST)
    client = OpenAIChatClient(api_key=None, client=_sdk(_FakeCompletions(error=err)))
    with pytest.raises(UpstreamError) as exc_info:
        await client.complete_json("s", "u")
    assert not isinstance(exc_info.value, ContextLengthError)
