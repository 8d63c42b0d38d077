from types import SimpleNamespace

import anthropic
import httpx
import pytest

from ai_search.services.claude_service import ClaudeService, CompletionServiceError

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class FakeMessages:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


def make_service(settings, result=None, error=None):
    messages = FakeMessages(result=result, error=error)
    client = SimpleNamespace(messages=messages)
    return ClaudeService(settings, client=client), messages


def text_message(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


async def test_complete_returns_text_and_sends_settings(settings):
    service, messages = make_service(settings, result=text_message('{"city": "Cuenca"}'))

    text = await service.complete("casa en cuenca", system="be precise")

    assert text == '{"city": "Cuenca"}'
    assert messages.kwargs["model"] == settings.claude_model
    assert messages.kwargs["max_tokens"] == settings.claude_max_tokens
    assert messages.kwargs["temperature"] == settings.claude_temperature
    assert messages.kwargs["system"] == "be precise"
    assert messages.kwargs["messages"] == [{"role": "user", "content": "casa en cuenca"}]


async def test_system_prompt_is_optional(settings):
    service, messages = make_service(settings, result=text_message("{}"))
    await service.complete("hola")
    assert "system" not in messages.kwargs


@pytest.mark.parametrize(
    "error,kind",
    [
        (anthropic.APITimeoutError(request=REQUEST), "timeout"),
        (anthropic.APIConnectionError(request=REQUEST), "connection"),
        (
            anthropic.RateLimitError(
                "slow down", response=httpx.Response(429, request=REQUEST), body=None
            ),
            "rate_limit",
        ),
        (
            anthropic.InternalServerError(
                "overloaded", response=httpx.Response(500, request=REQUEST), body=None
            ),
            "status",
        ),
    ],
)
async def test_sdk_errors_are_wrapped(settings, error, kind):
    service, _ = make_service(settings, error=error)

    with pytest.raises(CompletionServiceError) as exc_info:
        await service.complete("casa")

    assert exc_info.value.kind == kind
    assert exc_info.value.__cause__ is error


@pytest.mark.parametrize(
    "message",
    [
        SimpleNamespace(content=[]),
        text_message("   "),
        SimpleNamespace(content=[SimpleNamespace(type="tool_use", id="x")]),
    ],
)
async def test_empty_reply_is_an_error(settings, message):
    service, _ = make_service(settings, result=message)

    with pytest.raises(CompletionServiceError) as exc_info:
        await service.complete("casa")

    assert exc_info.value.kind == "empty_response"
