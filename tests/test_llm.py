from __future__ import annotations

from types import SimpleNamespace

import pytest

from deepnarrative import llm
from deepnarrative.errors import CompletionError


def test_extract_message_text_variants() -> None:
    assert llm.extract_message_text(None) == ""
    assert llm.extract_message_text("plain") == "plain"
    assert llm.extract_message_text({"messages": [{"content": "old"}, {"content": "last"}]}) == "last"
    assert llm.extract_message_text([{"type": "text", "text": "a"}, "b"]) == "ab"
    assert llm.extract_message_text(SimpleNamespace(content=[{"text": "chunk"}])) == "chunk"


def test_callable_service_wraps_errors() -> None:
    def explode(prompt: str) -> str:
        raise KeyError("missing")

    with pytest.raises(CompletionError):
        llm.CallableCompletionService(explode).complete("hi")


def test_callable_service_returns_response() -> None:
    response = llm.CallableCompletionService(lambda prompt: prompt.upper(), model="upper").complete("hi")
    assert response.structured_output() == "HI"
    assert response.model == "upper"


def test_echo_service_answers_sections_only() -> None:
    service = llm.EchoCompletionService()
    prompt = 'Write a comprehensive section: "Costs"\n\nSECTION SPECIFICATIONS:\n- Focus: unit economics\n'
    assert service.complete(prompt).text == "Costs addresses unit economics. [1]"
    assert service.complete("Plan a comprehensive research narrative").text == ""


class FakeChatModel:
    def __init__(self, reply=None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def invoke(self, prompt: str):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


def test_chat_service_uses_message_content() -> None:
    chat = FakeChatModel(reply=SimpleNamespace(content="  drafted text  "))
    service = llm.ChatCompletionService("gpt-test", chat_model=chat)

    response = service.complete("prompt")

    assert response.text == "drafted text"
    assert response.model == "gpt-test"
    assert chat.prompts == ["prompt"]


def test_chat_service_raises_on_empty_or_failed_reply() -> None:
    with pytest.raises(CompletionError, match="empty completion"):
        llm.ChatCompletionService("m", chat_model=FakeChatModel(reply=SimpleNamespace(content=""))).complete("p")
    with pytest.raises(CompletionError, match="timeout"):
        llm.ChatCompletionService("m", chat_model=FakeChatModel(error=TimeoutError("timeout"))).complete("p")


def test_resolve_base_url_prefers_openai_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    monkeypatch.delenv("OPENAI_API_BASE", raising=False)
    assert llm.resolve_base_url() is None
    monkeypatch.setenv("OPENAI_API_BASE", "http://legacy")
    assert llm.resolve_base_url() == "http://legacy"
    monkeypatch.setenv("OPENAI_BASE_URL", " http://local:8000/v1 ")
    assert llm.resolve_base_url() == "http://local:8000/v1"
