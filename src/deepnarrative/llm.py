from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol
import os
import re

from .errors import CompletionError


@dataclass(frozen=True)
class CompletionResponse:
    text: str
    model: str = ""
    raw: Any = None

    def structured_output(self) -> str:
        return self.text


class CompletionService(Protocol):
    """Request/response boundary to the language model. Must be thread-safe."""

    def complete(self, prompt: str, expected_shape: type = str) -> CompletionResponse: ...


def extract_message_text(result: object) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        messages = result.get("messages")
        if messages:
            return extract_message_text(messages[-1])
        content = result.get("content") or result.get("text")
        if content is not None:
            return extract_message_text(content)
    if isinstance(result, list):
        parts: list[str] = []
        for item in result:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict):
                text = item.get("text") or item.get("content") or item.get("value")
                if text:
                    parts.append(str(text))
        return "".join(parts)
    content = getattr(result, "content", None)
    if content is not None:
        return extract_message_text(content)
    return str(result)


class CallableCompletionService:
    def __init__(self, func: Callable[[str], object], model: str = "callable") -> None:
        self._func = func
        self._model = model

    def complete(self, prompt: str, expected_shape: type = str) -> CompletionResponse:
        try:
            result = self._func(prompt)
        except CompletionError:
            raise
        except Exception as exc:
            raise CompletionError(f"completion failed: {exc}") from exc
        return CompletionResponse(text=extract_message_text(result), model=self._model, raw=result)


_TITLE_RE = re.compile(r'^Write a comprehensive section: "(.+)"\s*$', re.MULTILINE)
_FOCUS_RE = re.compile(r"^- Focus: (.+)$", re.MULTILINE)


class EchoCompletionService:
    """Offline stand-in that answers from the prompt itself, deterministically."""

    model = "offline-echo"

    def complete(self, prompt: str, expected_shape: type = str) -> CompletionResponse:
        title = _TITLE_RE.search(prompt or "")
        if title:
            focus = _FOCUS_RE.search(prompt)
            focus_text = focus.group(1).strip() if focus else title.group(1)
            text = f"{title.group(1)} addresses {focus_text}. [1]"
        else:
            text = ""
        return CompletionResponse(text=text, model=self.model)


def resolve_base_url() -> Optional[str]:
    value = os.getenv("OPENAI_BASE_URL") or os.getenv("OPENAI_API_BASE")
    return value.strip() if value and value.strip() else None


def build_chat_model(model_name: str, temperature: Optional[float] = None, timeout: Optional[float] = None):
    try:
        from langchain_openai import ChatOpenAI  # type: ignore
    except ImportError as exc:
        raise CompletionError(
            "langchain-openai is unavailable. Install with: python -m pip install langchain-openai"
        ) from exc
    kwargs: dict[str, Any] = {"model": model_name}
    if temperature is not None:
        kwargs["temperature"] = temperature
    if timeout is not None:
        kwargs["timeout"] = timeout
    base_url = resolve_base_url()
    if base_url:
        try:
            return ChatOpenAI(**kwargs, base_url=base_url)
        except TypeError:
            return ChatOpenAI(**kwargs, openai_api_base=base_url)
    return ChatOpenAI(**kwargs)


class ChatCompletionService:
    """OpenAI-compatible chat model wrapped as a completion service."""

    def __init__(
        self,
        model: str,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        chat_model: Any = None,
    ) -> None:
        self.model = model
        self._chat_model = chat_model or build_chat_model(model, temperature=temperature, timeout=timeout)

    def complete(self, prompt: str, expected_shape: type = str) -> CompletionResponse:
        try:
            message = self._chat_model.invoke(prompt)
        except Exception as exc:
            raise CompletionError(f"{self.model}: {exc}") from exc
        text = extract_message_text(message).strip()
        if not text:
            raise CompletionError(f"{self.model}: empty completion")
        return CompletionResponse(text=text, model=self.model, raw=message)
