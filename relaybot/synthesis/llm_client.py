"""Async LLM client wrapping the Anthropic and OpenAI SDKs.

Supports three providers:
- "anthropic": Anthropic messages API (default)
- "openai": OpenAI chat completions
- "openai-compatible": OpenAI SDK pointed at a custom base_url (OpenRouter, vLLM, ...)

Both providers are normalized to an ordered list of content segments
(`type` + `text`), the shape the Anthropic API returns natively.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import anthropic
import openai

logger = logging.getLogger(__name__)

PROVIDERS = ("anthropic", "openai", "openai-compatible")
DEFAULT_MODEL = "claude-3-haiku-20240307"


@dataclass(frozen=True)
class ContentSegment:
    type: str
    text: Optional[str] = None


@dataclass
class Completion:
    content: List[ContentSegment] = field(default_factory=list)
    stop_reason: Optional[str] = None
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def truncated(self) -> bool:
        return self.stop_reason in ("max_tokens", "length")


class LLMClient:
    def __init__(
        self,
        provider: str = "anthropic",
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        sdk_client: Any = None,
    ):
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {provider!r}. Supported: {', '.join(PROVIDERS)}")
        if provider == "openai-compatible" and not base_url and sdk_client is None:
            raise ValueError("openai-compatible provider requires base_url to be set")
        self.provider = provider
        self.model = model
        self.timeout = timeout
        self._client = sdk_client if sdk_client is not None else self._create_client(api_key, base_url)

    def _create_client(self, api_key: Optional[str], base_url: Optional[str]) -> Any:
        kwargs: Dict[str, Any] = {"timeout": self.timeout, "max_retries": 0}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url
        if self.provider == "anthropic":
            return anthropic.AsyncAnthropic(**kwargs)
        return openai.AsyncOpenAI(**kwargs)

    async def complete(
        self,
        *,
        system: str,
        messages: Sequence[Dict[str, str]],
        max_output_tokens: int,
    ) -> Completion:
        logger.debug("LLM request: provider=%s model=%s messages=%d", self.provider, self.model, len(messages))
        if self.provider == "anthropic":
            completion = await self._complete_anthropic(system, messages, max_output_tokens)
        else:
            completion = await self._complete_openai(system, messages, max_output_tokens)
        logger.debug(
            "LLM response: tokens=%d+%d segments=%d stop=%s",
            completion.input_tokens,
            completion.output_tokens,
            len(completion.content),
            completion.stop_reason,
        )
        return completion

    async def _complete_anthropic(
        self, system: str, messages: Sequence[Dict[str, str]], max_output_tokens: int
    ) -> Completion:
        resp = await self._client.messages.create(
            model=self.model,
            max_tokens=max_output_tokens,
            system=system,
            messages=list(messages),
        )
        segments = [
            ContentSegment(type=getattr(block, "type", "unknown"), text=getattr(block, "text", None))
            for block in (getattr(resp, "content", None) or [])
        ]
        usage = getattr(resp, "usage", None)
        return Completion(
            content=segments,
            stop_reason=getattr(resp, "stop_reason", None),
            model=getattr(resp, "model", self.model) or self.model,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )

    async def _complete_openai(
        self, system: str, messages: Sequence[Dict[str, str]], max_output_tokens: int
    ) -> Completion:
        payload: List[Dict[str, str]] = []
        if system:
            payload.append({"role": "system", "content": system})
        payload.extend(messages)
        # OpenAI reasoning models reject max_tokens; compatible servers expect it.
        budget_param = "max_completion_tokens" if self.provider == "openai" else "max_tokens"
        resp = await self._client.chat.completions.create(
            model=self.model,
            messages=payload,
            **{budget_param: max_output_tokens},
        )
        choices = getattr(resp, "choices", None) or []
        segments: List[ContentSegment] = []
        stop_reason = None
        if choices:
            choice = choices[0]
            stop_reason = getattr(choice, "finish_reason", None)
            text = getattr(getattr(choice, "message", None), "content", None)
            if text:
                segments.append(ContentSegment(type="text", text=text))
        usage = getattr(resp, "usage", None)
        return Completion(
            content=segments,
            stop_reason=stop_reason,
            model=getattr(resp, "model", self.model) or self.model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
