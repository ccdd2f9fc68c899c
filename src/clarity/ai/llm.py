"""
Provider-backed chat completions and the async generator used by chained generation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from .models import LlmClientConfig

DOCUMENT_SYSTEM_PROMPT = (
    "You are an expert technical writer. Respond only with the JSON document requested."
)


@dataclass
class ChatCompletionResult:
    """
    Normalized response from a chat completion call.

    :param text: Generated assistant text.
    :type text: str
    :param finish_reason: Provider finish reason, when reported.
    :type finish_reason: str or None
    """

    text: str
    finish_reason: Optional[str] = None


def _require_dspy():
    try:
        import dspy
    except ImportError as import_error:
        raise ValueError(
            "Completions require an optional dependency. "
            'Install it with pip install "clarity[dspy]".'
        ) from import_error
    if not hasattr(dspy, "LM"):
        raise ValueError(
            "Completions require a DSPy release with LM support. "
            'Install it with pip install "clarity[dspy]".'
        )
    return dspy


def chat_completion(
    *,
    client: LlmClientConfig,
    messages: Sequence[dict[str, Any]],
) -> ChatCompletionResult:
    """
    Execute a chat completion using DSPy (LiteLLM-backed).

    :param client: LLM client configuration.
    :type client: clarity.ai.models.LlmClientConfig
    :param messages: Chat messages payload.
    :type messages: Sequence[dict[str, Any]]
    :return: Normalized completion result.
    :rtype: ChatCompletionResult
    :raises ValueError: If required dependencies or credentials are missing.
    """
    dspy = _require_dspy()
    lm = dspy.LM(client.litellm_model(), **client.build_litellm_kwargs())
    request_kwargs: dict[str, Any] = {}
    if client.response_format:
        request_kwargs["response_format"] = {"type": client.response_format}

    response = lm(messages=list(messages), **request_kwargs)
    item = response[0] if isinstance(response, list) and response else response
    if isinstance(item, dict):
        text = str(item.get("text") or item.get("content") or "")
        finish_reason = item.get("finish_reason")
        return ChatCompletionResult(
            text=text, finish_reason=str(finish_reason) if finish_reason else None
        )
    return ChatCompletionResult(text=str(item or ""))


def generate_completion(
    *,
    client: LlmClientConfig,
    system_prompt: Optional[str],
    user_prompt: str,
) -> str:
    """
    Generate a completion using the configured provider.

    :param client: LLM client configuration.
    :type client: clarity.ai.models.LlmClientConfig
    :param system_prompt: Optional system prompt content.
    :type system_prompt: str or None
    :param user_prompt: User prompt content.
    :type user_prompt: str
    :return: Generated completion text.
    :rtype: str
    :raises ValueError: If required dependencies or credentials are missing.
    """
    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return chat_completion(client=client, messages=messages).text


def build_async_generator(
    client: LlmClientConfig,
    system_prompt: Optional[str] = DOCUMENT_SYSTEM_PROMPT,
) -> Callable[[str], Awaitable[str]]:
    """
    Wrap the blocking completion call as an async prompt-to-text callable.

    :param client: LLM client configuration.
    :type client: clarity.ai.models.LlmClientConfig
    :param system_prompt: System prompt sent with every call.
    :type system_prompt: str or None
    :return: Async callable returning completion text for a prompt.
    :rtype: Callable[[str], Awaitable[str]]
    """

    async def generate(prompt: str) -> str:
        return await asyncio.to_thread(
            generate_completion, client=client, system_prompt=system_prompt, user_prompt=prompt
        )

    return generate
