"""
Unit tests for the provider-backed completion adapter.
"""

from __future__ import annotations

import asyncio
import sys
import types
from typing import Any, Dict, List

import pytest

from clarity.ai import llm as llm_module
from clarity.ai.llm import build_async_generator, chat_completion, generate_completion
from clarity.ai.models import AiProvider, LlmClientConfig


class FakeLM:
    """
    Fake DSPy language model that records its construction and calls.
    """

    instances: List["FakeLM"] = []

    def __init__(self, model: str, **kwargs: Any) -> None:
        self.model = model
        self.kwargs = kwargs
        self.calls: List[Dict[str, Any]] = []
        FakeLM.instances.append(self)

    def __call__(self, **kwargs: Any) -> List[Dict[str, Any]]:
        """
        Return a canned completion.
        """
        self.calls.append(kwargs)
        return [{"text": "generated text", "finish_reason": "stop"}]


@pytest.fixture
def fake_dspy(monkeypatch):
    FakeLM.instances = []
    module = types.ModuleType("dspy")
    module.LM = FakeLM
    monkeypatch.setitem(sys.modules, "dspy", module)
    return module


def test_litellm_model_prefixes_provider():
    assert LlmClientConfig(provider="openai", model="gpt-4o").litellm_model() == "openai/gpt-4o"
    client = LlmClientConfig(provider=AiProvider.ANTHROPIC, model="anthropic/claude-x")
    assert client.provider == "anthropic"
    assert client.litellm_model() == "anthropic/claude-x"


def test_openai_requires_a_key(monkeypatch, tmp_path):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        LlmClientConfig(provider="openai", model="gpt-4o").resolve_api_key()
    assert LlmClientConfig(provider="ollama", model="llama3").resolve_api_key() is None


def test_litellm_kwargs_drop_unset_values():
    client = LlmClientConfig(
        provider="openai",
        model="gpt-4o",
        api_key="test-key",
        temperature=0.2,
        extra_params={"seed": 7},
    )
    assert client.build_litellm_kwargs() == {
        "api_key": "test-key",
        "temperature": 0.2,
        "num_retries": 0,
        "seed": 7,
    }


def test_chat_completion_uses_dspy(fake_dspy):
    client = LlmClientConfig(
        provider="openai", model="gpt-4o", api_key="test-key", response_format="json_object"
    )
    result = chat_completion(client=client, messages=[{"role": "user", "content": "Hi"}])

    assert result.text == "generated text"
    assert result.finish_reason == "stop"
    lm = FakeLM.instances[0]
    assert lm.model == "openai/gpt-4o"
    assert lm.calls[0]["response_format"] == {"type": "json_object"}


def test_generate_completion_sends_system_prompt(fake_dspy):
    client = LlmClientConfig(provider="openai", model="gpt-4o", api_key="test-key")
    text = generate_completion(client=client, system_prompt="System", user_prompt="User")

    assert text == "generated text"
    assert FakeLM.instances[0].calls[0]["messages"] == [
        {"role": "system", "content": "System"},
        {"role": "user", "content": "User"},
    ]


def test_missing_dspy_is_reported(monkeypatch):
    monkeypatch.setitem(sys.modules, "dspy", None)
    client = LlmClientConfig(provider="openai", model="gpt-4o", api_key="test-key")
    with pytest.raises(ValueError, match="clarity\\[dspy\\]"):
        generate_completion(client=client, system_prompt=None, user_prompt="Hi")


def test_async_generator_wraps_blocking_completion(monkeypatch):
    seen: List[Dict[str, Any]] = []

    def fake_generate_completion(**kwargs: Any) -> str:
        seen.append(kwargs)
        return "async text"

    monkeypatch.setattr(llm_module, "generate_completion", fake_generate_completion)
    client = LlmClientConfig(provider="openai", model="gpt-4o", api_key="test-key")
    generator = build_async_generator(client, system_prompt="Be brief.")

    assert asyncio.run(generator("Prompt")) == "async text"
    assert seen == [{"client": client, "system_prompt": "Be brief.", "user_prompt": "Prompt"}]
