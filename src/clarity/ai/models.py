"""
Pydantic models for provider-backed completion clients.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..user_config import resolve_openai_api_key


class AiProvider(str, Enum):
    """
    Supported completion providers.
    """

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    LITELLM = "litellm"


def _normalize_provider(value: object) -> str:
    if isinstance(value, AiProvider):
        return value.value
    if isinstance(value, str):
        return value.lower()
    raise ValueError("llm client provider must be a string or AiProvider")


class LlmClientConfig(BaseModel):
    """
    Configuration for a chat completion invocation.

    :ivar provider: Provider identifier.
    :vartype provider: str or AiProvider
    :ivar model: Model identifier.
    :vartype model: str
    :ivar api_key: Optional API key override.
    :vartype api_key: str or None
    :ivar api_base: Optional API base override.
    :vartype api_base: str or None
    :ivar temperature: Optional generation temperature.
    :vartype temperature: float or None
    :ivar max_tokens: Optional maximum output tokens.
    :vartype max_tokens: int or None
    :ivar response_format: Optional response format identifier, such as ``json_object``.
    :vartype response_format: str or None
    :ivar max_retries: Retry count for transient provider failures.
    :vartype max_retries: int
    :ivar timeout_seconds: Optional request timeout in seconds.
    :vartype timeout_seconds: float or None
    :ivar extra_params: Additional provider-specific parameters to pass through.
    :vartype extra_params: dict[str, Any]
    """

    model_config = ConfigDict(extra="forbid")

    provider: str
    model: str = Field(min_length=1)
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    response_format: Optional[str] = None
    max_retries: int = Field(default=0, ge=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0.0)
    extra_params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("provider", mode="before")
    @classmethod
    def _parse_provider(cls, value: object) -> str:
        return _normalize_provider(value)

    def litellm_model(self) -> str:
        """
        Resolve the LiteLLM model identifier, prefixing the provider when absent.

        :return: Model string such as ``openai/gpt-4o``.
        :rtype: str
        """
        model = self.model.strip()
        if "/" in model:
            return model
        return f"{self.provider}/{model}"

    def resolve_api_key(self) -> Optional[str]:
        """
        Resolve an API key for the configured provider.

        :return: API key string or None if not required.
        :rtype: str or None
        :raises ValueError: If OpenAI is configured and no key is available.
        """
        if self.api_key:
            return self.api_key
        if self.provider != AiProvider.OPENAI.value:
            return None
        api_key = resolve_openai_api_key()
        if api_key is None:
            raise ValueError(
                "OpenAI provider requires an OpenAI API key. "
                "Set OPENAI_API_KEY or configure it in ~/.clarity/config.yml or "
                "./.clarity/config.yml under openai.api_key."
            )
        return api_key

    def build_litellm_kwargs(self) -> dict[str, Any]:
        """
        Build DSPy keyword arguments for chat completions.

        :return: Keyword arguments without unset values.
        :rtype: dict[str, Any]
        """
        kwargs: dict[str, Any] = {
            "api_key": self.resolve_api_key(),
            "api_base": self.api_base,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout_seconds,
            "num_retries": self.max_retries,
        }
        kwargs.update(self.extra_params)
        return {key: value for key, value in kwargs.items() if value is not None}
