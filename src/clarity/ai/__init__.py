"""
Provider-backed completion utilities.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AiProvider",
    "LlmClientConfig",
    "build_async_generator",
    "generate_completion",
]


def __getattr__(name: str) -> Any:
    if name in {"AiProvider", "LlmClientConfig"}:
        from .models import AiProvider, LlmClientConfig

        return {"AiProvider": AiProvider, "LlmClientConfig": LlmClientConfig}[name]
    if name in {"build_async_generator", "generate_completion"}:
        from .llm import build_async_generator, generate_completion

        return {
            "build_async_generator": build_async_generator,
            "generate_completion": generate_completion,
        }[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
