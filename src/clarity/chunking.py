"""
Prompt context chunking and token budgeting.

Named text blocks (project summary, interview answers, file content, ...) are
turned into prioritized chunks, and prompts are assembled from those chunks
under a token budget.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    CHARS_PER_TOKEN,
    DEFAULT_MAX_TOKENS,
    DEFAULT_OVERLAP_TOKENS,
    DEFAULT_PRIORITY_ORDER,
    PROMPT_SAFETY_MARGIN_TOKENS,
    UNLISTED_PRIORITY,
)

logger = logging.getLogger(__name__)

ChainStrategyName = Literal["sequential", "hierarchical"]


def estimate_tokens(text: str) -> int:
    """
    Approximate the token count of a text.

    The estimate is one token per four characters, rounded up. It is not a
    tokenizer and can drift from the model's real count in either direction.

    :param text: Text to measure.
    :type text: str
    :return: Estimated token count.
    :rtype: int
    """
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class ChunkStrategy(BaseModel):
    """
    Chunking configuration.

    :ivar max_tokens: Token budget for a single generation call.
    :vartype max_tokens: int
    :ivar overlap_tokens: Tokens of trailing context repeated between chained batches.
    :vartype overlap_tokens: int
    :ivar priority_order: Section keys from most to least important.
    :vartype priority_order: list[str]
    """

    model_config = ConfigDict(extra="forbid")

    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    overlap_tokens: int = Field(default=DEFAULT_OVERLAP_TOKENS, ge=0)
    priority_order: List[str] = Field(default_factory=lambda: list(DEFAULT_PRIORITY_ORDER))

    def priority_of(self, key: str) -> int:
        """
        Resolve the priority rank of a section key.

        :param key: Section key.
        :type key: str
        :return: Index in the priority order, or the unlisted sentinel.
        :rtype: int
        """
        try:
            return self.priority_order.index(key)
        except ValueError:
            return UNLISTED_PRIORITY


def resolve_chunk_strategy(
    strategy: Optional[Union[ChunkStrategy, Mapping[str, Any]]] = None,
) -> ChunkStrategy:
    """
    Merge a partial strategy over the defaults.

    :param strategy: Strategy model, partial mapping, or None for defaults.
    :type strategy: ChunkStrategy or Mapping[str, Any] or None
    :return: Complete strategy.
    :rtype: ChunkStrategy
    :raises pydantic.ValidationError: If the mapping has unknown or invalid fields.
    """
    if strategy is None:
        return ChunkStrategy()
    if isinstance(strategy, ChunkStrategy):
        return strategy
    return ChunkStrategy.model_validate(dict(strategy))


@dataclass(frozen=True)
class ContextChunk:
    """
    One prioritized block of prompt context.

    :ivar priority: Priority rank, lower is more important.
    :vartype priority: int
    :ivar type: Section key the chunk came from.
    :vartype type: str
    :ivar content: Chunk text.
    :vartype content: str
    :ivar token_estimate: Estimated tokens of ``content``.
    :vartype token_estimate: int
    :ivar metadata: Extra facts about the chunk.
    :vartype metadata: dict[str, Any]
    """

    priority: int
    type: str
    content: str
    token_estimate: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        """
        Render the chunk as a labelled prompt section.

        :return: Section header followed by the chunk content.
        :rtype: str
        """
        return f"{section_header(self.type)}\n{self.content}"


@dataclass(frozen=True)
class ChunkedContext:
    """
    Prioritized chunks plus the chaining decision.

    :ivar chunks: Chunks sorted ascending by priority.
    :vartype chunks: list[ContextChunk]
    :ivar total_tokens: Sum of chunk token estimates.
    :vartype total_tokens: int
    :ivar needs_chaining: Whether the total exceeds the strategy budget.
    :vartype needs_chaining: bool
    :ivar chain_strategy: Chaining strategy when chaining is needed.
    :vartype chain_strategy: str or None
    """

    chunks: List[ContextChunk]
    total_tokens: int
    needs_chaining: bool
    chain_strategy: Optional[ChainStrategyName] = None


@dataclass(frozen=True)
class PromptFit:
    """
    Prompt assembled under a token budget.

    :ivar prompt: Assembled prompt text.
    :vartype prompt: str
    :ivar used_chunks: Chunk types included, in processing order.
    :vartype used_chunks: list[str]
    :ivar dropped_chunks: Chunk types left out, in processing order.
    :vartype dropped_chunks: list[str]
    """

    prompt: str
    used_chunks: List[str]
    dropped_chunks: List[str]


def section_header(chunk_type: str) -> str:
    """
    Build the visible header for a chunk type.

    :param chunk_type: Section key such as ``question_answers``.
    :type chunk_type: str
    :return: Header such as ``=== QUESTION ANSWERS ===``.
    :rtype: str
    """
    return f"=== {chunk_type.upper().replace('_', ' ')} ==="


def create_context_chunks(
    context_parts: Mapping[str, Optional[str]],
    strategy: Optional[Union[ChunkStrategy, Mapping[str, Any]]] = None,
    *,
    chain_strategy: Optional[ChainStrategyName] = None,
) -> ChunkedContext:
    """
    Turn named text blocks into prioritized chunks.

    Blank blocks are skipped. Chunks are sorted by priority; the sort is stable
    so blocks of equal priority keep their input order.

    :param context_parts: Section key to text.
    :type context_parts: Mapping[str, str or None]
    :param strategy: Optional strategy or partial strategy mapping.
    :type strategy: ChunkStrategy or Mapping[str, Any] or None
    :param chain_strategy: Strategy to use when chaining is needed. Defaults to sequential.
    :type chain_strategy: str or None
    :return: Chunked context.
    :rtype: ChunkedContext
    """
    resolved = resolve_chunk_strategy(strategy)
    chunks: List[ContextChunk] = []
    total_tokens = 0

    for key, content in context_parts.items():
        if not content or not content.strip():
            continue
        token_estimate = estimate_tokens(content)
        total_tokens += token_estimate
        chunks.append(
            ContextChunk(
                priority=resolved.priority_of(key),
                type=key,
                content=content,
                token_estimate=token_estimate,
                metadata={"original_length": len(content)},
            )
        )

    chunks.sort(key=lambda chunk: chunk.priority)
    needs_chaining = total_tokens > resolved.max_tokens
    return ChunkedContext(
        chunks=chunks,
        total_tokens=total_tokens,
        needs_chaining=needs_chaining,
        chain_strategy=(chain_strategy or "sequential") if needs_chaining else None,
    )


def build_prompt_within_limit(
    chunked_context: ChunkedContext,
    base_prompt: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    *,
    log: Optional[logging.Logger] = None,
) -> PromptFit:
    """
    Append chunks to a base prompt in priority order until the budget runs out.

    The fit is greedy: a chunk that does not fit is dropped and the walk
    continues with the next one. Nothing is reordered to fill leftover space.
    Each section is charged for its header and separator as well as its
    content, so the estimate of the returned prompt stays within ``max_tokens``.

    :param chunked_context: Chunked context to draw from.
    :type chunked_context: ChunkedContext
    :param base_prompt: Prompt text placed before all chunks.
    :type base_prompt: str
    :param max_tokens: Token budget for the whole prompt.
    :type max_tokens: int
    :param log: Logger receiving dropped-chunk warnings.
    :type log: logging.Logger or None
    :return: Assembled prompt with used and dropped chunk types.
    :rtype: PromptFit
    """
    log = log or logger
    remaining_tokens = max_tokens - estimate_tokens(base_prompt) - PROMPT_SAFETY_MARGIN_TOKENS
    prompt_parts = [base_prompt]
    used_chunks: List[str] = []
    dropped_chunks: List[str] = []

    for chunk in chunked_context.chunks:
        section = f"\n\n{chunk.render()}"
        cost = estimate_tokens("\n" + section)
        if cost <= remaining_tokens:
            prompt_parts.append(section)
            remaining_tokens -= cost
            used_chunks.append(chunk.type)
        else:
            dropped_chunks.append(chunk.type)
            log.warning(
                "Dropped %s (%d tokens): would exceed limit of %d",
                chunk.type,
                chunk.token_estimate,
                max_tokens,
            )

    return PromptFit(
        prompt="\n".join(prompt_parts),
        used_chunks=used_chunks,
        dropped_chunks=dropped_chunks,
    )


def smart_truncate(text: str, max_length: int, preserve_structure: bool = True) -> str:
    """
    Shorten text to a maximum character length.

    With ``preserve_structure`` whole lines are kept and a truncation notice is
    appended; otherwise the text is cut and suffixed with an ellipsis.

    :param text: Text to shorten.
    :type text: str
    :param max_length: Maximum character length of the kept text.
    :type max_length: int
    :param preserve_structure: Whether to cut at line boundaries.
    :type preserve_structure: bool
    :return: Shortened text.
    :rtype: str
    """
    if len(text) <= max_length:
        return text
    if not preserve_structure:
        return text[: max(max_length - 3, 0)] + "..."

    kept: List[str] = []
    current_length = 0
    for line in text.split("\n"):
        if current_length + len(line) + 1 > max_length:
            break
        kept.append(line)
        current_length += len(line) + 1
    return "\n".join(kept) + "\n\n... [Content truncated to fit context limit] ..."
