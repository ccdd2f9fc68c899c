"""
Chained generation over contexts that exceed a single prompt budget.

The orchestrator decides between one fitted prompt and several generation
calls, and combines the partial results with an injected combiner. Generation
calls are awaited one at a time.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from .chunking import (
    ChunkedContext,
    ContextChunk,
    build_prompt_within_limit,
    estimate_tokens,
    section_header,
)
from .constants import (
    CHAIN_SAFETY_MARGIN_TOKENS,
    CHARS_PER_TOKEN,
    CRITICAL_PRIORITY_CUTOFF,
    DEFAULT_MAX_TOKENS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Generator = Callable[[str], Awaitable[T]]
Combiner = Callable[[List[T]], T]

SUMMARY_INSTRUCTION = "Generate a summary that captures the key information from the above context."
REFINE_INSTRUCTION = "Refine the output by incorporating these additional details."
OVERLAP_SECTION = "continued_from_previous_batch"


@dataclass(frozen=True)
class ChainResult(Generic[T]):
    """
    Outcome of a (possibly chained) generation.

    :ivar result: Combined generation result.
    :vartype result: object
    :ivar strategy: ``single-pass``, ``sequential`` or ``hierarchical``.
    :vartype strategy: str
    :ivar iterations: Number of generation calls made.
    :vartype iterations: int
    """

    result: T
    strategy: str
    iterations: int


async def generate_with_chaining(
    chunked_context: ChunkedContext,
    base_prompt: str,
    generator: Generator,
    combiner: Combiner,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    *,
    overlap_tokens: int = 0,
    log: Optional[logging.Logger] = None,
) -> ChainResult:
    """
    Generate from a chunked context, chaining calls when it does not fit.

    Failures raised by ``generator`` propagate unchanged and discard any
    partial results.

    :param chunked_context: Chunked context to generate from.
    :type chunked_context: ChunkedContext
    :param base_prompt: Instruction prompt sent with every call.
    :type base_prompt: str
    :param generator: Async callable turning a prompt into a result.
    :type generator: Callable[[str], Awaitable[T]]
    :param combiner: Callable merging partial results into one.
    :type combiner: Callable[[list[T]], T]
    :param max_tokens: Token budget for each call.
    :type max_tokens: int
    :param overlap_tokens: Tokens of the previous batch repeated at the start of the next one.
    :type overlap_tokens: int
    :param log: Logger receiving progress messages.
    :type log: logging.Logger or None
    :return: Combined result with the strategy used and the number of calls.
    :rtype: ChainResult
    """
    log = log or logger
    if not chunked_context.needs_chaining:
        fit = build_prompt_within_limit(chunked_context, base_prompt, max_tokens, log=log)
        result = await generator(fit.prompt)
        return ChainResult(result=result, strategy="single-pass", iterations=1)

    if chunked_context.chain_strategy == "hierarchical":
        return await _hierarchical_chaining(
            chunked_context, base_prompt, generator, combiner, max_tokens, overlap_tokens, log
        )
    return await _sequential_chaining(
        chunked_context, base_prompt, generator, combiner, max_tokens, overlap_tokens, log
    )


def plan_batches(
    chunks: Sequence[ContextChunk], budget: int, *, overlap_tokens: int = 0
) -> List[List[ContextChunk]]:
    """
    Split chunks into consecutive batches under a token budget.

    A batch is closed when the next chunk would push it over the budget. A
    chunk larger than the budget still forms a batch of its own. Every batch
    after the first gives up ``overlap_tokens`` of its budget.

    :param chunks: Chunks in priority order.
    :type chunks: Sequence[ContextChunk]
    :param budget: Token budget per batch.
    :type budget: int
    :param overlap_tokens: Budget reserved for repeated context after the first batch.
    :type overlap_tokens: int
    :return: Batches in order.
    :rtype: list[list[ContextChunk]]
    """
    batches: List[List[ContextChunk]] = []
    current: List[ContextChunk] = []
    current_tokens = 0
    for chunk in chunks:
        limit = budget - overlap_tokens if batches else budget
        if current and current_tokens + chunk.token_estimate > limit:
            batches.append(current)
            current = []
            current_tokens = 0
        current.append(chunk)
        current_tokens += chunk.token_estimate
    if current:
        batches.append(current)
    return batches


def render_batch(batch: Sequence[ContextChunk], overlap_text: str = "") -> str:
    """
    Render a batch of chunks as labelled sections.

    :param batch: Chunks to render.
    :type batch: Sequence[ContextChunk]
    :param overlap_text: Trailing text of the previous batch, if any.
    :type overlap_text: str
    :return: Rendered sections separated by blank lines.
    :rtype: str
    """
    sections = [chunk.render() for chunk in batch]
    if overlap_text:
        sections.insert(0, f"{section_header(OVERLAP_SECTION)}\n{overlap_text}")
    return "\n\n".join(sections)


def _overlap_tail(batch: Sequence[ContextChunk], overlap_tokens: int) -> str:
    if overlap_tokens <= 0:
        return ""
    text = "\n\n".join(chunk.content for chunk in batch)
    return text[-overlap_tokens * CHARS_PER_TOKEN :]


def _summary_text(result: object) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, default=str)


async def _sequential_chaining(
    chunked_context: ChunkedContext,
    base_prompt: str,
    generator: Generator,
    combiner: Combiner,
    max_tokens: int,
    overlap_tokens: int,
    log: logging.Logger,
) -> ChainResult:
    log.info(
        "Using sequential chaining for large context (%d tokens)", chunked_context.total_tokens
    )
    available_per_batch = max_tokens - estimate_tokens(base_prompt) - CHAIN_SAFETY_MARGIN_TOKENS
    batches = plan_batches(
        chunked_context.chunks, available_per_batch, overlap_tokens=overlap_tokens
    )

    results: List[object] = []
    previous: Sequence[ContextChunk] = ()
    for index, batch in enumerate(batches, start=1):
        log.info(
            "Processing batch %d/%d (%d chunks, ~%d tokens)",
            index,
            len(batches),
            len(batch),
            sum(chunk.token_estimate for chunk in batch),
        )
        content = render_batch(batch, _overlap_tail(previous, overlap_tokens))
        results.append(await generator(f"{base_prompt}\n\n{content}"))
        previous = batch

    log.info("Completed %d iterations, combining results", len(batches))
    return ChainResult(result=combiner(results), strategy="sequential", iterations=len(batches))


async def _hierarchical_chaining(
    chunked_context: ChunkedContext,
    base_prompt: str,
    generator: Generator,
    combiner: Combiner,
    max_tokens: int,
    overlap_tokens: int,
    log: logging.Logger,
) -> ChainResult:
    log.info(
        "Using hierarchical chaining for large context (%d tokens)", chunked_context.total_tokens
    )
    critical_chunks = [
        chunk for chunk in chunked_context.chunks if chunk.priority < CRITICAL_PRIORITY_CUTOFF
    ]
    detail_chunks = [
        chunk for chunk in chunked_context.chunks if chunk.priority >= CRITICAL_PRIORITY_CUTOFF
    ]

    log.info("Phase 1: processing %d critical chunks", len(critical_chunks))
    critical_content = render_batch(critical_chunks)
    phase1_prompt = f"{base_prompt}\n\n{critical_content}\n\n---\n\n{SUMMARY_INSTRUCTION}"
    phase1_result = await generator(phase1_prompt)
    phase1_summary = _summary_text(phase1_result)
    phase1_tokens = estimate_tokens(phase1_summary)
    log.info("Phase 1 summary: ~%d tokens", phase1_tokens)

    available_for_detail = (
        max_tokens - estimate_tokens(base_prompt) - phase1_tokens - CHAIN_SAFETY_MARGIN_TOKENS
    )
    batches = plan_batches(detail_chunks, available_for_detail, overlap_tokens=overlap_tokens)

    results: List[object] = [phase1_result]
    previous: Sequence[ContextChunk] = ()
    for index, batch in enumerate(batches, start=1):
        log.info(
            "Phase 2.%d: processing detail batch (%d chunks, ~%d tokens)",
            index,
            len(batch),
            sum(chunk.token_estimate for chunk in batch),
        )
        detail_content = render_batch(batch, _overlap_tail(previous, overlap_tokens))
        detail_prompt = (
            f"{base_prompt}\n\nBASE CONTEXT:\n{phase1_summary}\n\n"
            f"ADDITIONAL DETAILS:\n{detail_content}\n\n---\n\n{REFINE_INSTRUCTION}"
        )
        results.append(await generator(detail_prompt))
        previous = batch

    iterations = 1 + len(batches)
    log.info("Completed hierarchical processing (%d phases), combining results", iterations)
    return ChainResult(result=combiner(results), strategy="hierarchical", iterations=iterations)
