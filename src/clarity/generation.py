"""
End-to-end document generation over a possibly oversized project context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .chaining import generate_with_chaining
from .chunking import ChainStrategyName, ChunkedContext, PromptFit, build_prompt_within_limit
from .constants import DEFAULT_MAX_TOKENS
from .documents import DocumentStructure, combine_documents, parse_structured_response
from .prompts import (
    PromptContext,
    build_chain_base_prompt,
    build_document_chunks,
    log_context_analysis,
)


TextGenerator = Callable[[str], Awaitable[str]]


class DocumentGenerationRequest(BaseModel):
    """
    Inputs for generating one document.

    :ivar template_prompt: Template text with ``{{placeholder}}`` references.
    :vartype template_prompt: str
    :ivar document_title: Title the document must carry.
    :vartype document_title: str
    :ivar context: Project data.
    :vartype context: PromptContext
    :ivar max_tokens: Token budget for each generation call.
    :vartype max_tokens: int
    :ivar chain_strategy: Chaining strategy used when the context does not fit.
    :vartype chain_strategy: str or None
    :ivar overlap_tokens: Tokens of the previous batch repeated in the next one.
    :vartype overlap_tokens: int
    """

    model_config = ConfigDict(extra="forbid")

    template_prompt: str = Field(min_length=1)
    document_title: str = Field(min_length=1)
    context: PromptContext = Field(default_factory=PromptContext)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    chain_strategy: Optional[ChainStrategyName] = None
    overlap_tokens: int = Field(default=0, ge=0)


@dataclass(frozen=True)
class DocumentGenerationResult:
    """
    Generated document with a report of how it was produced.

    :ivar document: Combined document.
    :vartype document: DocumentStructure
    :ivar strategy: ``single-pass``, ``sequential`` or ``hierarchical``.
    :vartype strategy: str
    :ivar iterations: Number of generation calls.
    :vartype iterations: int
    :ivar dropped_content: Chunk types left out of a single-pass prompt.
    :vartype dropped_content: list[str]
    """

    document: DocumentStructure
    strategy: str
    iterations: int
    dropped_content: List[str]


async def generate_document(
    request: DocumentGenerationRequest,
    generator: TextGenerator,
    *,
    logger: Optional[logging.Logger] = None,
    today: Optional[date] = None,
    generated_at: Optional[datetime] = None,
) -> DocumentGenerationResult:
    """
    Generate a structured document, chaining calls when the context is too large.

    Every response is parsed as a document; chained partial documents are
    merged with :func:`clarity.documents.combine_documents`.

    :param request: Generation inputs.
    :type request: DocumentGenerationRequest
    :param generator: Async callable returning model text for a prompt.
    :type generator: Callable[[str], Awaitable[str]]
    :param logger: Logger receiving progress messages.
    :type logger: logging.Logger or None
    :param today: Date placed in the output contract.
    :type today: datetime.date or None
    :param generated_at: Generation time recorded in the metadata chunk.
    :type generated_at: datetime.datetime or None
    :return: Generated document and generation report.
    :rtype: DocumentGenerationResult
    :raises clarity.errors.StructuredResponseError: If a response is not a valid document.
    """
    log = logger or logging.getLogger(__name__)
    chunked_context = build_document_chunks(
        request.context,
        request.document_title,
        max_tokens=request.max_tokens,
        chain_strategy=request.chain_strategy,
        generated_at=generated_at,
    )
    log_context_analysis(chunked_context, log)

    async def generate_structured(prompt: str) -> DocumentStructure:
        return parse_structured_response(await generator(prompt))

    if not chunked_context.needs_chaining:
        fit = _fit_single_pass(request, chunked_context, today, log)
        document = await generate_structured(fit.prompt)
        return DocumentGenerationResult(
            document=document,
            strategy="single-pass",
            iterations=1,
            dropped_content=fit.dropped_chunks,
        )

    base_prompt = build_chain_base_prompt(
        request.template_prompt,
        request.context,
        request.document_title,
        sent_chunks=[chunk.type for chunk in chunked_context.chunks],
        today=today,
    )
    chained = await generate_with_chaining(
        chunked_context,
        base_prompt,
        generate_structured,
        combine_documents,
        request.max_tokens,
        overlap_tokens=request.overlap_tokens,
        log=log,
    )
    return DocumentGenerationResult(
        document=chained.result,
        strategy=chained.strategy,
        iterations=chained.iterations,
        dropped_content=[],
    )


def _fit_single_pass(
    request: DocumentGenerationRequest,
    chunked_context: ChunkedContext,
    today: Optional[date],
    log: logging.Logger,
) -> PromptFit:
    """
    Fit chunks under a base prompt that only points to sections it carries.

    The base prompt depends on which chunks fit, so the fit is repeated over
    the surviving chunks until the set stops shrinking.
    """
    all_types = [chunk.type for chunk in chunked_context.chunks]
    candidates = chunked_context
    sent = all_types
    while True:
        base_prompt = build_chain_base_prompt(
            request.template_prompt,
            request.context,
            request.document_title,
            sent_chunks=sent,
            dropped_chunks=[chunk_type for chunk_type in all_types if chunk_type not in sent],
            today=today,
        )
        fit = build_prompt_within_limit(candidates, base_prompt, request.max_tokens, log=log)
        if fit.used_chunks == sent:
            dropped = [chunk_type for chunk_type in all_types if chunk_type not in sent]
            return replace(fit, dropped_chunks=dropped)
        sent = fit.used_chunks
        candidates = replace(
            candidates,
            chunks=[chunk for chunk in candidates.chunks if chunk.type in sent],
        )
