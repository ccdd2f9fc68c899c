"""
Clarity public package interface.
"""

from .chaining import ChainResult, generate_with_chaining
from .chunking import (
    ChunkedContext,
    ChunkStrategy,
    ContextChunk,
    PromptFit,
    build_prompt_within_limit,
    create_context_chunks,
    estimate_tokens,
    smart_truncate,
)
from .context_builder import AIContextData, FormattedAIContext, build_ai_context
from .documents import (
    DocumentStructure,
    combine_documents,
    format_document,
    parse_structured_response,
)
from .errors import ClarityError, ConfigurationError, StructuredResponseError
from .generation import DocumentGenerationRequest, DocumentGenerationResult, generate_document
from .prompts import (
    EnhancedPromptResult,
    PromptContext,
    build_enhanced_prompt,
    build_structured_prompt,
    create_custom_document_prompt,
)

__all__ = [
    "__version__",
    "AIContextData",
    "ChainResult",
    "ChunkStrategy",
    "ChunkedContext",
    "ClarityError",
    "ConfigurationError",
    "ContextChunk",
    "DocumentGenerationRequest",
    "DocumentGenerationResult",
    "DocumentStructure",
    "EnhancedPromptResult",
    "FormattedAIContext",
    "PromptContext",
    "PromptFit",
    "StructuredResponseError",
    "build_ai_context",
    "build_enhanced_prompt",
    "build_prompt_within_limit",
    "build_structured_prompt",
    "combine_documents",
    "create_context_chunks",
    "create_custom_document_prompt",
    "estimate_tokens",
    "format_document",
    "generate_document",
    "generate_with_chaining",
    "parse_structured_response",
    "smart_truncate",
]

__version__ = "0.1.0"
