"""
Document-generation prompt templates and placeholder substitution.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from jinja2 import Environment, StrictUndefined
from pydantic import BaseModel, ConfigDict

from .chunking import (
    ChainStrategyName,
    ChunkedContext,
    ChunkStrategy,
    build_prompt_within_limit,
    create_context_chunks,
    estimate_tokens,
    section_header,
)
from .constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_OVERLAP_TOKENS,
    NO_FILES,
    NO_INTERVIEW_RESPONSES,
    NO_QUESTIONS,
    NO_RESPONSES,
    NO_STAKEHOLDER_INFO,
    NO_STAKEHOLDER_RESPONSES,
    NO_STAKEHOLDERS,
    NO_SUPPLEMENTAL_FILES,
)
from .data_prep import (
    format_timestamp_label,
    prepare_project_summary,
    prepare_question_answer_pairs,
    prepare_stakeholder_profiles,
    prepare_uploaded_files,
)
from .formatters import (
    format_project_for_prompt,
    format_question_answers_for_prompt,
    format_question_list,
    format_responses_by_category,
    format_responses_by_stakeholder,
    format_stakeholders_for_prompt,
    format_uploads_for_prompt,
)
from .records import ClientRecord, ResponseRecord, UploadRecord, coerce_record, coerce_records

logger = logging.getLogger(__name__)

TEMPLATE_VARIABLES = (
    "project_name",
    "project_description",
    "transcript",
    "stakeholder_responses",
    "question_answers",
    "responses_by_category",
    "responses_by_stakeholder",
    "stakeholder_profiles",
    "stakeholders",
    "uploads",
    "files",
    "questions",
    "question_list",
    "project_summary",
)

ENHANCED_PRIORITY_ORDER = [
    "project_summary",
    "template_prompt",
    "question_answers",
    "stakeholder_profiles",
    "file_content",
    "questions_list",
    "metadata",
]

_PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# Placeholders whose data travels as separate chunks in chained generation.
_CHUNKED_PLACEHOLDERS = {
    "stakeholder_responses": "question_answers",
    "question_answers": "question_answers",
    "responses_by_category": "question_answers",
    "responses_by_stakeholder": "question_answers",
    "stakeholder_profiles": "stakeholder_profiles",
    "stakeholders": "stakeholder_profiles",
    "uploads": "file_content",
    "files": "file_content",
    "questions": "questions_list",
    "question_list": "questions_list",
    "project_summary": "project_summary",
}

OUTPUT_CONTRACT_TEMPLATE = """

CRITICAL INSTRUCTIONS FOR OUTPUT FORMAT:
========================================

You MUST return ONLY a valid JSON object. Do not include any explanatory text before or after the JSON.
Use this EXACT structure:

{
  "title": {{ document_title|tojson }},
  "metadata": {
    "project": {{ project_name|tojson }},
    "client": {{ client_name|tojson }},
    "date": {{ generated_on|tojson }},
    "version": "1.0",
    "author": "AI Generated",
    "status": "Draft"
  },
  "summary": "Write a concise 2-4 sentence executive summary that captures the essence of this document",
  "sections": [
    {
      "heading": "Section Title Here",
      "summary": "Brief 1-2 sentence overview of this section",
      "content": "Optional: Main paragraph content for this section",
      "callout": {
        "type": "info",
        "content": "Optional: Important note or warning for this section"
      },
      "table": {
        "headers": ["Column 1", "Column 2", "Column 3"],
        "rows": [
          ["Data 1", "Data 2", "Data 3"],
          ["Data 4", "Data 5", "Data 6"]
        ]
      },
      "items": [
        {
          "title": "Key Point or Finding Title",
          "description": "Detailed explanation of this point",
          "priority": "High",
          "status": "In Progress",
          "tags": ["tag1", "tag2"],
          "details": [
            "Supporting detail 1",
            "Supporting detail 2",
            "Supporting detail 3"
          ]
        }
      ],
      "subsections": [
        {
          "title": "Subsection Name",
          "content": "Subsection content",
          "table": {
            "headers": ["Header 1", "Header 2"],
            "rows": [["Value 1", "Value 2"]]
          },
          "items": [
            "List item 1",
            "List item 2"
          ]
        }
      ]
    }
  ],
  "appendix": [
    {
      "title": "Additional Information",
      "content": "Detailed supplementary content"
    }
  ],
  "references": [
    "Reference 1",
    "Reference 2"
  ]
}

JSON STRUCTURE RULES:
- "title": Document title (string, required)
- "metadata": Object with project info (optional but recommended)
- "summary": Executive summary (string, optional but recommended)
- "sections": Array of section objects (required, minimum {{ minimum_sections }} sections)
  - Each section can have:
    - "heading": Section name (string, required)
    - "summary": Brief section overview (string, optional)
    - "content": Main text content (string, optional)
    - "callout": Warning, tip, or note (object, optional) with type: "info"|"warning"|"tip"|"note"
    - "table": Data table (object, optional) with headers and rows arrays
    - "items": Array of detailed items (array, optional)
      - Each item can have: title, description, priority, status, tags, details array
    - "subsections": Nested sections (array, optional) with title, content, table, items
- "appendix": Additional sections (array, optional)
- "references": List of references (array, optional)

CONTENT QUALITY REQUIREMENTS:
- Be comprehensive and detailed
- Use professional business language
- Provide specific, actionable insights
- Include concrete examples where applicable
- Structure content logically with clear hierarchy
- Use tables for comparative data or structured information
- Add priority/status fields to requirements or user stories
- Use callouts to highlight important information
- Ensure all JSON is properly formatted and valid
- Use proper quotation marks and escape special characters

Remember: Output ONLY the JSON object, no additional text."""

EXAMPLE_TEMPLATES: Dict[str, str] = {
    "sprint0": """Generate a comprehensive Sprint 0 Summary document based on the following project information and stakeholder responses.

This document should serve as the foundation for the project and include:

1. **Executive Summary**: High-level overview of the project, its goals, and expected outcomes
2. **Project Objectives**: Clear, measurable objectives aligned with stakeholder needs
3. **Stakeholder Insights**: Key findings from stakeholder interviews, organized by theme
4. **Requirements Overview**: High-level requirements categorized by priority and feasibility
5. **Technical Considerations**: Technology stack, architecture considerations, and constraints
6. **Risks & Assumptions**: Identified risks, dependencies, and assumptions to validate
7. **Success Metrics**: How success will be measured
8. **Next Steps**: Recommended actions and priorities for Sprint 1

Project: {{project_name}}
Description: {{project_description}}

Stakeholder Responses:
{{stakeholder_responses}}

Supplemental Documents:
{{uploads}}""",
    "requirements": """Create a detailed Requirements Document based on stakeholder input and project information.

The document should include:

1. **Introduction**: Project background and purpose of this document
2. **Functional Requirements**: User-facing features and capabilities
3. **Non-Functional Requirements**: Performance, security, scalability requirements
4. **User Stories**: Detailed user stories derived from stakeholder input
5. **Acceptance Criteria**: Clear criteria for each major requirement
6. **Technical Constraints**: Platform, integration, and technical limitations
7. **Assumptions & Dependencies**: What we're assuming and what we depend on
8. **Out of Scope**: What explicitly will NOT be included

Project: {{project_name}}
Description: {{project_description}}

Stakeholder Input:
{{stakeholder_responses}}

Supporting Materials:
{{uploads}}""",
    "technical_specs": """Develop a Technical Specification document that translates requirements into technical architecture.

Include these sections:

1. **System Overview**: High-level architecture and component diagram description
2. **Technology Stack**: Recommended technologies with justification
3. **Data Model**: Key entities, relationships, and data structures
4. **API Specifications**: Endpoints, methods, and integration points
5. **Security Architecture**: Authentication, authorization, data protection
6. **Performance Requirements**: Response times, throughput, scalability targets
7. **Infrastructure**: Hosting, deployment, monitoring considerations
8. **Development Roadmap**: Phased approach to implementation

Project: {{project_name}}
Technical Context: {{project_description}}

Requirements Basis:
{{stakeholder_responses}}

Technical References:
{{uploads}}""",
}


class PromptContext(BaseModel):
    """
    Project data for document-generation prompts.

    :ivar stakeholder_responses: Response rows with joined question and stakeholder relations.
    :vartype stakeholder_responses: list or None
    """

    model_config = ConfigDict(extra="forbid")

    project_name: Optional[str] = None
    project_description: Optional[str] = None
    transcript: Optional[str] = None
    stakeholder_responses: Optional[List[Any]] = None
    uploads: Optional[List[Any]] = None
    questions: Optional[List[Any]] = None
    project: Optional[Any] = None
    client: Optional[Any] = None
    stakeholders: Optional[List[Any]] = None

    def client_name(self) -> str:
        """
        Resolve the client name, or an empty string.
        """
        if self.client is None:
            return ""
        return coerce_record(ClientRecord, self.client).name or ""


@dataclass(frozen=True)
class EnhancedPromptResult:
    """
    Budget-fitted document prompt.

    :ivar prompt: Final prompt text including the output contract.
    :vartype prompt: str
    :ivar token_estimate: Estimated tokens of ``prompt``.
    :vartype token_estimate: int
    :ivar used_variables: Known placeholders referenced by the template.
    :vartype used_variables: list[str]
    :ivar dropped_content: Chunk types that did not fit, or None.
    :vartype dropped_content: list[str] or None
    :ivar needs_chunking: Whether the full context exceeded the budget.
    :vartype needs_chunking: bool
    """

    prompt: str
    token_estimate: int
    used_variables: List[str]
    dropped_content: Optional[List[str]]
    needs_chunking: bool


def _coerce_context(context: Union[PromptContext, Mapping[str, Any]]) -> PromptContext:
    if isinstance(context, PromptContext):
        return context
    return PromptContext.model_validate(dict(context))


def _long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def placeholder_values(context: Union[PromptContext, Mapping[str, Any]]) -> Dict[str, str]:
    """
    Compute the substitution text for every known placeholder.

    :param context: Prompt context.
    :type context: PromptContext or Mapping[str, Any]
    :return: Placeholder name to text, with fallback sentences for missing data.
    :rtype: dict[str, str]
    """
    context = _coerce_context(context)
    values: Dict[str, str] = {
        "project_name": context.project_name or "Untitled Project",
        "project_description": context.project_description or "No description provided",
        "transcript": context.transcript or "",
    }

    if context.stakeholder_responses:
        qa_pairs = prepare_question_answer_pairs(context.stakeholder_responses)
        formatted_qa = format_question_answers_for_prompt(qa_pairs)
        values["stakeholder_responses"] = formatted_qa
        values["question_answers"] = formatted_qa
        values["responses_by_category"] = format_responses_by_category(qa_pairs)
        values["responses_by_stakeholder"] = format_responses_by_stakeholder(
            context.stakeholder_responses
        )
    else:
        values["stakeholder_responses"] = NO_STAKEHOLDER_RESPONSES
        values["question_answers"] = NO_INTERVIEW_RESPONSES
        values["responses_by_category"] = NO_RESPONSES
        values["responses_by_stakeholder"] = NO_RESPONSES

    if context.uploads:
        formatted_uploads = format_uploads_for_prompt(prepare_uploaded_files(context.uploads))
        values["uploads"] = formatted_uploads
        values["files"] = formatted_uploads
    else:
        values["uploads"] = NO_SUPPLEMENTAL_FILES
        values["files"] = NO_FILES

    if context.stakeholders and context.stakeholder_responses is not None:
        profiles = prepare_stakeholder_profiles(context.stakeholders, context.stakeholder_responses)
        formatted_profiles = format_stakeholders_for_prompt(profiles)
        values["stakeholder_profiles"] = formatted_profiles
        values["stakeholders"] = formatted_profiles
    else:
        values["stakeholder_profiles"] = NO_STAKEHOLDER_INFO
        values["stakeholders"] = NO_STAKEHOLDERS

    values["project_summary"] = (
        format_project_for_prompt(prepare_project_summary(context.project, context.client))
        if context.project
        else ""
    )

    formatted_questions = format_question_list(context.questions) if context.questions else ""
    values["questions"] = formatted_questions or NO_QUESTIONS
    values["question_list"] = formatted_questions or NO_QUESTIONS
    return values


def substitute_placeholders(template: str, values: Mapping[str, str]) -> str:
    """
    Replace ``{{name}}`` placeholders in one pass.

    Placeholders without a value are left untouched, and substituted text is
    never scanned again.

    :param template: Template text.
    :type template: str
    :param values: Placeholder name to substitution text.
    :type values: Mapping[str, str]
    :return: Substituted text.
    :rtype: str
    """
    return _PLACEHOLDER_PATTERN.sub(
        lambda match: values.get(match.group(1), match.group(0)), template
    )


def find_template_variables(template: str) -> List[str]:
    """
    List the known placeholders a template references, in canonical order.
    """
    return [name for name in TEMPLATE_VARIABLES if f"{{{{{name}}}}}" in template]


def render_output_contract(
    document_title: str,
    context: Union[PromptContext, Mapping[str, Any]],
    *,
    today: Optional[date] = None,
    minimum_sections: int = 3,
) -> str:
    """
    Render the strict JSON output instructions for document generation.

    :param document_title: Title the document must carry.
    :type document_title: str
    :param context: Prompt context supplying project and client names.
    :type context: PromptContext or Mapping[str, Any]
    :param today: Date placed in the metadata example. Defaults to today.
    :type today: datetime.date or None
    :param minimum_sections: Minimum number of sections requested.
    :type minimum_sections: int
    :return: Instruction text.
    :rtype: str
    """
    context = _coerce_context(context)
    env = Environment(undefined=StrictUndefined)
    return env.from_string(OUTPUT_CONTRACT_TEMPLATE).render(
        document_title=document_title,
        project_name=context.project_name or "Untitled Project",
        client_name=context.client_name(),
        generated_on=_long_date(today or date.today()),
        minimum_sections=minimum_sections,
    )


def build_structured_prompt(
    base_prompt: str,
    context: Union[PromptContext, Mapping[str, Any]],
    document_title: str,
    *,
    today: Optional[date] = None,
) -> str:
    """
    Substitute project data into a template and append the JSON output contract.

    :param base_prompt: Template text with ``{{placeholder}}`` references.
    :type base_prompt: str
    :param context: Prompt context.
    :type context: PromptContext or Mapping[str, Any]
    :param document_title: Title of the requested document.
    :type document_title: str
    :param today: Date placed in the metadata example.
    :type today: datetime.date or None
    :return: Prompt text.
    :rtype: str
    """
    context = _coerce_context(context)
    prompt = substitute_placeholders(base_prompt, placeholder_values(context))
    return prompt + render_output_contract(document_title, context, today=today)


def create_custom_document_prompt(
    custom_prompt: str,
    context: Union[PromptContext, Mapping[str, Any]],
    document_name: str,
    *,
    today: Optional[date] = None,
) -> str:
    """
    Wrap a free-form user request with a compact project briefing.

    :param custom_prompt: User-written instructions.
    :type custom_prompt: str
    :param context: Prompt context.
    :type context: PromptContext or Mapping[str, Any]
    :param document_name: Name of the requested document.
    :type document_name: str
    :return: Prompt text.
    :rtype: str
    """
    context = _coerce_context(context)
    responses = coerce_records(ResponseRecord, context.stakeholder_responses)
    insights = "\n\n".join(
        f"{(response.stakeholders.name if response.stakeholders else None) or 'Unknown'}: "
        f"{(response.questions.text if response.questions else None) or 'Unknown question'}\n"
        f"Response: {response.response or 'No response'}"
        for response in responses
    )
    uploads = coerce_records(UploadRecord, context.uploads)
    supplemental = "\n".join(
        f"- {upload.file_name}: {upload.description or 'No description'}" for upload in uploads
    )
    briefing = f"""
PROJECT CONTEXT:
================
Project Name: {context.project_name or 'Untitled Project'}
Description: {context.project_description or 'No description provided'}

STAKEHOLDER INSIGHTS:
====================
{insights or 'No stakeholder responses available'}

SUPPLEMENTAL FILES:
==================
{supplemental or 'No files uploaded'}

YOUR TASK:
==========
{custom_prompt}
"""
    return build_structured_prompt(briefing, context, document_name, today=today)


def build_context_parts(
    context: Union[PromptContext, Mapping[str, Any]],
    document_title: str,
    *,
    template_prompt: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Build the named text blocks that feed chunking for a document.

    :param context: Prompt context.
    :type context: PromptContext or Mapping[str, Any]
    :param document_title: Title of the requested document.
    :type document_title: str
    :param template_prompt: Template text to include as its own block.
    :type template_prompt: str or None
    :param generated_at: Generation time recorded in the metadata block.
    :type generated_at: datetime.datetime or None
    :return: Section key to text, in priority order.
    :rtype: dict[str, str]
    """
    context = _coerce_context(context)
    parts: Dict[str, str] = {
        "project_summary": (
            format_project_for_prompt(prepare_project_summary(context.project, context.client))
            if context.project
            else ""
        ),
    }
    if template_prompt is not None:
        parts["template_prompt"] = template_prompt

    if context.stakeholder_responses:
        qa_pairs = prepare_question_answer_pairs(context.stakeholder_responses)
        parts["question_answers"] = format_question_answers_for_prompt(qa_pairs)
        if context.stakeholders is not None:
            profiles = prepare_stakeholder_profiles(
                context.stakeholders, context.stakeholder_responses
            )
            parts["stakeholder_profiles"] = format_stakeholders_for_prompt(profiles)

    if context.uploads:
        parts["file_content"] = format_uploads_for_prompt(prepare_uploaded_files(context.uploads))

    if context.questions:
        parts["questions_list"] = format_question_list(context.questions)

    timestamp = format_timestamp_label(generated_at or datetime.now())
    parts["metadata"] = f"Document: {document_title}\nGenerated: {timestamp}"
    return parts


def log_context_analysis(chunked_context: ChunkedContext, log: logging.Logger) -> None:
    """
    Log the size and priority of each chunk.
    """
    log.info(
        "Context analysis: %d chunks, ~%d tokens, needs chaining=%s, strategy=%s",
        len(chunked_context.chunks),
        chunked_context.total_tokens,
        chunked_context.needs_chaining,
        chunked_context.chain_strategy or "single-pass",
    )
    for chunk in chunked_context.chunks:
        log.info(
            "  %s: ~%d tokens (priority %d)", chunk.type, chunk.token_estimate, chunk.priority
        )


def build_enhanced_prompt(
    base_prompt: str,
    context: Union[PromptContext, Mapping[str, Any]],
    document_title: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    *,
    today: Optional[date] = None,
    log: Optional[logging.Logger] = None,
) -> EnhancedPromptResult:
    """
    Build a single document prompt that fits the token budget.

    The template and each data block become chunks; the highest-priority
    chunks that fit are kept, then placeholders are substituted and the JSON
    output contract is appended.

    :param base_prompt: Template text with ``{{placeholder}}`` references.
    :type base_prompt: str
    :param context: Prompt context.
    :type context: PromptContext or Mapping[str, Any]
    :param document_title: Title of the requested document.
    :type document_title: str
    :param max_tokens: Token budget for the fitted context.
    :type max_tokens: int
    :param today: Date placed in the metadata example.
    :type today: datetime.date or None
    :param log: Logger receiving the context analysis.
    :type log: logging.Logger or None
    :return: Fitted prompt and budget report.
    :rtype: EnhancedPromptResult
    """
    log = log or logger
    context = _coerce_context(context)
    parts = build_context_parts(context, document_title, template_prompt=base_prompt)
    chunked_context = create_context_chunks(
        parts,
        ChunkStrategy(
            max_tokens=max_tokens,
            overlap_tokens=DEFAULT_OVERLAP_TOKENS,
            priority_order=ENHANCED_PRIORITY_ORDER,
        ),
    )
    log_context_analysis(chunked_context, log)

    fit = build_prompt_within_limit(chunked_context, "", max_tokens, log=log)
    final_prompt = build_structured_prompt(fit.prompt.strip(), context, document_title, today=today)
    return EnhancedPromptResult(
        prompt=final_prompt,
        token_estimate=estimate_tokens(final_prompt),
        used_variables=find_template_variables(base_prompt),
        dropped_content=fit.dropped_chunks or None,
        needs_chunking=chunked_context.needs_chaining,
    )


def build_chain_base_prompt(
    template: str,
    context: Union[PromptContext, Mapping[str, Any]],
    document_title: str,
    *,
    sent_chunks: Iterable[str] = (),
    dropped_chunks: Iterable[str] = (),
    today: Optional[date] = None,
) -> str:
    """
    Build the instruction prompt repeated in every generation call.

    Placeholders whose data travels as a chunk in ``sent_chunks`` point to
    that chunk's section, so the data itself is only sent once. Placeholders
    whose chunk was dropped for budget get the no-data fallback text. All
    other placeholders are substituted as in :func:`build_structured_prompt`.

    :param template: Template text with ``{{placeholder}}`` references.
    :type template: str
    :param context: Prompt context.
    :type context: PromptContext or Mapping[str, Any]
    :param document_title: Title of the requested document.
    :type document_title: str
    :param sent_chunks: Chunk types included in the prompt or its batches.
    :type sent_chunks: Iterable[str]
    :param dropped_chunks: Chunk types left out for lack of budget.
    :type dropped_chunks: Iterable[str]
    :param today: Date placed in the metadata example.
    :type today: datetime.date or None
    :return: Prompt text ending with the JSON output contract.
    :rtype: str
    """
    context = _coerce_context(context)
    sent = set(sent_chunks)
    dropped = set(dropped_chunks)
    values = placeholder_values(context)
    fallbacks = placeholder_values(PromptContext())
    for placeholder, chunk_type in _CHUNKED_PLACEHOLDERS.items():
        if chunk_type in sent:
            values[placeholder] = f"(See the {section_header(chunk_type)} section below.)"
        elif chunk_type in dropped:
            values[placeholder] = fallbacks[placeholder]
    prompt = substitute_placeholders(template, values)
    return prompt + render_output_contract(document_title, context, today=today)


def build_document_chunks(
    context: Union[PromptContext, Mapping[str, Any]],
    document_title: str,
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    chain_strategy: Optional[ChainStrategyName] = None,
    generated_at: Optional[datetime] = None,
) -> ChunkedContext:
    """
    Chunk the project data for chained document generation.
    """
    parts = build_context_parts(context, document_title, generated_at=generated_at)
    return create_context_chunks(
        parts,
        ChunkStrategy(max_tokens=max_tokens),
        chain_strategy=chain_strategy,
    )
