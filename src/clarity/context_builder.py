"""
Task-level assembly of project data into prompt context.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from .constants import (
    NO_FILES_UPLOADED,
    NO_INTERVIEW_RESPONSES,
    NO_PROJECT_INFO,
    NO_QUESTIONS,
    NO_RESPONSES,
    NO_STAKEHOLDER_INFO,
)
from .data_prep import (
    prepare_project_summary,
    prepare_question_answer_pairs,
    prepare_stakeholder_profiles,
    prepare_uploaded_files,
)
from .formatters import (
    format_document_runs_for_prompt,
    format_exports_for_prompt,
    format_project_for_prompt,
    format_question_answers_for_prompt,
    format_question_list,
    format_responses_by_category,
    format_responses_by_stakeholder,
    format_sessions_for_prompt,
    format_stakeholders_for_prompt,
    format_uploads_for_prompt,
)


class AIContextData(BaseModel):
    """
    Raw project data available to an AI task.

    Every list holds database rows (mappings) or record models. ``None`` means
    the data was not loaded, which differs from an empty list for stakeholder
    profiles and the optional summaries. The kickoff ``transcript`` travels
    with the same data files for document prompts and is not a context section.
    """

    model_config = ConfigDict(extra="forbid")

    project: Optional[Any] = None
    client: Optional[Any] = None
    stakeholders: Optional[List[Any]] = None
    responses: Optional[List[Any]] = None
    uploads: Optional[List[Any]] = None
    questions: Optional[List[Any]] = None
    sessions: Optional[List[Any]] = None
    document_runs: Optional[List[Any]] = None
    exports: Optional[List[Any]] = None
    transcript: Optional[str] = None


class FormattedAIContext(BaseModel):
    """
    Formatted prompt sections plus the concatenated full context.

    :ivar full_context: All sections joined under labelled headings.
    :vartype full_context: str
    """

    model_config = ConfigDict(extra="forbid")

    project_summary: str
    stakeholder_profiles: str
    interview_data: str
    interview_by_category: str
    interview_by_stakeholder: str
    uploaded_files: str
    question_list: str
    session_summary: Optional[str] = None
    document_run_summary: Optional[str] = None
    export_summary: Optional[str] = None
    full_context: str


def build_ai_context(data: Union[AIContextData, Mapping[str, Any]]) -> FormattedAIContext:
    """
    Format all project data into prompt sections.

    :param data: Raw project data.
    :type data: AIContextData or Mapping[str, Any]
    :return: Formatted context.
    :rtype: FormattedAIContext
    """
    if not isinstance(data, AIContextData):
        data = AIContextData.model_validate(dict(data))

    project_summary = (
        format_project_for_prompt(prepare_project_summary(data.project, data.client))
        if data.project
        else NO_PROJECT_INFO
    )
    stakeholder_profiles = NO_STAKEHOLDER_INFO
    if data.stakeholders is not None and data.responses is not None:
        profiles = prepare_stakeholder_profiles(data.stakeholders, data.responses)
        stakeholder_profiles = format_stakeholders_for_prompt(profiles)

    interview_data = NO_INTERVIEW_RESPONSES
    interview_by_category = NO_RESPONSES
    interview_by_stakeholder = NO_RESPONSES
    if data.responses:
        qa_pairs = prepare_question_answer_pairs(data.responses)
        interview_data = format_question_answers_for_prompt(qa_pairs)
        interview_by_category = format_responses_by_category(qa_pairs)
        interview_by_stakeholder = format_responses_by_stakeholder(data.responses)

    uploaded_files = (
        format_uploads_for_prompt(prepare_uploaded_files(data.uploads))
        if data.uploads
        else NO_FILES_UPLOADED
    )
    question_list = format_question_list(data.questions) if data.questions else NO_QUESTIONS

    session_summary = (
        format_sessions_for_prompt(data.sessions) if data.sessions is not None else None
    )
    document_run_summary = (
        format_document_runs_for_prompt(data.document_runs)
        if data.document_runs is not None
        else None
    )
    export_summary = format_exports_for_prompt(data.exports) if data.exports is not None else None

    sections = [
        ("PROJECT INFORMATION", project_summary),
        ("STAKEHOLDER TEAM", stakeholder_profiles),
        ("INTERVIEW RESPONSES (Q&A Format)", interview_data),
        ("UPLOADED DOCUMENTS & FILES", uploaded_files),
        ("QUESTIONS ASKED", question_list),
        ("INTERVIEW SESSIONS", session_summary),
        ("DOCUMENT RUNS", document_run_summary),
        ("PROJECT EXPORTS", export_summary),
    ]
    full_context = "\n\n".join(
        f"{heading}:\n{body}" for heading, body in sections if body is not None
    ).strip()

    return FormattedAIContext(
        project_summary=project_summary,
        stakeholder_profiles=stakeholder_profiles,
        interview_data=interview_data,
        interview_by_category=interview_by_category,
        interview_by_stakeholder=interview_by_stakeholder,
        uploaded_files=uploaded_files,
        question_list=question_list,
        session_summary=session_summary,
        document_run_summary=document_run_summary,
        export_summary=export_summary,
        full_context=full_context,
    )


def build_sidekick_prompt(user_query: str, context: FormattedAIContext) -> str:
    """
    Build the project assistant (sidekick) question-answering prompt.

    :param user_query: Question asked by the user.
    :type user_query: str
    :param context: Formatted project context.
    :type context: FormattedAIContext
    :return: Prompt text.
    :rtype: str
    """
    return f"""You are an AI assistant helping with a software project. You have access to comprehensive project information including stakeholder interviews, uploaded documents, and project details.

{context.full_context}

USER QUESTION:
{user_query}

Provide a helpful, detailed response based on the project context above. If the context contains relevant information, reference it specifically. If you need more information that isn't in the context, let the user know what additional details would be helpful."""


def build_question_generator_prompt(
    category: str, count: int, context: FormattedAIContext
) -> str:
    """
    Build the interview question generation prompt.

    The model is asked for a bare JSON array of ``{text, category, priority}``
    objects, which :func:`clarity.assistants.parse_question_list` reads.

    :param category: Question category to generate for.
    :type category: str
    :param count: Number of questions to request.
    :type count: int
    :param context: Formatted project context.
    :type context: FormattedAIContext
    :return: Prompt text.
    :rtype: str
    """
    return f"""You are generating interview questions for a software project.

{context.full_context}

EXISTING QUESTIONS:
{context.question_list}

TASK:
Generate {count} new, insightful interview questions for the "{category}" category.

REQUIREMENTS:
- Questions should be open-ended and encourage detailed responses
- Avoid duplicating existing questions
- Questions should be relevant to the project context
- Focus on gathering actionable information
- Consider what stakeholders have already shared

Return ONLY a JSON array of question objects in this format:
[
  {{
    "text": "Question text here?",
    "category": "{category}",
    "priority": "high"
  }}
]"""


def build_document_analysis_prompt(document_type: str, context: FormattedAIContext) -> str:
    """
    Build a prompt asking for a synthesized deliverable of the given type.
    """
    return f"""Analyze the project information and create a {document_type}.

{context.full_context}

Based on all available project information, stakeholder feedback, and uploaded documents, create a comprehensive {document_type} that synthesizes all the key information into a useful deliverable."""
