"""
Rendering of prepared structures into prompt text blocks.

Each formatter returns a fixed sentence for empty input so that every prompt
section reads as complete text to the model.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Sequence, Union

from .constants import (
    NO_DOCUMENT_RUNS,
    NO_EXPORTS,
    NO_FILES_UPLOADED,
    NO_INTERVIEW_RESPONSES,
    NO_QUESTIONS,
    NO_SESSIONS,
    NO_STAKEHOLDERS,
)
from .data_prep import (
    ProjectSummary,
    QuestionAnswerPair,
    RawRecord,
    StakeholderProfile,
    UploadedFile,
    format_date_label,
    group_responses_by_category,
    group_responses_by_stakeholder,
    prepare_question_answer_pairs,
)
from .records import (
    DocumentRunRecord,
    ExportRecord,
    QuestionRecord,
    SessionRecord,
    coerce_records,
)


def format_question_answers_for_prompt(qa_pairs: Sequence[QuestionAnswerPair]) -> str:
    """
    Render question/answer pairs as numbered blocks with quoted responses.

    :param qa_pairs: Question/answer pairs.
    :type qa_pairs: Sequence[QuestionAnswerPair]
    :return: Prompt text.
    :rtype: str
    """
    if not qa_pairs:
        return NO_INTERVIEW_RESPONSES

    blocks: List[str] = []
    for index, pair in enumerate(qa_pairs, start=1):
        output = f"\nQ{index}: {pair.question}"
        output += f"\nCategory: {pair.category}"
        if pair.priority:
            output += f" | Priority: {pair.priority}"
        output += f"\nResponses ({len(pair.answers)}):\n"
        for answer_index, answer in enumerate(pair.answers, start=1):
            output += f"\n  {answer_index}. {answer.stakeholder}"
            if answer.role:
                output += f" ({answer.role})"
            output += f':\n     "{answer.response}"'
            output += f"\n     Answered: {answer.timestamp}\n"
        blocks.append(output)
    return "\n---\n".join(blocks)


def format_stakeholders_for_prompt(profiles: Sequence[StakeholderProfile]) -> str:
    """
    Render stakeholder profiles as a numbered list.

    :param profiles: Stakeholder profiles.
    :type profiles: Sequence[StakeholderProfile]
    :return: Prompt text.
    :rtype: str
    """
    if not profiles:
        return NO_STAKEHOLDERS
    return "\n\n".join(
        f"{index}. {profile.name} - {profile.role} ({profile.department})\n"
        f"   Email: {profile.email or 'N/A'}\n"
        f"   Status: {profile.status}\n"
        f"   Responses: {profile.response_count}\n"
        f"   Completion: {profile.completion_rate}"
        for index, profile in enumerate(profiles, start=1)
    )


def format_uploads_for_prompt(files: Sequence[UploadedFile]) -> str:
    """
    Render prepared uploads, embedding full content when it was extracted.

    Files without extracted content show their preview instead.

    :param files: Prepared uploads.
    :type files: Sequence[UploadedFile]
    :return: Prompt text.
    :rtype: str
    """
    if not files:
        return NO_FILES_UPLOADED

    blocks: List[str] = []
    for index, file in enumerate(files, start=1):
        output = f"{index}. {file.name}\n"
        output += f"   Type: {file.type}\n"
        output += f"   Size: {file.size}\n"
        if file.description:
            output += f"   Description: {file.description}\n"
        output += f"   Uploaded: {file.uploaded_date}\n"
        if file.has_content and file.content:
            output += "\n   === FILE CONTENT ===\n"
            output += f"{file.content}\n"
            output += "   === END FILE CONTENT ===\n"
        elif file.content_preview:
            output += f"\n   Preview: {file.content_preview}\n"
        blocks.append(output)
    return "\n\n".join(blocks)


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_project_for_prompt(project: ProjectSummary) -> str:
    """
    Render a project summary as labelled lines.

    :param project: Project summary.
    :type project: ProjectSummary
    :return: Prompt text.
    :rtype: str
    """
    output = f"Project: {project.name}\n"
    output += f"Description: {project.description}\n"
    output += f"Status: {project.status}"
    output += f" ({_format_number(project.progress)}% complete)"
    if project.client_name:
        output += f"\nClient: {project.client_name}"
    if project.start_date:
        output += f"\nStart Date: {project.start_date}"
    if project.target_end_date:
        output += f"\nTarget End: {project.target_end_date}"
    return output


def format_question_list(questions: Iterable[Union[QuestionRecord, Mapping[str, Any]]]) -> str:
    """
    Render questions as ``- [category] text`` lines.

    :param questions: Question rows.
    :type questions: Iterable[QuestionRecord or Mapping[str, Any]]
    :return: Prompt text.
    :rtype: str
    """
    records = coerce_records(QuestionRecord, questions)
    if not records:
        return NO_QUESTIONS
    return "\n".join(
        f"- [{question.category or 'General'}] {question.text}" for question in records
    )


def format_responses_by_category(qa_pairs: Sequence[QuestionAnswerPair]) -> str:
    """
    Render question/answer pairs under one heading per category.
    """
    grouped = group_responses_by_category(qa_pairs)
    return "\n".join(
        f"\n### {category}\n{format_question_answers_for_prompt(pairs)}"
        for category, pairs in grouped.items()
    )


def format_responses_by_stakeholder(responses: Iterable[RawRecord]) -> str:
    """
    Render each stakeholder's answers under one heading per stakeholder.
    """
    grouped = group_responses_by_stakeholder(responses)
    return "\n".join(
        f"\n### {name}\n{format_question_answers_for_prompt(prepare_question_answer_pairs(rows))}"
        for name, rows in grouped.items()
    )


def format_sessions_for_prompt(sessions: Iterable[Union[SessionRecord, Mapping[str, Any]]]) -> str:
    """
    Render interview sessions as a numbered list.

    :param sessions: Interview session rows.
    :type sessions: Iterable[SessionRecord or Mapping[str, Any]]
    :return: Prompt text.
    :rtype: str
    """
    records = coerce_records(SessionRecord, sessions)
    if not records:
        return NO_SESSIONS
    lines: List[str] = []
    for index, session in enumerate(records, start=1):
        name = (session.stakeholder.name if session.stakeholder else None) or "Unknown"
        state = session.status or "unknown"
        if session.is_closed:
            state += ", closed"
        elif session.is_locked:
            state += ", locked"
        line = f"{index}. {name} - {state}"
        line += f"\n   Created: {format_date_label(session.created_at)}"
        if session.last_accessed_at:
            line += f"\n   Last accessed: {format_date_label(session.last_accessed_at)}"
        line += f"\n   Visits: {session.access_count}"
        lines.append(line)
    return "\n\n".join(lines)


def format_document_runs_for_prompt(
    runs: Iterable[Union[DocumentRunRecord, Mapping[str, Any]]],
) -> str:
    """
    Render document generation runs as a numbered list.
    """
    records = coerce_records(DocumentRunRecord, runs)
    if not records:
        return NO_DOCUMENT_RUNS
    lines: List[str] = []
    for index, run in enumerate(records, start=1):
        label = run.run_label or run.custom_document_name or "Untitled run"
        line = f"{index}. {label} - {run.status or 'unknown'}"
        if run.llm_model:
            line += f" ({run.llm_model})"
        line += f"\n   Created: {format_date_label(run.created_at)}"
        line += f"\n   Documents: {len(run.files)}"
        lines.append(line)
    return "\n\n".join(lines)


def format_exports_for_prompt(exports: Iterable[Union[ExportRecord, Mapping[str, Any]]]) -> str:
    """
    Render project exports as a numbered list.
    """
    records = coerce_records(ExportRecord, exports)
    if not records:
        return NO_EXPORTS
    return "\n".join(
        f"{index}. {export.export_type or 'export'} of {export.project_name or 'project'}"
        f" on {format_date_label(export.created_at)}"
        for index, export in enumerate(records, start=1)
    )
