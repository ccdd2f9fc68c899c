"""
Normalization of raw project records into prompt-ready structures.

Every function here is pure: inputs are validated into frozen record models
and never mutated, so repeated calls on the same rows give equal output.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .constants import CONTENT_PREVIEW_CHARS, CSV_MAX_ROWS
from .records import (
    ClientRecord,
    ProjectRecord,
    ResponseRecord,
    StakeholderRecord,
    Timestamp,
    UploadRecord,
    coerce_record,
    coerce_records,
)

logger = logging.getLogger(__name__)

RawRecord = Union[BaseModel, Mapping[str, Any]]

_FRACTION_PATTERN = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


class PreparedModel(BaseModel):
    """
    Base model for prepared structures.
    """

    model_config = ConfigDict(extra="forbid")


class Answer(PreparedModel):
    """
    One stakeholder's answer to a question.

    :ivar stakeholder: Stakeholder display name.
    :vartype stakeholder: str
    :ivar role: Stakeholder role.
    :vartype role: str or None
    :ivar department: Stakeholder department.
    :vartype department: str or None
    :ivar response: Response text.
    :vartype response: str
    :ivar timestamp: Human-readable answer time.
    :vartype timestamp: str
    """

    stakeholder: str
    role: Optional[str] = None
    department: Optional[str] = None
    response: str
    timestamp: str


class QuestionAnswerPair(PreparedModel):
    """
    A question with every answer collected for it, in response order.
    """

    question: str
    category: str
    priority: Optional[str] = None
    answers: List[Answer] = Field(min_length=1)


class StakeholderProfile(PreparedModel):
    """
    Stakeholder participation summary.

    :ivar completion_rate: Answered share of all distinct questions, such as ``"67%"``.
    :vartype completion_rate: str
    """

    name: str
    role: str
    department: str
    email: Optional[str] = None
    status: Optional[str] = None
    response_count: int
    completion_rate: str


class UploadedFile(PreparedModel):
    """
    Upload metadata with format-specific content.
    """

    name: str
    type: str
    size: str
    description: Optional[str] = None
    uploaded_date: str
    content: Optional[str] = None
    content_preview: Optional[str] = None
    has_content: bool


class ProjectSummary(PreparedModel):
    """
    Project facts for prompt headers.
    """

    name: str
    description: str
    status: str
    client_name: Optional[str] = None
    start_date: Optional[str] = None
    target_end_date: Optional[str] = None
    progress: Union[int, float] = 0


class ExtractedContent(PreparedModel):
    """
    Result of extracting prompt text from an upload.
    """

    content: Optional[str] = None
    preview: Optional[str] = None
    has_content: bool


def _parse_timestamp(value: Optional[Timestamp]) -> Optional[Union[datetime, date]]:
    if value is None or isinstance(value, (datetime, date)):
        return value
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only reads 3 or 6 fractional digits.
    text = _FRACTION_PATTERN.sub(
        lambda match: f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}", text
    )
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_date_label(value: Optional[Timestamp]) -> str:
    """
    Format a date as ``M/D/YYYY``.

    Unparseable strings are returned unchanged.

    :param value: Date, datetime, or ISO 8601 string.
    :type value: datetime or date or str or None
    :return: Date label.
    :rtype: str
    """
    parsed = _parse_timestamp(value)
    if parsed is None:
        return str(value) if value else "Unknown date"
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def format_timestamp_label(value: Optional[Timestamp]) -> str:
    """
    Format a timestamp as ``M/D/YYYY, H:MM:SS AM``.

    Timestamps are rendered in the offset they carry; no timezone conversion is applied.

    :param value: Date, datetime, or ISO 8601 string.
    :type value: datetime or date or str or None
    :return: Timestamp label.
    :rtype: str
    """
    parsed = _parse_timestamp(value)
    if parsed is None:
        return str(value) if value else "Unknown date"
    if not isinstance(parsed, datetime):
        parsed = datetime(parsed.year, parsed.month, parsed.day)
    hour = parsed.hour % 12 or 12
    meridiem = "AM" if parsed.hour < 12 else "PM"
    return (
        f"{parsed.month}/{parsed.day}/{parsed.year}, "
        f"{hour}:{parsed.minute:02d}:{parsed.second:02d} {meridiem}"
    )


def prepare_question_answer_pairs(responses: Iterable[RawRecord]) -> List[QuestionAnswerPair]:
    """
    Group flat response rows into question/answer pairs.

    Rows are keyed by question identifier, falling back to the question text.
    Pairs appear in order of first response; answers keep row order.

    :param responses: Response rows with joined question and stakeholder relations.
    :type responses: Iterable[ResponseRecord or Mapping[str, Any]]
    :return: Question/answer pairs.
    :rtype: list[QuestionAnswerPair]
    """
    grouped: Dict[str, Dict[str, Any]] = {}
    for response in coerce_records(ResponseRecord, responses):
        question = response.questions
        question_text = (question.text if question else None) or "Unknown Question"
        key = str(response.question_id) if response.question_id is not None else question_text
        if key not in grouped:
            grouped[key] = {
                "question": question_text,
                "category": (question.category if question else None) or "General",
                "priority": question.priority if question else None,
                "answers": [],
            }
        stakeholder = response.stakeholders
        grouped[key]["answers"].append(
            Answer(
                stakeholder=(stakeholder.name if stakeholder else None) or "Unknown Stakeholder",
                role=stakeholder.role if stakeholder else None,
                department=stakeholder.department if stakeholder else None,
                response=response.response or "No response provided",
                timestamp=format_timestamp_label(response.created_at),
            )
        )
    return [QuestionAnswerPair(**fields) for fields in grouped.values()]


def prepare_stakeholder_profiles(
    stakeholders: Iterable[RawRecord], responses: Iterable[RawRecord]
) -> List[StakeholderProfile]:
    """
    Summarize each stakeholder's participation.

    The completion rate compares the distinct questions a stakeholder answered
    with the distinct questions answered by anyone; it is ``0%`` when there are
    no questions at all.

    :param stakeholders: Stakeholder rows.
    :type stakeholders: Iterable[StakeholderRecord or Mapping[str, Any]]
    :param responses: Response rows for the same project.
    :type responses: Iterable[ResponseRecord or Mapping[str, Any]]
    :return: One profile per stakeholder, in input order.
    :rtype: list[StakeholderProfile]
    """
    response_records = coerce_records(ResponseRecord, responses)
    total_questions = len({response.question_id for response in response_records})
    profiles: List[StakeholderProfile] = []
    for stakeholder in coerce_records(StakeholderRecord, stakeholders):
        own = [
            response for response in response_records if response.stakeholder_id == stakeholder.id
        ]
        answered = len({response.question_id for response in own})
        completion = "0%"
        if total_questions:
            completion = f"{_round_half_up(answered / total_questions * 100)}%"
        profiles.append(
            StakeholderProfile(
                name=stakeholder.name,
                role=stakeholder.role or "N/A",
                department=stakeholder.department or "N/A",
                email=stakeholder.email,
                status=stakeholder.status,
                response_count=len(own),
                completion_rate=completion,
            )
        )
    return profiles


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def parse_csv_content(content: str) -> str:
    """
    Render CSV text as a markdown table.

    At most fifty data rows are rendered; a notice reports the rest. Content
    that cannot be parsed is returned unchanged.

    :param content: Raw CSV text.
    :type content: str
    :return: Markdown table or the original content.
    :rtype: str
    """
    try:
        lines = [line for line in csv.reader(io.StringIO(content.strip())) if line]
    except csv.Error:
        logger.warning("Malformed CSV content; passing it through unchanged")
        return content
    if not lines:
        return content

    headers = [cell.strip() for cell in lines[0]]
    rows = [[cell.strip() for cell in line] for line in lines[1:]]
    output = [
        f"CSV Data ({len(rows)} rows):",
        "",
        f"| {' | '.join(headers)} |",
        f"| {' | '.join('---' for _ in headers)} |",
    ]
    output.extend(f"| {' | '.join(row)} |" for row in rows[:CSV_MAX_ROWS])
    formatted = "\n".join(output) + "\n"
    if len(rows) > CSV_MAX_ROWS:
        formatted += f"\n... and {len(rows) - CSV_MAX_ROWS} more rows\n"
    return formatted


def parse_json_content(content: str) -> str:
    """
    Pretty-print JSON text.

    :param content: Raw JSON text.
    :type content: str
    :return: Labelled, indented JSON or the original content when it does not parse.
    :rtype: str
    """
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Malformed JSON content; passing it through unchanged")
        return content
    return f"JSON Data:\n\n{json.dumps(parsed, indent=2, ensure_ascii=False)}"


def extract_text_content(upload: RawRecord) -> ExtractedContent:
    """
    Extract prompt text from an upload, specialized by file type.

    :param upload: Upload row.
    :type upload: UploadRecord or Mapping[str, Any]
    :return: Extracted content, preview, and whether real content existed.
    :rtype: ExtractedContent
    """
    record = coerce_record(UploadRecord, upload)
    raw = record.extracted_content or record.content
    if not raw:
        return ExtractedContent(
            content=None,
            preview=record.description or f"File: {record.file_name}",
            has_content=False,
        )

    file_name = record.file_name.lower()
    mime_type = (record.mime_type or "").lower()
    if file_name.endswith(".csv") or "csv" in mime_type:
        content = parse_csv_content(raw)
    elif file_name.endswith(".json") or "json" in mime_type:
        content = parse_json_content(raw)
    elif (
        file_name.endswith((".xml", ".html"))
        or "xml" in mime_type
        or "html" in mime_type
    ):
        content = f"Markup Content:\n\n{raw}"
    else:
        content = raw

    preview = content[:CONTENT_PREVIEW_CHARS]
    if len(content) > CONTENT_PREVIEW_CHARS:
        preview += "..."
    return ExtractedContent(content=content, preview=preview, has_content=True)


def prepare_uploaded_files(uploads: Iterable[RawRecord]) -> List[UploadedFile]:
    """
    Prepare upload rows for prompt rendering.

    :param uploads: Upload rows.
    :type uploads: Iterable[UploadRecord or Mapping[str, Any]]
    :return: Prepared files in input order.
    :rtype: list[UploadedFile]
    """
    prepared: List[UploadedFile] = []
    for record in coerce_records(UploadRecord, uploads):
        extracted = extract_text_content(record)
        prepared.append(
            UploadedFile(
                name=record.file_name,
                type=record.upload_type or "Unknown",
                size=f"{record.file_size / 1024:.2f} KB" if record.file_size else "Unknown",
                description=record.description,
                uploaded_date=format_date_label(record.created_at),
                content=extracted.content,
                content_preview=extracted.preview,
                has_content=extracted.has_content,
            )
        )
    return prepared


def prepare_project_summary(
    project: RawRecord, client: Optional[RawRecord] = None
) -> ProjectSummary:
    """
    Map a project row (and optional client row) to a project summary.

    :param project: Project row.
    :type project: ProjectRecord or Mapping[str, Any]
    :param client: Optional client row.
    :type client: ClientRecord or Mapping[str, Any] or None
    :return: Project summary.
    :rtype: ProjectSummary
    """
    record = coerce_record(ProjectRecord, project)
    client_record = coerce_record(ClientRecord, client) if client is not None else None
    return ProjectSummary(
        name=record.name,
        description=record.description or "No description provided",
        status=record.status or "Active",
        client_name=client_record.name if client_record else None,
        start_date=format_date_label(record.start_date) if record.start_date else None,
        target_end_date=(
            format_date_label(record.target_end_date) if record.target_end_date else None
        ),
        progress=record.progress or 0,
    )


def group_responses_by_category(
    qa_pairs: Iterable[QuestionAnswerPair],
) -> Dict[str, List[QuestionAnswerPair]]:
    """
    Partition question/answer pairs by category, preserving order.

    :param qa_pairs: Question/answer pairs.
    :type qa_pairs: Iterable[QuestionAnswerPair]
    :return: Category to pairs.
    :rtype: dict[str, list[QuestionAnswerPair]]
    """
    grouped: Dict[str, List[QuestionAnswerPair]] = {}
    for pair in qa_pairs:
        grouped.setdefault(pair.category, []).append(pair)
    return grouped


def group_responses_by_stakeholder(
    responses: Iterable[RawRecord],
) -> Dict[str, List[ResponseRecord]]:
    """
    Partition response rows by stakeholder name, preserving order.

    :param responses: Response rows.
    :type responses: Iterable[ResponseRecord or Mapping[str, Any]]
    :return: Stakeholder name (``Unknown`` when missing) to response rows.
    :rtype: dict[str, list[ResponseRecord]]
    """
    grouped: Dict[str, List[ResponseRecord]] = {}
    for response in coerce_records(ResponseRecord, responses):
        name = (response.stakeholders.name if response.stakeholders else None) or "Unknown"
        grouped.setdefault(name, []).append(response)
    return grouped
