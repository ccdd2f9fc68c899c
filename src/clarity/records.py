"""
Pydantic models for the raw project records Clarity consumes.

Records arrive as plain database rows (mappings). Each model ignores unknown
columns so the rows can be passed through unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

Timestamp = Union[datetime, date, str]
Identifier = Union[str, int]

RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordModel(BaseModel):
    """
    Base model for database rows.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)


class QuestionRelation(RecordModel):
    """
    Question columns joined onto a response row.

    :ivar text: Question text.
    :vartype text: str or None
    :ivar category: Question category.
    :vartype category: str or None
    :ivar priority: Question priority label.
    :vartype priority: str or None
    """

    text: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None


class StakeholderRelation(RecordModel):
    """
    Stakeholder columns joined onto a response row.

    :ivar name: Stakeholder display name.
    :vartype name: str or None
    :ivar role: Stakeholder role.
    :vartype role: str or None
    :ivar department: Stakeholder department.
    :vartype department: str or None
    """

    name: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None


class ResponseRecord(RecordModel):
    """
    Interview response row with its question and stakeholder relations.

    :ivar stakeholder_id: Responding stakeholder identifier.
    :vartype stakeholder_id: str or int or None
    :ivar question_id: Answered question identifier.
    :vartype question_id: str or int or None
    :ivar response: Response text (transcribed for audio and video answers).
    :vartype response: str or None
    :ivar questions: Joined question relation.
    :vartype questions: QuestionRelation or None
    :ivar stakeholders: Joined stakeholder relation.
    :vartype stakeholders: StakeholderRelation or None
    :ivar created_at: Creation timestamp.
    :vartype created_at: datetime or date or str or None
    """

    stakeholder_id: Optional[Identifier] = None
    question_id: Optional[Identifier] = None
    response: Optional[str] = None
    questions: Optional[QuestionRelation] = None
    stakeholders: Optional[StakeholderRelation] = None
    created_at: Optional[Timestamp] = None


class StakeholderRecord(RecordModel):
    """
    Stakeholder row.
    """

    id: Optional[Identifier] = None
    name: str = ""
    role: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None


class UploadRecord(RecordModel):
    """
    Project upload row.

    ``extracted_content`` takes precedence over ``content`` when both are present.
    """

    file_name: str = ""
    upload_type: Optional[str] = None
    file_size: Optional[float] = None
    description: Optional[str] = None
    created_at: Optional[Timestamp] = None
    extracted_content: Optional[str] = None
    content: Optional[str] = None
    mime_type: Optional[str] = None


class ProjectRecord(RecordModel):
    """
    Project row.
    """

    name: str = ""
    description: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[Timestamp] = None
    target_end_date: Optional[Timestamp] = None
    progress: Optional[Union[int, float]] = None


class ClientRecord(RecordModel):
    """
    Client (company) row.
    """

    name: Optional[str] = None


class QuestionRecord(RecordModel):
    """
    Question row.
    """

    text: str = ""
    category: Optional[str] = None
    priority: Optional[str] = None


class SessionRecord(RecordModel):
    """
    Interview session row.
    """

    status: Optional[str] = None
    stakeholder: Optional[StakeholderRelation] = None
    created_at: Optional[Timestamp] = None
    expires_at: Optional[Timestamp] = None
    last_accessed_at: Optional[Timestamp] = None
    access_count: int = 0
    is_locked: bool = False
    is_closed: bool = False


class DocumentRunRecord(RecordModel):
    """
    Document generation run row.
    """

    run_label: Optional[str] = None
    status: Optional[str] = None
    llm_model: Optional[str] = None
    templates_used: List[Any] = Field(default_factory=list)
    custom_document_name: Optional[str] = None
    files: List[Mapping[str, Any]] = Field(default_factory=list)
    created_at: Optional[Timestamp] = None


class ExportRecord(RecordModel):
    """
    Project export row.
    """

    project_name: Optional[str] = None
    export_type: Optional[str] = None
    file_size: Optional[float] = None
    created_at: Optional[Timestamp] = None


def coerce_record(model: Type[RecordT], record: Union[RecordT, Mapping[str, Any]]) -> RecordT:
    """
    Validate a database row into a record model.

    :param model: Record model class.
    :type model: type
    :param record: Existing model instance or raw mapping.
    :type record: RecordModel or Mapping[str, Any]
    :return: Record model instance.
    :rtype: RecordModel
    :raises pydantic.ValidationError: If the row cannot be validated.
    """
    if isinstance(record, model):
        return record
    return model.model_validate(record)


def coerce_records(
    model: Type[RecordT], records: Optional[Iterable[Union[RecordT, Mapping[str, Any]]]]
) -> List[RecordT]:
    """
    Validate a sequence of database rows into record models.

    :param model: Record model class.
    :type model: type
    :param records: Rows to validate, or None.
    :type records: Iterable or None
    :return: Record model instances in input order.
    :rtype: list
    """
    return [coerce_record(model, record) for record in records or []]
