"""
Interview assistants: question generation, stakeholder extraction, response
summaries, and project descriptions.

Each assistant is a message builder plus a response parser, so the parsing
rules can be exercised without a model. The ``generate_*`` / ``extract_*`` /
``summarize_*`` functions join the two through :func:`clarity.ai.llm.chat_completion`.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .ai.models import LlmClientConfig
from .errors import StructuredResponseError

logger = logging.getLogger(__name__)

Message = Dict[str, str]

MIN_PROJECT_DESCRIPTION_CHARS = 10
MIN_TRANSCRIPT_CHARS = 50

_CODE_FENCE_PATTERN = re.compile(r"```json\n?|\n?```")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_FULL_NAME_PATTERN = re.compile(r"[A-Z][a-z]+ [A-Z][a-z]+")
_FIRST_NAME_PATTERN = re.compile(r"[A-Z][a-z]+")
_NAME_ROLE_PATTERN = re.compile(
    r"([A-Z][a-z]+ [A-Z][a-z]+).*?"
    r"((?i:product manager|cto|designer|manager|director|lead|engineer))"
)
_NAME_DUTY_PATTERN = re.compile(r"([A-Z][a-z]+).*?((?i:handles|manages|leads|responsible for))")
_ROLE_KEYWORDS = (
    ("product", "Product Manager"),
    ("design", "Designer"),
    ("tech", "Technical Lead"),
    ("cto", "CTO"),
    ("manager", "Manager"),
    ("director", "Director"),
    ("lead", "Lead"),
    ("engineer", "Engineer"),
    ("developer", "Developer"),
)
_DOCUMENT_TYPE_HINTS = (
    ("technical_scope", "Include detailed technical questions for technical scope."),
    ("exec_summary", "Include strategic business questions for executive summary."),
    ("proposal", "Include budget, timeline, and ROI questions for proposal."),
    ("risk_assessment", "Include risk identification questions."),
)


class AssistantModel(BaseModel):
    """
    Base model for values parsed from assistant responses.
    """

    model_config = ConfigDict(extra="ignore")


class GeneratedQuestion(AssistantModel):
    """
    Interview question proposed by a model.

    :ivar text: Question text.
    :vartype text: str
    :ivar category: Question category.
    :vartype category: str
    :ivar priority: Optional priority label.
    :vartype priority: str or None
    :ivar target_roles: Stakeholder roles the question is meant for.
    :vartype target_roles: list[str]
    :ivar document_relevance: Document types the answer feeds.
    :vartype document_relevance: list[str]
    """

    text: str = Field(min_length=1)
    category: str = "General"
    priority: Optional[str] = None
    target_roles: List[str] = Field(default_factory=list)
    document_relevance: List[str] = Field(default_factory=list)


class ExtractedStakeholder(AssistantModel):
    """
    Stakeholder found in a meeting transcript.
    """

    name: str = Field(min_length=1)
    role: str = "Stakeholder"
    department: str = "General"
    email: str = ""
    phone: str = ""
    seniority: str = ""
    experience_years: int = 0
    mentioned_context: str = ""


class ResponseSummary(AssistantModel):
    """
    Analysis of one stakeholder answer.

    :ivar summary: Two or three sentence summary.
    :vartype summary: str
    :ivar key_insights: Key points.
    :vartype key_insights: list[str]
    :ivar sentiment: Overall tone.
    :vartype sentiment: str
    :ivar action_items: Follow-ups suggested by the answer.
    :vartype action_items: list[str]
    :ivar concerns: Concerns or risks mentioned.
    :vartype concerns: list[str]
    """

    summary: str
    key_insights: List[str] = Field(default_factory=list)
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    action_items: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)


class DocumentRequest(BaseModel):
    """
    Custom document a question set should prepare for.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str
    template: Optional[str] = None


class StakeholderSeat(BaseModel):
    """
    Role and department of a stakeholder to be interviewed.
    """

    model_config = ConfigDict(extra="ignore")

    role: str
    department: str


FALLBACK_QUESTIONS = (
    GeneratedQuestion(
        category="Business Goals",
        text="What are the primary business objectives you hope to achieve with this project?",
        target_roles=["all"],
        document_relevance=["sprint0_summary"],
    ),
    GeneratedQuestion(
        category="Requirements",
        text="What are the must-have features versus nice-to-have features for this project?",
        target_roles=["all"],
        document_relevance=["requirements_document"],
    ),
    GeneratedQuestion(
        category="Constraints",
        text="What budget, timeline, or technical constraints should we be aware of?",
        target_roles=["all"],
        document_relevance=["implementation_plan"],
    ),
)


def clean_json_array(response: str) -> str:
    """
    Strip code fences and any text around the outermost JSON array.

    :param response: Raw model response.
    :type response: str
    :return: Text between the first ``[`` and the last ``]``, or the stripped response.
    :rtype: str
    """
    cleaned = _CODE_FENCE_PATTERN.sub("", response).strip()
    first = cleaned.find("[")
    last = cleaned.rfind("]")
    if first != -1 and last != -1:
        cleaned = cleaned[first : last + 1]
    return cleaned


def _load_array(response: str) -> List[Any]:
    payload = json.loads(clean_json_array(response))
    if not isinstance(payload, list):
        raise ValueError("Expected a JSON array")
    return payload


def question_count_for(
    stakeholder_count: int, document_type_count: int = 0, custom_document_count: int = 0
) -> int:
    """
    Number of questions to request, between 8 and 20.
    """
    wanted = document_type_count * 2 + custom_document_count * 3 + stakeholder_count * 2
    return min(20, max(8, wanted))


def build_question_generation_messages(
    project_description: str,
    stakeholders: Sequence[StakeholderSeat],
    *,
    transcript: Optional[str] = None,
    document_types: Sequence[str] = (),
    custom_documents: Sequence[DocumentRequest] = (),
) -> List[Message]:
    """
    Build the chat messages asking for stakeholder interview questions.

    :param project_description: Project description, at least 10 characters.
    :type project_description: str
    :param stakeholders: Roles to write questions for; at least one.
    :type stakeholders: Sequence[StakeholderSeat]
    :param transcript: Optional kickoff meeting transcript.
    :type transcript: str or None
    :param document_types: Standard document types the answers should feed.
    :type document_types: Sequence[str]
    :param custom_documents: Custom documents the answers should feed.
    :type custom_documents: Sequence[DocumentRequest]
    :return: System and user messages.
    :rtype: list[dict[str, str]]
    :raises ValueError: If the description is too short or there are no stakeholders.
    """
    if len((project_description or "").strip()) < MIN_PROJECT_DESCRIPTION_CHARS:
        raise ValueError(
            "Project description is required and must be at least "
            f"{MIN_PROJECT_DESCRIPTION_CHARS} characters."
        )
    if not stakeholders:
        raise ValueError("At least one stakeholder is required to generate questions.")

    document_context = ""
    if document_types or custom_documents:
        lines = [f"- {doc_type.replace('_', ' ', 1)}" for doc_type in document_types]
        lines.extend(f"- {doc.name}: {doc.description}" for doc in custom_documents)
        lines.append("")
        lines.append(
            "Generate questions that will gather the specific information needed to "
            "create these documents comprehensively."
        )
        lines.extend(hint for doc_type, hint in _DOCUMENT_TYPE_HINTS if doc_type in document_types)
        lines.extend(
            f'For "{doc.name}", use this template as reference: {doc.template}'
            for doc in custom_documents
            if doc.template
        )
        document_context = "\n\nDOCUMENT TYPES TO CREATE:\n" + "\n".join(lines)

    count = question_count_for(len(stakeholders), len(document_types), len(custom_documents))
    system_prompt = f"""You are an expert business analyst and stakeholder interview specialist. Generate comprehensive, targeted questions for stakeholder interviews that will gather ALL information needed to create complete, professional documents.

Guidelines:
- Generate {count} comprehensive questions total
- Create role-specific questions for each stakeholder type
- Focus on gathering complete information for document creation
- Include strategic, tactical, and operational questions
- Cover requirements, constraints, goals, risks, and success criteria
- Avoid yes/no questions - use open-ended questions that encourage detailed responses
- Questions should uncover specific details, examples, and quantifiable metrics
- Base questions on transcript content and stakeholder roles{document_context}

Return ONLY a JSON array of question objects:
[
  {{
    "category": "Business Goals",
    "text": "What are your specific, measurable objectives for this project, and how will you define success?",
    "target_roles": ["Product Manager", "Director"],
    "document_relevance": ["sprint0_summary", "exec_summary"]
  }}
]

IMPORTANT: Return only valid JSON, no other text."""

    user_lines = [f"Project: {project_description}", ""]
    if transcript:
        user_lines.extend(["Meeting Transcript:", transcript, ""])
    user_lines.append("Stakeholders:")
    user_lines.extend(f"- {seat.role} ({seat.department})" for seat in stakeholders)
    if document_types:
        user_lines.extend(["", f"Document Types to Create: {', '.join(document_types)}"])
    user_lines.extend(
        [
            "",
            "Generate comprehensive interview questions that will gather ALL information "
            "needed to create complete, professional documents for this project.",
        ]
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": "\n".join(user_lines)},
    ]


def parse_question_list(response: str) -> List[GeneratedQuestion]:
    """
    Parse a model's JSON array of questions.

    Code fences and text around the array are ignored. A response that still
    does not parse yields the fallback question set.

    :param response: Raw model response.
    :type response: str
    :return: Parsed questions, or copies of :data:`FALLBACK_QUESTIONS`.
    :rtype: list[GeneratedQuestion]
    """
    try:
        return [GeneratedQuestion.model_validate(entry) for entry in _load_array(response)]
    except (ValueError, ValidationError) as exc:
        logger.warning("Could not parse generated questions, using fallback questions: %s", exc)
        return [question.model_copy(deep=True) for question in FALLBACK_QUESTIONS]


def build_stakeholder_extraction_messages(transcript: str) -> List[Message]:
    """
    Build the chat messages asking for the stakeholders named in a transcript.

    :param transcript: Meeting transcript, at least 50 characters.
    :type transcript: str
    :return: System and user messages.
    :rtype: list[dict[str, str]]
    :raises ValueError: If the transcript is too short.
    """
    if len((transcript or "").strip()) < MIN_TRANSCRIPT_CHARS:
        raise ValueError(
            "Transcript is too short to extract stakeholders. Please provide a longer "
            f"transcript (at least {MIN_TRANSCRIPT_CHARS} characters)."
        )
    system_prompt = """You are an expert at extracting stakeholder information from meeting transcriptions. Analyze the transcript and identify all people who are stakeholders in the project (not just facilitators or note-takers).

CRITICAL REQUIREMENTS:
1. CAREFULLY scan the entire transcript for email addresses
2. CAREFULLY scan for phone numbers
3. Extract ALL people mentioned who have roles in the project (Product Manager, CTO, Designer, etc.)
4. Look for context clues about roles and departments
5. If email/phone not explicitly stated, leave as empty string (not null)
6. Include the specific context where each person was mentioned

Return ONLY a JSON array of stakeholder objects:
[
  {
    "name": "string",
    "role": "string",
    "department": "string",
    "email": "string or empty if not found",
    "phone": "string or empty if not found",
    "seniority": "Senior, Mid, Junior, Lead, Director, etc.",
    "experience_years": 5,
    "mentioned_context": "string - brief context of how they were mentioned"
  }
]

IMPORTANT: Return only valid JSON, no other text."""
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": f"Extract stakeholders from this transcription:\n\n{transcript}",
        },
    ]


def _infer_role(text: str) -> str:
    lowered = text.lower()
    for keyword, role in _ROLE_KEYWORDS:
        if keyword in lowered:
            return role
    return ""


def extract_stakeholders_manually(transcript: str) -> List[ExtractedStakeholder]:
    """
    Find stakeholders in a transcript without a model.

    Every email address becomes a stakeholder named after the closest
    capitalized name before it. Without any email address, name-and-role
    phrases such as ``Dana Lee, our Product Manager`` are used instead.

    :param transcript: Meeting transcript.
    :type transcript: str
    :return: Stakeholders in order of appearance.
    :rtype: list[ExtractedStakeholder]
    """
    stakeholders: List[ExtractedStakeholder] = []
    for match in _EMAIL_PATTERN.finditer(transcript):
        email = match.group(0)
        before = transcript[max(0, match.start() - 100) : match.start()]
        after = transcript[match.start() : match.start() + 100]
        name = ""
        for pattern in (_FULL_NAME_PATTERN, _FIRST_NAME_PATTERN):
            names = pattern.findall(before)
            if names:
                name = names[-1]
                break
        role = _infer_role(before + after)
        found = f"Found email: {email}"
        if name:
            found += f" with name: {name}"
        stakeholders.append(
            ExtractedStakeholder(
                name=name or re.sub(r"[._]", " ", email.split("@")[0]),
                email=email,
                role=role or "Stakeholder",
                department=role.split(" ")[0] if role else "General",
                mentioned_context=found,
            )
        )

    if stakeholders:
        return stakeholders

    for match in _NAME_ROLE_PATTERN.finditer(transcript):
        role = match.group(2)
        stakeholders.append(
            ExtractedStakeholder(
                name=match.group(1),
                role=role,
                department=role.split(" ")[0],
                mentioned_context=f'Mentioned in context: "{match.group(0)}"',
            )
        )
    for match in _NAME_DUTY_PATTERN.finditer(transcript):
        stakeholders.append(
            ExtractedStakeholder(
                name=match.group(1),
                mentioned_context=f'Mentioned in context: "{match.group(0)}"',
            )
        )
    return stakeholders


def _stakeholder_from_entry(entry: Any) -> ExtractedStakeholder:
    if not isinstance(entry, dict):
        raise ValueError("Expected a stakeholder object")
    cleaned = {key: value for key, value in entry.items() if value is not None and value != ""}
    return ExtractedStakeholder.model_validate(cleaned)


def parse_extracted_stakeholders(response: str, transcript: str) -> List[ExtractedStakeholder]:
    """
    Parse a model's JSON array of stakeholders.

    Missing or null contact fields become empty strings and a missing
    experience becomes 0. A response that does not parse falls back to
    :func:`extract_stakeholders_manually` over the transcript.

    :param response: Raw model response.
    :type response: str
    :param transcript: Transcript the stakeholders were extracted from.
    :type transcript: str
    :return: Stakeholders.
    :rtype: list[ExtractedStakeholder]
    """
    try:
        return [_stakeholder_from_entry(entry) for entry in _load_array(response)]
    except (ValueError, ValidationError) as exc:
        logger.warning("Could not parse extracted stakeholders, scanning transcript: %s", exc)
        return extract_stakeholders_manually(transcript)


def build_response_summary_messages(response_text: str, question: str) -> List[Message]:
    """
    Build the chat messages asking for an analysis of one answer.
    """
    system_prompt = """You are an expert at analyzing stakeholder interview responses. Provide a concise summary and extract key insights from the response.

Return a JSON object with this structure:
{
  "summary": "string - 2-3 sentence summary",
  "key_insights": ["string array of 3-5 key points"],
  "sentiment": "positive" | "neutral" | "negative",
  "action_items": ["string array of potential action items"],
  "concerns": ["string array of any concerns or risks mentioned"]
}"""
    user_prompt = (
        f"Question: {question}\n\nResponse: {response_text}\n\n"
        "Analyze this stakeholder response and provide insights."
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def parse_response_summary(response: str) -> ResponseSummary:
    """
    Parse a model's response analysis.

    :param response: Raw model response, optionally fenced.
    :type response: str
    :return: Parsed analysis.
    :rtype: ResponseSummary
    :raises StructuredResponseError: If the response is not a valid analysis object.
    """
    cleaned = _CODE_FENCE_PATTERN.sub("", response).strip()
    try:
        return ResponseSummary.model_validate(json.loads(cleaned))
    except json.JSONDecodeError as exc:
        raise StructuredResponseError(
            f"Response is not valid JSON ({exc.msg})", response_text=response
        ) from exc
    except ValidationError as exc:
        raise StructuredResponseError(
            f"Response does not match the summary schema ({exc.error_count()} errors)",
            response_text=response,
        ) from exc


def build_project_description_messages(
    project_name: str, transcript: str, current_description: Optional[str] = None
) -> List[Message]:
    """
    Build the chat messages asking for a short project description.
    """
    system_prompt = """You are an expert project manager. Based on the project name and kickoff transcript, create a project description that summarizes:

- What problem needs to be solved
- What solution is being proposed
- What the desired outcome is

Keep it to 3-5 sentences. Provide a high-level overview that covers the problem, solution, and desired outcome with enough detail to understand the project scope."""
    user_lines = [f"Project: {project_name}", "", f"Transcript: {transcript}", ""]
    if current_description:
        user_lines.append(f"Current description: {current_description}")
    user_lines.extend(
        ["", "Generate a concise project description (1-2 sentences) based on this information."]
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": "\n".join(user_lines)},
    ]


def _complete(client: LlmClientConfig, messages: List[Message]) -> str:
    from .ai.llm import chat_completion

    return chat_completion(client=client, messages=messages).text


def generate_questions(
    *,
    client: LlmClientConfig,
    project_description: str,
    stakeholders: Sequence[StakeholderSeat],
    transcript: Optional[str] = None,
    document_types: Sequence[str] = (),
    custom_documents: Sequence[DocumentRequest] = (),
) -> List[GeneratedQuestion]:
    """
    Generate interview questions with a model.

    :raises ValueError: If the inputs are incomplete or the model is unavailable.
    """
    messages = build_question_generation_messages(
        project_description,
        stakeholders,
        transcript=transcript,
        document_types=document_types,
        custom_documents=custom_documents,
    )
    return parse_question_list(_complete(client, messages))


def extract_stakeholders(
    *, client: LlmClientConfig, transcript: str
) -> List[ExtractedStakeholder]:
    """
    Extract stakeholders from a meeting transcript with a model.
    """
    messages = build_stakeholder_extraction_messages(transcript)
    return parse_extracted_stakeholders(_complete(client, messages), transcript)


def summarize_response(
    *, client: LlmClientConfig, response_text: str, question: str
) -> ResponseSummary:
    """
    Summarize one stakeholder answer with a model.
    """
    messages = build_response_summary_messages(response_text, question)
    return parse_response_summary(_complete(client, messages))


def generate_project_description(
    *,
    client: LlmClientConfig,
    project_name: str,
    transcript: str,
    current_description: Optional[str] = None,
) -> str:
    """
    Draft a project description from a kickoff transcript with a model.
    """
    messages = build_project_description_messages(project_name, transcript, current_description)
    return _complete(client, messages).strip()
