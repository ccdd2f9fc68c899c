"""
Structured document models, response parsing, and output renderers.

Generated documents are JSON objects with a title, optional metadata and
summary, and a list of sections. This module validates them and renders them
as markdown, plain text, page-layout text, CSV, or JSON.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import StructuredResponseError

logger = logging.getLogger(__name__)

_FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")

CALLOUT_MARKERS = {"warning": "⚠️", "tip": "💡", "note": "📝"}
DEFAULT_CALLOUT_MARKER = "ℹ️"


class DocumentModel(BaseModel):
    """
    Base model for document parts.
    """

    model_config = ConfigDict(extra="ignore")


class DocumentTable(DocumentModel):
    """
    Table with a header row and data rows.
    """

    headers: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)


class DocumentCallout(DocumentModel):
    """
    Highlighted note attached to a section.

    :ivar type: ``info``, ``warning``, ``tip`` or ``note``.
    :vartype type: str
    """

    type: str = "info"
    content: str


class DocumentItem(DocumentModel):
    """
    Detailed point within a section, such as a requirement or finding.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    details: List[str] = Field(default_factory=list)
    value: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    def label(self) -> str:
        """
        Resolve the best single-line label for the item.
        """
        return self.title or self.description or self.content or ""


SectionEntry = Union[str, DocumentItem]


class DocumentSubsection(DocumentModel):
    """
    Nested section.
    """

    title: str
    content: Optional[str] = None
    items: List[SectionEntry] = Field(default_factory=list)
    table: Optional[DocumentTable] = None


class DocumentSection(DocumentModel):
    """
    Top-level document section.
    """

    heading: str
    summary: Optional[str] = None
    content: Optional[str] = None
    items: List[SectionEntry] = Field(default_factory=list)
    subsections: List[DocumentSubsection] = Field(default_factory=list)
    table: Optional[DocumentTable] = None
    callout: Optional[DocumentCallout] = None


class DocumentAppendix(DocumentModel):
    """
    Appendix entry.
    """

    title: str
    content: str


class DocumentStructure(DocumentModel):
    """
    Complete generated document.

    :ivar title: Document title.
    :vartype title: str
    :ivar metadata: Free-form metadata such as project, client, date, version.
    :vartype metadata: dict[str, Any] or None
    :ivar summary: Executive summary.
    :vartype summary: str or None
    :ivar sections: Document sections.
    :vartype sections: list[DocumentSection]
    :ivar appendix: Appendix entries.
    :vartype appendix: list[DocumentAppendix]
    :ivar references: Reference strings.
    :vartype references: list[str]
    """

    title: str
    metadata: Optional[Dict[str, Any]] = None
    summary: Optional[str] = None
    sections: List[DocumentSection]
    appendix: List[DocumentAppendix] = Field(default_factory=list)
    references: List[str] = Field(default_factory=list)


def parse_structured_response(response: str) -> DocumentStructure:
    """
    Parse a model response into a document structure.

    A fenced ```json block is unwrapped if present; otherwise the whole
    response must be the JSON object.

    :param response: Raw model response text.
    :type response: str
    :return: Validated document.
    :rtype: DocumentStructure
    :raises StructuredResponseError: If the response is not valid document JSON.
    """
    match = _FENCED_JSON_PATTERN.search(response)
    json_text = match.group(1) if match else response.strip()
    try:
        payload = json.loads(json_text)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse structured response: %s", exc)
        raise StructuredResponseError(
            f"Response is not valid JSON ({exc.msg})", response_text=response
        ) from exc
    try:
        return DocumentStructure.model_validate(payload)
    except ValidationError as exc:
        logger.error("Structured response does not match the document schema")
        raise StructuredResponseError(
            f"Response does not match the document schema ({exc.error_count()} errors)",
            response_text=response,
        ) from exc


def _markdown_table(table: DocumentTable) -> str:
    lines = [
        f"| {' | '.join(table.headers)} |",
        f"| {' | '.join('---' for _ in table.headers)} |",
    ]
    lines.extend(f"| {' | '.join(str(cell) for cell in row)} |" for row in table.rows)
    return "\n".join(lines) + "\n\n"


def format_to_markdown(data: DocumentStructure) -> str:
    """
    Render a document as markdown.

    :param data: Document to render.
    :type data: DocumentStructure
    :return: Markdown text.
    :rtype: str
    """
    md = f"# {data.title}\n\n"
    if data.metadata:
        md += "---\n"
        for key, value in data.metadata.items():
            md += f"{key}: {value}\n"
        md += "---\n\n"
    if data.summary:
        md += f"## Executive Summary\n\n{data.summary}\n\n"

    for section in data.sections:
        md += f"## {section.heading}\n\n"
        if section.summary:
            md += f"{section.summary}\n\n"
        if section.callout:
            marker = CALLOUT_MARKERS.get(section.callout.type, DEFAULT_CALLOUT_MARKER)
            md += f"> {marker} **{section.callout.type.upper()}**: {section.callout.content}\n\n"
        if section.content:
            md += f"{section.content}\n\n"
        if section.table:
            md += _markdown_table(section.table)
        for item in section.items:
            if isinstance(item, str):
                md += f"- {item}\n"
                continue
            if not item.title:
                continue
            md += f"### {item.title}"
            if item.priority:
                md += f" `[{item.priority}]`"
            if item.status:
                md += f" `{item.status}`"
            md += "\n\n"
            if item.description:
                md += f"{item.description}\n\n"
            if item.content:
                md += f"{item.content}\n\n"
            if item.tags:
                md += f"**Tags:** {', '.join(f'`{tag}`' for tag in item.tags)}\n\n"
            if item.details:
                md += "".join(f"- {detail}\n" for detail in item.details) + "\n"
        for sub in section.subsections:
            md += f"### {sub.title}\n\n"
            if sub.content:
                md += f"{sub.content}\n\n"
            if sub.table:
                md += _markdown_table(sub.table)
            if sub.items:
                for item in sub.items:
                    text = item if isinstance(item, str) else item.label()
                    if text:
                        md += f"- {text}\n"
                md += "\n"

    if data.appendix:
        md += "\n---\n\n## Appendix\n\n"
        for index, appendix in enumerate(data.appendix):
            md += f"### Appendix {chr(65 + index)}: {appendix.title}\n\n{appendix.content}\n\n"
    if data.references:
        md += "\n## References\n\n"
        md += "".join(f"{index}. {ref}\n" for index, ref in enumerate(data.references, start=1))
        md += "\n"
    return md


def format_to_plain_text(data: DocumentStructure) -> str:
    """
    Render a document as plain text with underlined headings.
    """
    txt = f"{data.title.upper()}\n"
    txt += "=" * len(data.title) + "\n\n"
    if data.metadata:
        for key, value in data.metadata.items():
            txt += f"{key.upper()}: {value}\n"
        txt += "\n" + "-" * 60 + "\n\n"
    if data.summary:
        txt += f"EXECUTIVE SUMMARY\n\n{data.summary}\n\n"
        txt += "-" * 60 + "\n\n"

    for section in data.sections:
        txt += f"\n{section.heading.upper()}\n"
        txt += "-" * len(section.heading) + "\n\n"
        if section.summary:
            txt += f"{section.summary}\n\n"
        if section.content:
            txt += f"{section.content}\n\n"
        for item in section.items:
            if isinstance(item, str):
                txt += f"• {item}\n"
            elif item.title:
                txt += f"\n  {item.title}\n"
                if item.description:
                    txt += f"  {item.description}\n"
                if item.content:
                    txt += f"  {item.content}\n"
                txt += "".join(f"    - {detail}\n" for detail in item.details)
                txt += "\n"
        for sub in section.subsections:
            txt += f"\n  {sub.title.upper()}\n"
            if sub.content:
                txt += f"  {sub.content}\n\n"
            if sub.items:
                for item in sub.items:
                    text = item if isinstance(item, str) else item.label()
                    if text:
                        txt += f"    • {text}\n"
                txt += "\n"
    return txt


def format_to_docx(data: DocumentStructure) -> str:
    """
    Render a document as numbered page-layout text.

    The layout is what word-processor and PDF exporters consume.
    """
    doc = f"{data.title}\n"
    doc += "═" * 80 + "\n\n"
    if data.metadata:
        for key, value in data.metadata.items():
            doc += f"{key}: {value}\n"
        doc += "\n" + "─" * 80 + "\n\n"
    if data.summary:
        doc += f"EXECUTIVE SUMMARY\n\n{data.summary}\n\n"
        doc += "─" * 80 + "\n\n"

    for index, section in enumerate(data.sections, start=1):
        doc += f"{index}. {section.heading}\n\n"
        if section.summary:
            doc += f"   {section.summary}\n\n"
        if section.content:
            doc += f"   {section.content}\n\n"
        for item_index, item in enumerate(section.items, start=1):
            if isinstance(item, str):
                doc += f"   {index}.{item_index} {item}\n"
            elif item.title:
                doc += f"   {index}.{item_index} {item.title}\n"
                if item.description:
                    doc += f"       {item.description}\n"
                if item.content:
                    doc += f"       {item.content}\n"
                doc += "".join(f"       • {detail}\n" for detail in item.details)
                doc += "\n"
        for sub_index, sub in enumerate(section.subsections, start=1):
            doc += f"   {index}.{sub_index} {sub.title}\n"
            if sub.content:
                doc += f"       {sub.content}\n"
            for item in sub.items:
                text = item if isinstance(item, str) else item.label()
                if text:
                    doc += f"       • {text}\n"
            doc += "\n"
        doc += "─" * 80 + "\n\n"
    return doc


def format_to_pdf(data: DocumentStructure) -> str:
    """
    Render a document as the page-layout text a PDF exporter prints.

    :param data: Document to render.
    :type data: DocumentStructure
    :return: Same layout as :func:`format_to_docx`.
    :rtype: str
    """
    return format_to_docx(data)


def format_to_json(data: DocumentStructure) -> str:
    """
    Serialize a document as indented JSON without null fields.

    :param data: Document to render.
    :type data: DocumentStructure
    :return: JSON text.
    :rtype: str
    """
    return data.model_dump_json(indent=2, exclude_none=True)


def format_to_csv(data: DocumentStructure) -> str:
    """
    Flatten a document into CSV rows, one per section, item, detail, and table row.

    :param data: Document to render.
    :type data: DocumentStructure
    :return: CSV text with every cell quoted.
    :rtype: str
    """
    rows: List[List[str]] = [["Section", "Heading", "Content", "Type", "Priority", "Status", "Tags"]]
    for section in data.sections:
        heading = section.heading
        rows.append([heading, heading, section.summary or section.content or "", "section", "", "", ""])
        if section.table:
            header_text = " | ".join(section.table.headers)
            for row in section.table.rows:
                rows.append(
                    [heading, header_text, " | ".join(str(c) for c in row), "table_row", "", "", ""]
                )
        for item in section.items:
            if isinstance(item, str):
                rows.append([heading, "", item, "item", "", "", ""])
                continue
            rows.append(
                [
                    heading,
                    item.title or "",
                    item.description or item.content or "",
                    "item",
                    item.priority or "",
                    item.status or "",
                    "; ".join(item.tags),
                ]
            )
            for detail in item.details:
                rows.append([heading, item.title or "", detail, "detail", "", "", ""])
        for sub in section.subsections:
            rows.append([heading, sub.title, sub.content or "", "subsection", "", "", ""])
            if sub.table:
                header_text = f"{sub.title} | {' | '.join(sub.table.headers)}"
                for row in sub.table.rows:
                    rows.append(
                        [heading, header_text, " | ".join(str(c) for c in row), "table_row", "", "", ""]
                    )
            for item in sub.items:
                if isinstance(item, str):
                    rows.append([heading, sub.title, item, "subitem", "", "", ""])
                else:
                    rows.append(
                        [
                            heading,
                            sub.title,
                            item.label(),
                            "subitem",
                            item.priority or "",
                            item.status or "",
                            "; ".join(item.tags),
                        ]
                    )
    for appendix in data.appendix:
        rows.append(["Appendix", appendix.title, appendix.content, "appendix", "", "", ""])

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


_RENDERERS: Dict[str, Callable[[DocumentStructure], str]] = {
    "markdown": format_to_markdown,
    "md": format_to_markdown,
    "txt": format_to_plain_text,
    "text": format_to_plain_text,
    "docx": format_to_docx,
    "pdf": format_to_pdf,
    "json": format_to_json,
    "csv": format_to_csv,
}

DOCUMENT_FORMATS = tuple(_RENDERERS)


def format_document(data: DocumentStructure, output_format: str) -> str:
    """
    Render a document in the requested format, falling back to markdown.

    :param data: Document to render.
    :type data: DocumentStructure
    :param output_format: Format name such as ``md``, ``txt``, ``docx``, ``pdf``, ``json``, ``csv``.
    :type output_format: str
    :return: Rendered document.
    :rtype: str
    """
    renderer = _RENDERERS.get(output_format.lower(), format_to_markdown)
    return renderer(data)


def _merge_entries(existing: List[Any], incoming: List[Any]) -> List[Any]:
    merged = list(existing)
    for entry in incoming:
        if entry not in merged:
            merged.append(entry)
    return merged


def _merge_section(existing: DocumentSection, incoming: DocumentSection) -> DocumentSection:
    updates: Dict[str, Any] = {
        field: getattr(incoming, field)
        for field in ("summary", "content", "table", "callout")
        if getattr(incoming, field) is not None
    }
    updates["items"] = _merge_entries(existing.items, incoming.items)
    updates["subsections"] = _merge_entries(existing.subsections, incoming.subsections)
    return existing.model_copy(update=updates)


def combine_documents(documents: Sequence[DocumentStructure]) -> DocumentStructure:
    """
    Merge partial documents from chained generation into one.

    The first document's title, metadata, and summary are kept unless missing.
    Sections are merged by heading in order of first appearance: a later
    section with the same heading overrides the text fields it sets and
    extends items and subsections. Appendix entries are concatenated and
    references de-duplicated.

    :param documents: Partial documents in generation order.
    :type documents: Sequence[DocumentStructure]
    :return: Combined document.
    :rtype: DocumentStructure
    :raises ValueError: If no documents are given.
    """
    if not documents:
        raise ValueError("At least one document is required to combine")

    first = documents[0]
    summary = first.summary
    metadata = first.metadata
    sections: Dict[str, DocumentSection] = {}
    appendix: List[DocumentAppendix] = []
    references: List[str] = []
    for document in documents:
        summary = summary or document.summary
        metadata = metadata or document.metadata
        for section in document.sections:
            key = section.heading.strip().lower()
            if key in sections:
                sections[key] = _merge_section(sections[key], section)
            else:
                sections[key] = section
        appendix.extend(document.appendix)
        references = _merge_entries(references, document.references)

    return DocumentStructure(
        title=first.title,
        metadata=metadata,
        summary=summary,
        sections=list(sections.values()),
        appendix=appendix,
        references=references,
    )
