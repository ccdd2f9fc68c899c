"""
Unit tests for structured document parsing, rendering, and combining.
"""

from __future__ import annotations

import csv
import io
import json

import pytest

from clarity.documents import (
    DocumentStructure,
    combine_documents,
    format_document,
    format_to_csv,
    format_to_docx,
    format_to_json,
    format_to_markdown,
    format_to_pdf,
    format_to_plain_text,
    parse_structured_response,
)
from clarity.errors import StructuredResponseError


def _document() -> DocumentStructure:
    return DocumentStructure.model_validate(
        {
            "title": "Requirements",
            "metadata": {"project": "Apollo", "version": "1.0"},
            "summary": "Portal replacement requirements.",
            "sections": [
                {
                    "heading": "Functional Requirements",
                    "summary": "What the portal must do.",
                    "callout": {"type": "warning", "content": "Scope is tight."},
                    "table": {"headers": ["ID", "Need"], "rows": [["FR-1", "Password reset"]]},
                    "items": [
                        {
                            "title": "Self-service reset",
                            "description": "Users reset passwords without support.",
                            "priority": "High",
                            "status": "Planned",
                            "tags": ["auth"],
                            "details": ["Email link", "Expires in 1 hour"],
                        },
                        "Audit every reset",
                    ],
                    "subsections": [
                        {"title": "Notifications", "content": "Email only.", "items": ["Retry twice"]}
                    ],
                }
            ],
            "appendix": [{"title": "Glossary", "content": "FR: functional requirement"}],
            "references": ["Interview notes"],
        }
    )


def test_parse_fenced_response():
    payload = json.dumps({"title": "Doc", "sections": [{"heading": "Intro"}]})
    document = parse_structured_response(f"Here it is:\n```json\n{payload}\n```\nThanks")
    assert document.title == "Doc"
    assert document.sections[0].heading == "Intro"
    assert document.references == []


def test_parse_bare_response():
    document = parse_structured_response('  {"title": "Doc", "sections": []}  ')
    assert document.sections == []


def test_parse_failures_carry_response_text():
    with pytest.raises(StructuredResponseError) as excinfo:
        parse_structured_response("not json at all")
    assert excinfo.value.response_text == "not json at all"

    with pytest.raises(StructuredResponseError, match="schema"):
        parse_structured_response('{"sections": []}')


def test_markdown_rendering():
    markdown = format_to_markdown(_document())

    assert markdown.startswith("# Requirements\n\n---\nproject: Apollo\nversion: 1.0\n---\n\n")
    assert "## Executive Summary\n\nPortal replacement requirements.\n\n" in markdown
    assert "> ⚠️ **WARNING**: Scope is tight.\n\n" in markdown
    assert "| ID | Need |\n| --- | --- |\n| FR-1 | Password reset |\n\n" in markdown
    assert "### Self-service reset `[High]` `Planned`\n\n" in markdown
    assert "**Tags:** `auth`\n\n" in markdown
    assert "- Email link\n- Expires in 1 hour\n\n" in markdown
    assert "- Audit every reset\n" in markdown
    assert "### Notifications\n\nEmail only.\n\n- Retry twice\n\n" in markdown
    assert "### Appendix A: Glossary\n\nFR: functional requirement\n\n" in markdown
    assert markdown.endswith("## References\n\n1. Interview notes\n\n")


def test_plain_text_rendering():
    text = format_to_plain_text(_document())
    assert text.startswith("REQUIREMENTS\n============\n\nPROJECT: Apollo\n")
    assert "\nFUNCTIONAL REQUIREMENTS\n" + "-" * 23 + "\n\n" in text
    assert "\n  Self-service reset\n  Users reset passwords without support.\n" in text
    assert "    - Email link\n" in text
    assert "• Audit every reset\n" in text
    assert "\n  NOTIFICATIONS\n  Email only.\n\n    • Retry twice\n" in text


def test_page_layout_rendering_is_numbered():
    layout = format_to_docx(_document())
    assert layout.startswith("Requirements\n" + "═" * 80 + "\n\n")
    assert "1. Functional Requirements\n\n" in layout
    assert "   1.1 Self-service reset\n" in layout
    assert "   1.2 Audit every reset\n" in layout
    assert "   1.1 Notifications\n       Email only.\n       • Retry twice\n" in layout
    assert format_to_pdf(_document()) == layout


def test_csv_rendering_quotes_every_cell():
    rendered = format_to_csv(_document())
    rows = list(csv.reader(io.StringIO(rendered)))

    assert rows[0] == ["Section", "Heading", "Content", "Type", "Priority", "Status", "Tags"]
    assert rendered.splitlines()[0].startswith('"Section","Heading"')
    assert [row[3] for row in rows[1:]] == [
        "section",
        "table_row",
        "item",
        "detail",
        "detail",
        "item",
        "subsection",
        "subitem",
        "appendix",
    ]
    assert rows[3][4:] == ["High", "Planned", "auth"]
    assert not rendered.endswith("\n")


def test_json_rendering_omits_unset_fields():
    rendered = json.loads(format_to_json(_document()))
    assert rendered["title"] == "Requirements"
    assert "content" not in rendered["sections"][0]


def test_format_dispatch_defaults_to_markdown():
    document = _document()
    assert format_document(document, "TXT") == format_to_plain_text(document)
    assert format_document(document, "html") == format_to_markdown(document)


def test_combine_merges_sections_by_heading():
    first = DocumentStructure.model_validate(
        {
            "title": "Spec",
            "summary": "First summary.",
            "sections": [
                {"heading": "Goals", "content": "Launch.", "items": ["Fast"]},
                {"heading": "Risks", "items": ["Budget"]},
            ],
            "references": ["A"],
        }
    )
    second = DocumentStructure.model_validate(
        {
            "title": "Ignored",
            "summary": "Second summary.",
            "metadata": {"version": "1.0"},
            "sections": [
                {"heading": "goals", "summary": "Refined.", "items": ["Fast", "Reliable"]},
                {"heading": "Integrations", "content": "CRM."},
            ],
            "appendix": [{"title": "Notes", "content": "More."}],
            "references": ["A", "B"],
        }
    )

    combined = combine_documents([first, second])

    assert combined.title == "Spec"
    assert combined.summary == "First summary."
    assert combined.metadata == {"version": "1.0"}
    assert [section.heading for section in combined.sections] == ["Goals", "Risks", "Integrations"]
    goals = combined.sections[0]
    assert goals.content == "Launch."
    assert goals.summary == "Refined."
    assert goals.items == ["Fast", "Reliable"]
    assert [entry.title for entry in combined.appendix] == ["Notes"]
    assert combined.references == ["A", "B"]


def test_combine_requires_documents():
    with pytest.raises(ValueError):
        combine_documents([])
