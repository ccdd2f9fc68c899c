"""
Unit tests for project record preparation.
"""

from __future__ import annotations

import copy
import json
from datetime import date, datetime
from pathlib import Path

from clarity.data_prep import (
    UploadedFile,
    extract_text_content,
    format_date_label,
    format_timestamp_label,
    group_responses_by_category,
    group_responses_by_stakeholder,
    parse_csv_content,
    parse_json_content,
    prepare_project_summary,
    prepare_question_answer_pairs,
    prepare_stakeholder_profiles,
    prepare_uploaded_files,
)
from clarity.formatters import format_stakeholders_for_prompt, format_uploads_for_prompt

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _project_data() -> dict:
    return json.loads((FIXTURES / "project_data.json").read_text(encoding="utf-8"))


def test_no_stakeholders_yields_empty_profiles_and_fallback_text():
    profiles = prepare_stakeholder_profiles([], [])
    assert profiles == []
    assert format_stakeholders_for_prompt(profiles) == "No stakeholders assigned."


def test_question_answered_twice_becomes_one_pair_in_response_order():
    data = _project_data()
    pairs = prepare_question_answer_pairs(data["responses"])

    assert [pair.question for pair in pairs] == [
        "What are the biggest pain points today?",
        "What does success look like?",
    ]
    first = pairs[0]
    assert len(first.answers) == 2
    assert [answer.stakeholder for answer in first.answers] == ["Dana Lee", "Sam Ortiz"]
    assert first.category == "Current State"
    assert first.priority == "high"
    assert first.answers[0].timestamp == "3/10/2024, 2:05:09 PM"
    assert pairs[1].priority is None


def test_question_answer_pairs_are_idempotent_and_do_not_mutate_input():
    responses = _project_data()["responses"]
    snapshot = copy.deepcopy(responses)

    first = prepare_question_answer_pairs(responses)
    second = prepare_question_answer_pairs(responses)

    assert first == second
    assert responses == snapshot


def test_missing_relations_use_fallbacks():
    pairs = prepare_question_answer_pairs([{"response": None, "created_at": None}])
    assert pairs[0].question == "Unknown Question"
    assert pairs[0].category == "General"
    answer = pairs[0].answers[0]
    assert answer.stakeholder == "Unknown Stakeholder"
    assert answer.response == "No response provided"
    assert answer.timestamp == "Unknown date"


def test_stakeholder_profiles_report_completion():
    data = _project_data()
    profiles = prepare_stakeholder_profiles(data["stakeholders"], data["responses"])

    assert [profile.name for profile in profiles] == ["Dana Lee", "Sam Ortiz", "Riley Chen"]
    assert [profile.response_count for profile in profiles] == [2, 1, 0]
    assert [profile.completion_rate for profile in profiles] == ["100%", "50%", "0%"]


def test_completion_rate_rounds_half_up():
    responses = [
        {"stakeholder_id": "a", "question_id": str(index)} for index in range(3)
    ] + [{"stakeholder_id": "b", "question_id": "0"}]
    profiles = prepare_stakeholder_profiles(
        [{"id": "a", "name": "A"}, {"id": "b", "name": "B"}], responses
    )
    assert profiles[1].completion_rate == "33%"
    assert profiles[1].role == "N/A"


def test_csv_upload_renders_at_most_fifty_rows():
    rows = "\n".join(f"row{index},{index}" for index in range(75))
    formatted = parse_csv_content(f"name,value\n{rows}\n")

    assert formatted.startswith("CSV Data (75 rows):\n\n| name | value |\n| --- | --- |\n")
    data_lines = [line for line in formatted.splitlines() if line.startswith("| row")]
    assert len(data_lines) == 50
    assert "... and 25 more rows" in formatted


def test_csv_skips_blank_lines():
    formatted = parse_csv_content("a,b\n\n1,2\n\n")
    assert "CSV Data (1 rows):" in formatted
    assert "| 1 | 2 |" in formatted


def test_json_content_is_pretty_printed_or_passed_through():
    assert parse_json_content('{"a": 1}') == 'JSON Data:\n\n{\n  "a": 1\n}'
    assert parse_json_content("{not json") == "{not json"


def test_extract_text_content_routes_by_type():
    markup = extract_text_content({"file_name": "page.HTML", "content": "<p>Hi</p>"})
    assert markup.content == "Markup Content:\n\n<p>Hi</p>"
    by_mime = extract_text_content(
        {"file_name": "export", "mime_type": "application/json", "content": "[1]"}
    )
    assert by_mime.content == "JSON Data:\n\n[\n  1\n]"
    empty = extract_text_content({"file_name": "scan.pdf"})
    assert empty.has_content is False
    assert empty.preview == "File: scan.pdf"


def test_extracted_content_takes_precedence_and_previews_are_capped():
    extracted = extract_text_content(
        {"file_name": "notes.txt", "content": "raw", "extracted_content": "x" * 600}
    )
    assert extracted.content == "x" * 600
    assert extracted.preview == "x" * 500 + "..."


def test_upload_content_round_trips_into_prompt():
    text = "Exact requirements text.\nSecond line."
    files = prepare_uploaded_files(
        [{"file_name": "notes.txt", "file_size": 1536, "extracted_content": text}]
    )
    formatted = format_uploads_for_prompt(files)

    assert files[0].size == "1.50 KB"
    assert files[0].type == "Unknown"
    assert f"=== FILE CONTENT ===\n{text}\n   === END FILE CONTENT ===" in formatted


def test_upload_without_content_shows_preview():
    preview = "y" * 500 + "..."
    formatted = format_uploads_for_prompt(
        [
            UploadedFile(
                name="scan.pdf",
                type="document",
                size="Unknown",
                uploaded_date="Unknown date",
                content_preview=preview,
                has_content=False,
            )
        ]
    )
    assert f"Preview: {preview}" in formatted
    assert "=== FILE CONTENT ===" not in formatted


def test_date_labels():
    assert format_date_label("2024-03-05") == "3/5/2024"
    assert format_date_label(date(2024, 12, 25)) == "12/25/2024"
    assert format_date_label(None) == "Unknown date"
    assert format_date_label("sometime soon") == "sometime soon"
    assert format_timestamp_label("2024-03-10T00:05:09Z") == "3/10/2024, 12:05:09 AM"
    assert format_timestamp_label(datetime(2024, 1, 2, 13, 0, 7)) == "1/2/2024, 1:00:07 PM"


def test_timestamp_labels_accept_any_fraction_length():
    assert format_timestamp_label("2024-03-10T14:05:09.12345+00:00") == "3/10/2024, 2:05:09 PM"
    assert format_timestamp_label("2024-03-10T14:05:09.1Z") == "3/10/2024, 2:05:09 PM"
    assert format_timestamp_label("2024-03-10T14:05:09.123456789Z") == "3/10/2024, 2:05:09 PM"


def test_project_summary_includes_client_and_dates():
    data = _project_data()
    summary = prepare_project_summary(data["project"], data["client"])
    assert summary.name == "Apollo Portal"
    assert summary.client_name == "Acme Corp"
    assert summary.start_date == "3/5/2024"
    assert summary.target_end_date == "9/30/2024"
    assert summary.progress == 40

    bare = prepare_project_summary({"name": "Bare"})
    assert bare.description == "No description provided"
    assert bare.status == "Active"
    assert bare.client_name is None


def test_grouping_preserves_order():
    data = _project_data()
    by_category = group_responses_by_category(prepare_question_answer_pairs(data["responses"]))
    assert list(by_category) == ["Current State", "Goals"]

    by_stakeholder = group_responses_by_stakeholder(data["responses"] + [{"response": "anon"}])
    assert list(by_stakeholder) == ["Dana Lee", "Sam Ortiz", "Unknown"]
    assert len(by_stakeholder["Dana Lee"]) == 2
