from __future__ import annotations

import json

from behave import given, then, when

from clarity.documents import (
    DocumentStructure,
    combine_documents,
    format_document,
    parse_structured_response,
)
from clarity.errors import StructuredResponseError


def _unescape(text: str) -> str:
    return text.replace("\\n", "\n").replace('\\"', '"')


def _section(context, heading: str):
    return next(section for section in context.document.sections if section.heading == heading)


@given("a model response:")
def step_model_response(context) -> None:
    context.model_response = context.text


@given("partial documents:")
def step_partial_documents(context) -> None:
    context.partial_documents = [
        DocumentStructure.model_validate(entry) for entry in json.loads(context.text)
    ]


@when("I parse the model response")
def step_parse_response(context) -> None:
    context.document = parse_structured_response(context.model_response)


@when("I attempt to parse the model response")
def step_attempt_parse_response(context) -> None:
    context.parse_error = None
    try:
        context.document = parse_structured_response(context.model_response)
    except StructuredResponseError as exc:
        context.parse_error = exc


@when('I render the document as "{output_format}"')
def step_render_document(context, output_format: str) -> None:
    context.rendered = format_document(context.document, output_format)


@when("I combine the partial documents")
def step_combine_documents(context) -> None:
    context.document = combine_documents(context.partial_documents)


@then('the rendered document contains "{text}"')
def step_rendered_contains(context, text: str) -> None:
    expected = _unescape(text)
    assert expected in context.rendered, context.rendered


@then('parsing fails with "{message}"')
def step_parsing_fails(context, message: str) -> None:
    assert context.parse_error is not None
    assert message in str(context.parse_error)
    assert context.parse_error.response_text == context.model_response


@then('the document title is "{title}"')
def step_document_title(context, title: str) -> None:
    assert context.document.title == title


@then('the document summary is "{summary}"')
def step_document_summary(context, summary: str) -> None:
    assert context.document.summary == summary


@then('the section headings are "{headings}"')
def step_section_headings(context, headings: str) -> None:
    expected = [heading.strip() for heading in headings.split(",")]
    assert [section.heading for section in context.document.sections] == expected


@then('the section "{heading}" has items "{items}"')
def step_section_items(context, heading: str, items: str) -> None:
    expected = [item.strip() for item in items.split(",")]
    assert _section(context, heading).items == expected
