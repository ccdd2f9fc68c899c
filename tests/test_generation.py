"""
Unit tests for the document generation pipeline.
"""

from __future__ import annotations

import asyncio
import json
import unittest
from datetime import date, datetime
from pathlib import Path
from typing import List

from pydantic import ValidationError

from clarity.errors import StructuredResponseError
from clarity.generation import DocumentGenerationRequest, generate_document
from clarity.prompts import EXAMPLE_TEMPLATES, PromptContext

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _request(**overrides: object) -> DocumentGenerationRequest:
    data = json.loads((FIXTURES / "project_data.json").read_text(encoding="utf-8"))
    fields = {
        "template_prompt": EXAMPLE_TEMPLATES["requirements"],
        "document_title": "Requirements",
        "context": PromptContext(
            project_name=data["project"]["name"],
            project_description=data["project"]["description"],
            stakeholder_responses=data["responses"],
            uploads=data["uploads"],
            questions=data["questions"],
            project=data["project"],
            client=data["client"],
            stakeholders=data["stakeholders"],
        ),
    }
    fields.update(overrides)
    return DocumentGenerationRequest(**fields)


class FakeDocumentModel:
    """
    Fake model that answers every prompt with a small fenced JSON document.
    """

    def __init__(self) -> None:
        self.prompts: List[str] = []

    async def __call__(self, prompt: str) -> str:
        """
        Record the prompt and return a document with one numbered section.
        """
        self.prompts.append(prompt)
        number = len(self.prompts)
        document = {
            "title": f"Draft {number}",
            "summary": f"Summary {number}",
            "sections": [
                {"heading": "Overview", "items": [f"Point {number}"]},
                {"heading": f"Part {number}", "content": "Details."},
            ],
        }
        return f"```json\n{json.dumps(document)}\n```"


class TestGenerateDocument(unittest.TestCase):
    """
    Strategy selection, combining, and failure handling.
    """

    def _generate(self, request: DocumentGenerationRequest, model: object):
        return asyncio.run(
            generate_document(
                request,
                model,
                today=date(2024, 3, 5),
                generated_at=datetime(2024, 3, 5, 9, 0, 0),
            )
        )

    def test_single_pass_for_small_context(self) -> None:
        """
        A context under budget yields one call and no dropped content.
        """
        model = FakeDocumentModel()
        result = self._generate(_request(), model)

        self.assertEqual(result.strategy, "single-pass")
        self.assertEqual(result.iterations, 1)
        self.assertEqual(result.dropped_content, [])
        self.assertEqual(result.document.title, "Draft 1")
        prompt = model.prompts[0]
        self.assertIn("(See the === QUESTION ANSWERS === section below.)", prompt)
        self.assertIn("=== QUESTION ANSWERS ===\n\nQ1:", prompt)
        self.assertIn('"title": "Requirements"', prompt)

    def test_single_pass_without_data_uses_fallback_text(self) -> None:
        """
        Placeholders for data that is missing keep their fallback text.
        """
        model = FakeDocumentModel()
        request = DocumentGenerationRequest(
            template_prompt=EXAMPLE_TEMPLATES["sprint0"],
            document_title="S0",
            context=PromptContext(project_name="Apollo"),
        )
        result = self._generate(request, model)

        prompt = model.prompts[0]
        self.assertEqual(result.strategy, "single-pass")
        self.assertIn("No stakeholder responses available.", prompt)
        self.assertIn("No supplemental files available.", prompt)
        self.assertNotIn("(See the === QUESTION ANSWERS === section below.)", prompt)
        self.assertNotIn("(See the === FILE CONTENT === section below.)", prompt)
        self.assertIn("=== METADATA ===", prompt)

    def test_single_pass_dropped_chunk_is_not_referenced(self) -> None:
        """
        A chunk dropped for budget is replaced by fallback text, not a pointer.
        """
        response = {
            "stakeholder_id": "s1",
            "question_id": "q1",
            "response": "word " * 1600,
            "questions": {"text": "What hurts?", "category": "Current State"},
            "stakeholders": {"name": "Dana Lee"},
        }
        request = DocumentGenerationRequest(
            template_prompt="Summarize {{project_name}}.\n{{stakeholder_responses}}",
            document_title="Summary",
            context=PromptContext(project_name="Apollo", stakeholder_responses=[response]),
            max_tokens=3000,
        )
        model = FakeDocumentModel()
        result = self._generate(request, model)

        prompt = model.prompts[0]
        self.assertEqual(result.strategy, "single-pass")
        self.assertIn("question_answers", result.dropped_content)
        self.assertIn("Summarize Apollo.\nNo stakeholder responses available.", prompt)
        self.assertNotIn("=== QUESTION ANSWERS ===", prompt)

    def test_sequential_chaining_combines_partial_documents(self) -> None:
        """
        Every chunk is sent in its own call and the partial documents are merged.
        """
        model = FakeDocumentModel()
        result = self._generate(_request(max_tokens=50), model)

        self.assertEqual(result.strategy, "sequential")
        self.assertEqual(result.iterations, len(model.prompts))
        self.assertEqual(result.iterations, 6)
        document = result.document
        self.assertEqual(document.title, "Draft 1")
        self.assertEqual(document.summary, "Summary 1")
        self.assertEqual(
            [section.heading for section in document.sections],
            ["Overview"] + [f"Part {number}" for number in range(1, 7)],
        )
        self.assertEqual(
            document.sections[0].items, [f"Point {number}" for number in range(1, 7)]
        )

    def test_hierarchical_chaining_summarizes_first(self) -> None:
        """
        The first call sees only critical chunks and later calls refine it.
        """
        model = FakeDocumentModel()
        result = self._generate(_request(max_tokens=50, chain_strategy="hierarchical"), model)

        self.assertEqual(result.strategy, "hierarchical")
        self.assertEqual(result.iterations, len(model.prompts))
        self.assertIn("=== PROJECT SUMMARY ===", model.prompts[0])
        self.assertNotIn("=== FILE CONTENT ===\n", model.prompts[0])
        self.assertIn("BASE CONTEXT:\n{", model.prompts[1])

    def test_unparseable_response_propagates(self) -> None:
        """
        A response that is not a document aborts generation.
        """

        async def broken_model(prompt: str) -> str:
            return "Sorry, I cannot help with that."

        with self.assertRaises(StructuredResponseError) as raised:
            self._generate(_request(), broken_model)
        self.assertEqual(raised.exception.response_text, "Sorry, I cannot help with that.")

    def test_request_validation(self) -> None:
        """
        Unknown strategies and empty titles are rejected.
        """
        with self.assertRaises(ValidationError):
            _request(chain_strategy="parallel")
        with self.assertRaises(ValidationError):
            _request(document_title="")


if __name__ == "__main__":
    unittest.main()
