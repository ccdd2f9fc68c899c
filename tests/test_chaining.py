"""
Unit tests for chained generation.
"""

from __future__ import annotations

import asyncio
import unittest
from typing import List

from clarity.chaining import (
    OVERLAP_SECTION,
    REFINE_INSTRUCTION,
    SUMMARY_INSTRUCTION,
    generate_with_chaining,
    plan_batches,
    render_batch,
)
from clarity.chunking import ContextChunk, create_context_chunks, estimate_tokens, section_header


class FakeGenerator:
    """
    Fake async generator that records every prompt it receives.
    """

    def __init__(self) -> None:
        self.prompts: List[str] = []

    async def __call__(self, prompt: str) -> str:
        """
        Record the prompt and return a numbered result.
        """
        self.prompts.append(prompt)
        return f"result-{len(self.prompts)}"


class LongSummaryGenerator(FakeGenerator):
    """
    Fake async generator whose first result is a fixed summary.
    """

    def __init__(self, summary: str) -> None:
        super().__init__()
        self.summary = summary

    async def __call__(self, prompt: str) -> str:
        """
        Return the summary for the first call and numbered results after.
        """
        result = await super().__call__(prompt)
        return self.summary if len(self.prompts) == 1 else result


class FailingGenerator:
    """
    Fake async generator that fails on a chosen call.
    """

    def __init__(self, fail_on: int) -> None:
        self.fail_on = fail_on
        self.calls = 0

    async def __call__(self, prompt: str) -> str:
        """
        Return a result or raise on the configured call.
        """
        self.calls += 1
        if self.calls == self.fail_on:
            raise RuntimeError("provider unavailable")
        return "partial"


def _join(results: List[str]) -> str:
    return "|".join(results)


def _chunk(chunk_type: str, tokens: int, priority: int) -> ContextChunk:
    return ContextChunk(
        priority=priority, type=chunk_type, content="x" * (tokens * 4), token_estimate=tokens
    )


class TestGenerateWithChaining(unittest.TestCase):
    """
    Chaining strategy selection and iteration accounting.
    """

    def test_small_context_uses_single_pass(self) -> None:
        """
        A context under budget is sent in one fitted prompt.
        """
        parts = {
            "project_summary": "p" * 100_000,
            "question_answers": "q" * 100_000,
        }
        chunked = create_context_chunks(parts)
        self.assertEqual(chunked.total_tokens, 50_000)
        self.assertFalse(chunked.needs_chaining)

        generator = FakeGenerator()
        result = asyncio.run(
            generate_with_chaining(chunked, "Base prompt", generator, _join, 120_000)
        )

        self.assertEqual(result.strategy, "single-pass")
        self.assertEqual(result.iterations, 1)
        self.assertEqual(result.result, "result-1")
        self.assertEqual(len(generator.prompts), 1)
        self.assertIn("=== QUESTION ANSWERS ===", generator.prompts[0])

    def test_large_context_chains_sequentially(self) -> None:
        """
        Iterations equal the number of generator calls.
        """
        parts = {
            "project_summary": "p" * 400_000,
            "question_answers": "q" * 400_000,
            "file_content": "f" * 400_000,
        }
        chunked = create_context_chunks(parts, {"max_tokens": 120_000})
        self.assertEqual(chunked.total_tokens, 300_000)
        self.assertEqual(chunked.chain_strategy, "sequential")

        generator = FakeGenerator()
        result = asyncio.run(
            generate_with_chaining(chunked, "Base prompt", generator, _join, 120_000)
        )

        self.assertEqual(result.strategy, "sequential")
        self.assertGreater(len(generator.prompts), 1)
        self.assertEqual(result.iterations, len(generator.prompts))
        self.assertEqual(result.result, _join([f"result-{i}" for i in range(1, 4)]))
        for prompt in generator.prompts:
            self.assertTrue(prompt.startswith("Base prompt\n\n=== "))

    def test_sequential_batches_pack_chunks_under_budget(self) -> None:
        """
        Small chunks share batches and every chunk is sent exactly once.
        """
        parts = {f"block_{index}": "b" * 8_000 for index in range(10)}
        chunked = create_context_chunks(parts, {"max_tokens": 10_000})
        generator = FakeGenerator()
        result = asyncio.run(generate_with_chaining(chunked, "Base", generator, _join, 10_000))

        self.assertEqual(result.iterations, len(generator.prompts))
        self.assertEqual(result.iterations, 4)
        sent = "".join(generator.prompts)
        for index in range(10):
            self.assertEqual(sent.count(section_header(f"block_{index}")), 1)

    def test_hierarchical_counts_summary_and_detail_calls(self) -> None:
        """
        One summary call plus one call per detail batch.
        """
        parts = {
            "project_summary": "p" * 8_000,
            "question_answers": "q" * 40_000,
            "stakeholder_profiles": "s" * 20_000,
            "file_content": "f" * 20_000,
        }
        chunked = create_context_chunks(
            parts, {"max_tokens": 10_000}, chain_strategy="hierarchical"
        )
        generator = FakeGenerator()
        result = asyncio.run(generate_with_chaining(chunked, "Base", generator, _join, 10_000))

        self.assertEqual(result.strategy, "hierarchical")
        self.assertEqual(result.iterations, len(generator.prompts))
        self.assertEqual(result.iterations, 4)
        first = generator.prompts[0]
        self.assertIn("=== PROJECT SUMMARY ===", first)
        self.assertNotIn("=== QUESTION ANSWERS ===", first)
        self.assertNotIn("=== FILE CONTENT ===", first)
        self.assertTrue(first.endswith(SUMMARY_INSTRUCTION))
        for prompt in generator.prompts[1:]:
            self.assertIn("BASE CONTEXT:\nresult-1", prompt)
            self.assertTrue(prompt.endswith(REFINE_INSTRUCTION))

    def test_hierarchical_detail_budget_shrinks_with_long_summary(self) -> None:
        """
        A long phase-1 summary leaves less room per detail batch.
        """
        parts = {"project_summary": "p" * 4_000}
        parts.update({f"block_{index}": "b" * 8_000 for index in range(8)})
        chunked = create_context_chunks(
            parts, {"max_tokens": 10_000}, chain_strategy="hierarchical"
        )
        detail_chunks = [chunk for chunk in chunked.chunks if chunk.type.startswith("block_")]

        short = asyncio.run(
            generate_with_chaining(chunked, "Base", FakeGenerator(), _join, 10_000)
        )
        generator = LongSummaryGenerator("s" * 12_000)
        long = asyncio.run(generate_with_chaining(chunked, "Base", generator, _join, 10_000))

        budget = 10_000 - estimate_tokens("Base") - 3_000 - 2_000
        self.assertEqual(long.iterations, 1 + len(plan_batches(detail_chunks, budget)))
        self.assertEqual(long.iterations, len(generator.prompts))
        self.assertEqual(short.iterations, 4)
        self.assertEqual(long.iterations, 5)
        self.assertGreater(long.iterations, short.iterations)
        for prompt in generator.prompts[1:]:
            self.assertIn("BASE CONTEXT:\n" + "s" * 12_000, prompt)

    def test_generator_failure_propagates(self) -> None:
        """
        A failing call aborts the chain with the original error.
        """
        parts = {f"block_{index}": "b" * 8_000 for index in range(10)}
        chunked = create_context_chunks(parts, {"max_tokens": 10_000})
        generator = FailingGenerator(fail_on=2)
        combined: List[List[str]] = []

        def combiner(results: List[str]) -> str:
            combined.append(results)
            return ""

        with self.assertRaisesRegex(RuntimeError, "provider unavailable"):
            asyncio.run(generate_with_chaining(chunked, "Base", generator, combiner, 10_000))
        self.assertEqual(generator.calls, 2)
        self.assertEqual(combined, [])

    def test_overlap_repeats_tail_of_previous_batch(self) -> None:
        """
        Batches after the first start with the previous batch's trailing text.
        """
        parts = {
            "question_answers": "a" * 16_000 + "TAIL",
            "file_content": "f" * 16_000,
        }
        chunked = create_context_chunks(parts, {"max_tokens": 6_000})
        generator = FakeGenerator()
        asyncio.run(
            generate_with_chaining(
                chunked, "Base", generator, _join, 7_000, overlap_tokens=10
            )
        )

        self.assertEqual(len(generator.prompts), 2)
        self.assertNotIn(section_header(OVERLAP_SECTION), generator.prompts[0])
        self.assertIn(section_header(OVERLAP_SECTION), generator.prompts[1])
        self.assertIn("TAIL", generator.prompts[1].split("=== FILE CONTENT ===")[0])


def test_plan_batches_isolates_oversized_chunks():
    chunks = [_chunk("a", 50, 0), _chunk("b", 500, 1), _chunk("c", 30, 2), _chunk("d", 40, 3)]
    batches = plan_batches(chunks, 100)
    assert [[chunk.type for chunk in batch] for batch in batches] == [["a"], ["b"], ["c", "d"]]


def test_plan_batches_reserves_overlap_after_first_batch():
    chunks = [_chunk("a", 60, 0), _chunk("b", 40, 1), _chunk("c", 60, 2), _chunk("d", 40, 3)]
    assert len(plan_batches(chunks, 100)) == 2
    assert [[c.type for c in batch] for batch in plan_batches(chunks, 100, overlap_tokens=10)] == [
        ["a", "b"],
        ["c"],
        ["d"],
    ]


def test_render_batch_labels_sections():
    rendered = render_batch([_chunk("file_content", 1, 4)], overlap_text="prior")
    assert rendered == "=== CONTINUED FROM PREVIOUS BATCH ===\nprior\n\n=== FILE CONTENT ===\nxxxx"
    assert estimate_tokens(rendered) > 0
