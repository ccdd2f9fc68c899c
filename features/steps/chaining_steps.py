from __future__ import annotations

import asyncio
from typing import List, Optional

from behave import given, then, when

from clarity.chaining import generate_with_chaining


def _unescape(text: str) -> str:
    return text.replace("\\n", "\n").replace('\\"', '"')


class RecordingGenerator:
    """
    Async generator double that numbers its answers and can fail on one call.
    """

    def __init__(self, fail_on: Optional[int] = None) -> None:
        self.fail_on = fail_on
        self.prompts: List[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_on == len(self.prompts):
            raise RuntimeError("model unavailable")
        return f"result {len(self.prompts)}"


def _combine(results: List[str]) -> str:
    return " | ".join(results)


def _generate(context, base_prompt: str, max_tokens: int, overlap_tokens: int = 0):
    return asyncio.run(
        generate_with_chaining(
            context.chunked,
            base_prompt,
            context.generator,
            _combine,
            max_tokens,
            overlap_tokens=overlap_tokens,
        )
    )


@given('a generator that answers "result <n>" for call n')
def step_numbering_generator(context) -> None:
    context.generator = RecordingGenerator()


@given("a generator that fails on call {call:d}")
def step_failing_generator(context, call: int) -> None:
    context.generator = RecordingGenerator(fail_on=call)


@when('I generate from base prompt "{base_prompt}" within {max_tokens:d} tokens')
def step_generate(context, base_prompt: str, max_tokens: int) -> None:
    context.chain_result = _generate(context, base_prompt, max_tokens)


@when(
    'I generate from base prompt "{base_prompt}" within {max_tokens:d} tokens '
    "with {overlap_tokens:d} overlap tokens"
)
def step_generate_with_overlap(
    context, base_prompt: str, max_tokens: int, overlap_tokens: int
) -> None:
    context.chain_result = _generate(context, base_prompt, max_tokens, overlap_tokens)


@when('I attempt to generate from base prompt "{base_prompt}" within {max_tokens:d} tokens')
def step_attempt_generate(context, base_prompt: str, max_tokens: int) -> None:
    context.chain_error = None
    try:
        context.chain_result = _generate(context, base_prompt, max_tokens)
    except RuntimeError as exc:
        context.chain_error = exc


@then('the strategy is "{strategy}" with {iterations:d} iteration')
@then('the strategy is "{strategy}" with {iterations:d} iterations')
def step_strategy(context, strategy: str, iterations: int) -> None:
    assert context.chain_result.strategy == strategy, context.chain_result.strategy
    assert context.chain_result.iterations == iterations, context.chain_result.iterations
    assert len(context.generator.prompts) == iterations


@then('the combined result is "{expected}"')
def step_combined_result(context, expected: str) -> None:
    assert context.chain_result.result == expected, context.chain_result.result


@then('every prompt starts with "{prefix}"')
def step_every_prompt_prefix(context, prefix: str) -> None:
    for prompt in context.generator.prompts:
        assert prompt.startswith(prefix), prompt[:80]


@then('prompt {number:d} contains "{text}"')
def step_prompt_contains(context, number: int, text: str) -> None:
    assert _unescape(text) in context.generator.prompts[number - 1]


@then('prompt {number:d} does not contain "{text}"')
def step_prompt_not_contains(context, number: int, text: str) -> None:
    assert _unescape(text) not in context.generator.prompts[number - 1]


@then('the generation fails with "{message}"')
def step_generation_fails(context, message: str) -> None:
    assert context.chain_error is not None
    assert message in str(context.chain_error)


@then("{count:d} prompts were sent")
def step_prompt_count(context, count: int) -> None:
    assert len(context.generator.prompts) == count
