from __future__ import annotations

from behave import given, then, when

from clarity.chunking import build_prompt_within_limit, create_context_chunks


def _unescape(text: str) -> str:
    return text.replace("\\n", "\n").replace('\\"', '"')


def _names(text: str) -> list:
    return [name.strip() for name in text.split(",") if name.strip()]


@given("context parts:")
def step_context_parts(context) -> None:
    context.context_parts = {
        row["key"]: "x" * int(row["characters"]) for row in context.table
    }


@when("I chunk the context with a budget of {max_tokens:d} tokens")
def step_chunk_context(context, max_tokens: int) -> None:
    context.chunked = create_context_chunks(context.context_parts, {"max_tokens": max_tokens})


@when('I chunk the context with a budget of {max_tokens:d} tokens using "{strategy}" chaining')
def step_chunk_context_with_strategy(context, max_tokens: int, strategy: str) -> None:
    context.chunked = create_context_chunks(
        context.context_parts, {"max_tokens": max_tokens}, chain_strategy=strategy
    )


@when('I fit the chunks under a base prompt "" within {max_tokens:d} tokens')
def step_fit_chunks_empty_base(context, max_tokens: int) -> None:
    context.fit = build_prompt_within_limit(context.chunked, "", max_tokens)


@then('the chunk order is "{names}"')
def step_chunk_order(context, names: str) -> None:
    assert [chunk.type for chunk in context.chunked.chunks] == _names(names)


@then('the chunk "{name}" has priority {priority:d}')
def step_chunk_priority(context, name: str, priority: int) -> None:
    chunk = next(chunk for chunk in context.chunked.chunks if chunk.type == name)
    assert chunk.priority == priority, chunk.priority


@then("the total token estimate is {total:d}")
def step_total_tokens(context, total: int) -> None:
    assert context.chunked.total_tokens == total, context.chunked.total_tokens


@then('chaining is needed with strategy "{strategy}"')
def step_chaining_needed(context, strategy: str) -> None:
    assert context.chunked.needs_chaining is True
    assert context.chunked.chain_strategy == strategy


@then("chaining is not needed")
def step_chaining_not_needed(context) -> None:
    assert context.chunked.needs_chaining is False
    assert context.chunked.chain_strategy is None


@then('the used chunks are "{names}"')
def step_used_chunks(context, names: str) -> None:
    assert context.fit.used_chunks == _names(names), context.fit.used_chunks


@then('the dropped chunks are "{names}"')
def step_dropped_chunks(context, names: str) -> None:
    assert context.fit.dropped_chunks == _names(names), context.fit.dropped_chunks


@then('the fitted prompt contains "{text}"')
def step_fitted_prompt_contains(context, text: str) -> None:
    assert _unescape(text) in context.fit.prompt
