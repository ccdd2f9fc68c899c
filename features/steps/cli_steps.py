from __future__ import annotations

import json
import shlex

from behave import given, then, when

from features.environment import run_clarity


def _unescape(text: str) -> str:
    return text.replace('\\"', '"')


@given('a document file "{filename}" containing:')
def step_document_file(context, filename: str) -> None:
    (context.workdir / filename).write_text(context.text, encoding="utf-8")


@when('I run clarity with arguments "{arguments}"')
def step_run_clarity(context, arguments: str) -> None:
    run_clarity(context, shlex.split(arguments))


@when('I run clarity with the project fixture and arguments "{arguments}"')
def step_run_clarity_with_fixture(context, arguments: str) -> None:
    fixture = context.repo_root / "tests" / "fixtures" / "project_data.json"
    command, *rest = shlex.split(arguments)
    run_clarity(context, [command, str(fixture), *rest])


@then("the command succeeds")
def step_command_succeeds(context) -> None:
    assert context.last_result is not None
    assert context.last_result.returncode == 0, context.last_result.stderr


@then("the command fails with exit code {code:d}")
def step_command_fails(context, code: int) -> None:
    assert context.last_result is not None
    assert context.last_result.returncode == code, context.last_result.returncode


@then('standard output contains "{text}"')
def step_stdout_contains(context, text: str) -> None:
    assert _unescape(text) in context.last_result.stdout, context.last_result.stdout


@then('standard error contains "{text}"')
def step_stderr_contains(context, text: str) -> None:
    assert _unescape(text) in context.last_result.stderr, context.last_result.stderr


@then('the analysis reports chaining with strategy "{strategy}"')
def step_analysis_chaining(context, strategy: str) -> None:
    report = json.loads(context.last_result.stdout)
    assert report["needs_chaining"] is True
    assert report["chain_strategy"] == strategy
