"""
Command-line interface for Clarity.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .chunking import create_context_chunks
from .configuration import load_chunk_strategy, parse_dotted_overrides
from .context_builder import AIContextData, build_ai_context
from .documents import DOCUMENT_FORMATS, DocumentStructure, format_document, format_to_json
from .prompts import EXAMPLE_TEMPLATES, PromptContext, build_context_parts, build_enhanced_prompt
from .records import ProjectRecord, coerce_record


def _load_json_object(path: str) -> Dict[str, Any]:
    candidate = Path(path)
    if not candidate.is_file():
        raise FileNotFoundError(f"File not found: {candidate}")
    loaded = json.loads(candidate.read_text(encoding="utf-8"))
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return loaded


def _prompt_context_from_data(data: Dict[str, Any]) -> PromptContext:
    """
    Map project data (the same shape ``context`` reads) onto a prompt context.

    :param data: Project data with ``project``, ``client``, ``responses`` and similar keys.
    :type data: dict[str, Any]
    :return: Prompt context.
    :rtype: PromptContext
    """
    project = data.get("project")
    record = coerce_record(ProjectRecord, project) if project else None
    return PromptContext(
        project_name=record.name if record else None,
        project_description=record.description if record else None,
        transcript=data.get("transcript"),
        stakeholder_responses=data.get("responses"),
        uploads=data.get("uploads"),
        questions=data.get("questions"),
        project=project,
        client=data.get("client"),
        stakeholders=data.get("stakeholders"),
    )


def _resolve_template(arguments: argparse.Namespace) -> str:
    if arguments.template_file:
        return Path(arguments.template_file).read_text(encoding="utf-8")
    return EXAMPLE_TEMPLATES[arguments.template]


def cmd_context(arguments: argparse.Namespace) -> int:
    """
    Print the formatted full context for a project data file.

    :param arguments: Parsed command-line interface arguments.
    :type arguments: argparse.Namespace
    :return: Exit code.
    :rtype: int
    """
    data = AIContextData.model_validate(_load_json_object(arguments.data))
    print(build_ai_context(data).full_context)
    return 0


def cmd_analyze(arguments: argparse.Namespace) -> int:
    """
    Print the chunk analysis of a project data file as JSON.

    :param arguments: Parsed command-line interface arguments.
    :type arguments: argparse.Namespace
    :return: Exit code.
    :rtype: int
    """
    overrides = parse_dotted_overrides(arguments.override)
    if arguments.max_tokens is not None:
        overrides["max_tokens"] = arguments.max_tokens
    strategy = load_chunk_strategy(arguments.config or [], overrides)
    context = _prompt_context_from_data(_load_json_object(arguments.data))
    parts = build_context_parts(context, arguments.title)
    chunked = create_context_chunks(parts, strategy, chain_strategy=arguments.chain_strategy)
    report = {
        "max_tokens": strategy.max_tokens,
        "total_tokens": chunked.total_tokens,
        "needs_chaining": chunked.needs_chaining,
        "chain_strategy": chunked.chain_strategy,
        "chunks": [
            {
                "type": chunk.type,
                "priority": chunk.priority,
                "token_estimate": chunk.token_estimate,
            }
            for chunk in chunked.chunks
        ],
    }
    print(json.dumps(report, indent=2))
    return 0


def cmd_prompt(arguments: argparse.Namespace) -> int:
    """
    Print a budget-fitted document prompt.

    :param arguments: Parsed command-line interface arguments.
    :type arguments: argparse.Namespace
    :return: Exit code.
    :rtype: int
    """
    context = _prompt_context_from_data(_load_json_object(arguments.data))
    result = build_enhanced_prompt(
        _resolve_template(arguments), context, arguments.title, arguments.max_tokens
    )
    print(result.prompt)
    if result.dropped_content:
        print(f"Dropped content: {', '.join(result.dropped_content)}", file=sys.stderr)
    return 0


def cmd_render(arguments: argparse.Namespace) -> int:
    """
    Render a document JSON file in another format.

    :param arguments: Parsed command-line interface arguments.
    :type arguments: argparse.Namespace
    :return: Exit code.
    :rtype: int
    """
    document = DocumentStructure.model_validate(_load_json_object(arguments.document))
    print(format_document(document, arguments.format))
    return 0


def cmd_generate(arguments: argparse.Namespace) -> int:
    """
    Generate a document with a configured model and print it as JSON.

    :param arguments: Parsed command-line interface arguments.
    :type arguments: argparse.Namespace
    :return: Exit code.
    :rtype: int
    """
    from .ai.llm import build_async_generator
    from .ai.models import LlmClientConfig
    from .generation import DocumentGenerationRequest, generate_document

    client = LlmClientConfig(
        provider=arguments.provider,
        model=arguments.model,
        temperature=arguments.temperature,
        max_tokens=arguments.max_output_tokens,
        response_format="json_object" if arguments.json_mode else None,
    )
    request = DocumentGenerationRequest(
        template_prompt=_resolve_template(arguments),
        document_title=arguments.title,
        context=_prompt_context_from_data(_load_json_object(arguments.data)),
        max_tokens=arguments.max_tokens,
        chain_strategy=arguments.chain_strategy,
        overlap_tokens=arguments.overlap_tokens,
    )
    result = asyncio.run(generate_document(request, build_async_generator(client)))
    print(format_to_json(result.document))
    print(
        f"Strategy: {result.strategy}, iterations: {result.iterations}",
        file=sys.stderr,
    )
    return 0


def _add_template_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--title", required=True, help="Document title.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--template",
        choices=sorted(EXAMPLE_TEMPLATES),
        default="requirements",
        help="Built-in template name.",
    )
    group.add_argument("--template-file", default=None, help="Path to a custom template.")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the command-line interface argument parser.

    :return: Argument parser instance.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="clarity",
        description="Clarity project context and document generation tools",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Log chunking and chaining progress to stderr."
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_context = sub.add_parser("context", help="Print the formatted project context.")
    p_context.add_argument("data", help="Project data JSON file.")
    p_context.set_defaults(func=cmd_context)

    p_analyze = sub.add_parser("analyze", help="Analyze how project data splits into chunks.")
    p_analyze.add_argument("data", help="Project data JSON file.")
    p_analyze.add_argument("--title", default="Project Document", help="Document title.")
    p_analyze.add_argument("--max-tokens", type=int, default=None)
    p_analyze.add_argument(
        "--chain-strategy", choices=["sequential", "hierarchical"], default=None
    )
    p_analyze.add_argument(
        "--config",
        action="append",
        default=None,
        help="YAML configuration file with a chunking section (repeatable, later wins).",
    )
    p_analyze.add_argument(
        "--override",
        action="append",
        default=None,
        help="Configuration override as key=value (repeatable).",
    )
    p_analyze.set_defaults(func=cmd_analyze)

    p_prompt = sub.add_parser("prompt", help="Print a budget-fitted document prompt.")
    p_prompt.add_argument("data", help="Project data JSON file.")
    _add_template_args(p_prompt)
    p_prompt.add_argument("--max-tokens", type=int, default=120000)
    p_prompt.set_defaults(func=cmd_prompt)

    p_render = sub.add_parser("render", help="Render a document JSON file.")
    p_render.add_argument("document", help="Document JSON file.")
    p_render.add_argument("--format", choices=DOCUMENT_FORMATS, default="md")
    p_render.set_defaults(func=cmd_render)

    p_generate = sub.add_parser("generate", help="Generate a document with a language model.")
    p_generate.add_argument("data", help="Project data JSON file.")
    _add_template_args(p_generate)
    p_generate.add_argument("--provider", default="openai")
    p_generate.add_argument("--model", required=True)
    p_generate.add_argument("--temperature", type=float, default=None)
    p_generate.add_argument("--max-output-tokens", type=int, default=None)
    p_generate.add_argument(
        "--json-mode", action="store_true", help="Request a JSON object response format."
    )
    p_generate.add_argument("--max-tokens", type=int, default=120000)
    p_generate.add_argument(
        "--chain-strategy", choices=["sequential", "hierarchical"], default=None
    )
    p_generate.add_argument("--overlap-tokens", type=int, default=0)
    p_generate.set_defaults(func=cmd_generate)

    return parser


def main(argument_list: Optional[List[str]] = None) -> int:
    """
    Entry point for the Clarity command-line interface.

    :param argument_list: Optional command-line interface arguments.
    :type argument_list: list[str] or None
    :return: Exit code.
    :rtype: int
    """
    parser = build_parser()
    arguments = parser.parse_args(argument_list)
    if arguments.verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        return int(arguments.func(arguments))
    except (
        FileNotFoundError,
        KeyError,
        ValueError,
        ValidationError,
    ) as exception:
        message = exception.args[0] if getattr(exception, "args", None) else str(exception)
        print(str(message), file=sys.stderr)
        return 2
