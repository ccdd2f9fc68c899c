"""
Configuration loading utilities for Clarity.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional

import yaml
from pydantic import ValidationError

from .chunking import ChunkStrategy
from .errors import ConfigurationError

CHUNKING_SECTION = "chunking"


def _parse_scalar(value: str) -> object:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in {"null", "none"}:
        return None
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def parse_override_value(raw: str) -> object:
    """
    Parse a command-line override string into a Python value.

    JSON objects and arrays are decoded; other values become booleans, None,
    numbers, or stay strings.

    :param raw: Raw override string.
    :type raw: str
    :return: Parsed value.
    :rtype: object
    """
    stripped = str(raw).strip()
    if not stripped:
        return ""
    if stripped[0] in {"{", "["}:
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return stripped
    return _parse_scalar(stripped)


def parse_dotted_overrides(pairs: Optional[List[str]]) -> Dict[str, object]:
    """
    Parse repeated key=value pairs into a dotted override mapping.

    :param pairs: Repeated command-line pairs.
    :type pairs: list[str] or None
    :return: Override mapping.
    :rtype: dict[str, object]
    :raises ConfigurationError: If a pair is not key=value.
    """
    overrides: Dict[str, object] = {}
    for item in pairs or []:
        if "=" not in item:
            raise ConfigurationError(f"Config values must be key=value (got {item!r})")
        key, raw = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ConfigurationError("Config keys must be non-empty")
        overrides[key] = parse_override_value(raw)
    return overrides


def _set_dotted_key(target: MutableMapping[str, object], dotted_key: str, value: object) -> None:
    parts = [part.strip() for part in dotted_key.split(".") if part.strip()]
    if not parts:
        raise ConfigurationError("Override keys must be non-empty")
    current: MutableMapping[str, object] = target
    for part in parts[:-1]:
        existing = current.get(part)
        if not isinstance(existing, dict):
            nested: Dict[str, object] = {}
            current[part] = nested
            current = nested
        else:
            current = existing
    current[parts[-1]] = value


def apply_dotted_overrides(
    config: Mapping[str, object], overrides: Mapping[str, object]
) -> Dict[str, object]:
    """
    Apply dotted key overrides to a nested configuration mapping.

    :param config: Base configuration mapping. It is not modified.
    :type config: Mapping[str, object]
    :param overrides: Dotted key override mapping.
    :type overrides: Mapping[str, object]
    :return: New configuration mapping with overrides applied.
    :rtype: dict[str, object]
    """
    updated: Dict[str, object] = copy.deepcopy(dict(config))
    for key, value in overrides.items():
        _set_dotted_key(updated, key, value)
    return updated


def deep_merge(base: Mapping[str, object], incoming: Mapping[str, object]) -> Dict[str, object]:
    """
    Merge two mappings, recursing into nested mappings. Values from ``incoming`` win.
    """
    merged: Dict[str, object] = copy.deepcopy(dict(base))
    for key, value in incoming.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            merged[key] = deep_merge(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_configuration_view(
    configuration_paths: Iterable[str],
    *,
    configuration_label: str = "Configuration",
) -> Dict[str, object]:
    """
    Load a composed configuration view from one or more YAML files.

    Later files are deep-merged over earlier ones.

    :param configuration_paths: Configuration file paths in precedence order.
    :type configuration_paths: Iterable[str]
    :param configuration_label: Label used in error messages.
    :type configuration_label: str
    :return: Composed configuration view.
    :rtype: dict[str, object]
    :raises FileNotFoundError: If any configuration file is missing.
    :raises ConfigurationError: If any configuration file is not a mapping or not valid YAML.
    """
    paths = [Path(raw) for raw in configuration_paths]
    for candidate in paths:
        if not candidate.is_file():
            raise FileNotFoundError(f"{configuration_label} not found: {candidate}")
    view: Dict[str, object] = {}
    for candidate in paths:
        try:
            loaded = yaml.safe_load(candidate.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{configuration_label} is not valid YAML: {candidate}") from exc
        if loaded is None:
            continue
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{configuration_label} must be a mapping/object: {candidate}")
        view = deep_merge(view, loaded)
    return view


def load_chunk_strategy(
    configuration_paths: Iterable[str] = (),
    overrides: Optional[Mapping[str, object]] = None,
) -> ChunkStrategy:
    """
    Build a chunking strategy from configuration files and dotted overrides.

    Settings live under the ``chunking`` section; overrides may use either
    ``chunking.max_tokens`` or the short ``max_tokens`` form.

    :param configuration_paths: YAML files in precedence order.
    :type configuration_paths: Iterable[str]
    :param overrides: Dotted key overrides.
    :type overrides: Mapping[str, object] or None
    :return: Validated strategy.
    :rtype: clarity.chunking.ChunkStrategy
    :raises ConfigurationError: If the chunking section is invalid.
    """
    view = load_configuration_view(configuration_paths)
    normalized = {
        key if key.startswith(f"{CHUNKING_SECTION}.") else f"{CHUNKING_SECTION}.{key}": value
        for key, value in (overrides or {}).items()
    }
    view = apply_dotted_overrides(view, normalized)
    section = view.get(CHUNKING_SECTION) or {}
    if not isinstance(section, dict):
        raise ConfigurationError("Configuration section 'chunking' must be a mapping/object")
    try:
        return ChunkStrategy.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid chunking configuration: {exc}") from exc
