"""
User-level configuration for provider credentials.

Configuration is read from ``./.clarity/config.yml`` and ``~/.clarity/config.yml``.
The project-local file wins over the home file and environment variables win
over both.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict

from .constants import CONFIG_DIR_NAME, CONFIG_FILE_NAME


class OpenAiUserConfig(BaseModel):
    """
    OpenAI credentials.
    """

    model_config = ConfigDict(extra="ignore")

    api_key: Optional[str] = None


class ClarityUserConfig(BaseModel):
    """
    Parsed user configuration.

    :ivar openai: OpenAI settings, when configured.
    :vartype openai: OpenAiUserConfig or None
    """

    model_config = ConfigDict(extra="ignore")

    openai: Optional[OpenAiUserConfig] = None


def default_user_config_paths(
    *, cwd: Optional[Path] = None, home: Optional[Path] = None
) -> List[Path]:
    """
    Return candidate user configuration paths in precedence order, highest first.

    :param cwd: Working directory override.
    :type cwd: Path or None
    :param home: Home directory override.
    :type home: Path or None
    :return: Candidate paths.
    :rtype: list[Path]
    """
    local_root = cwd or Path.cwd()
    home_root = home or Path.home()
    return [
        local_root / CONFIG_DIR_NAME / CONFIG_FILE_NAME,
        home_root / CONFIG_DIR_NAME / CONFIG_FILE_NAME,
    ]


def load_user_config(paths: Optional[List[Path]] = None) -> ClarityUserConfig:
    """
    Load the first user configuration file that defines each setting.

    :param paths: Candidate paths in precedence order. Defaults to the standard locations.
    :type paths: list[Path] or None
    :return: Parsed configuration. Missing files yield an empty configuration.
    :rtype: ClarityUserConfig
    :raises ValueError: If a configuration file is not a mapping.
    """
    api_key: Optional[str] = None
    for path in paths if paths is not None else default_user_config_paths():
        if not path.is_file():
            continue
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"User config must be a mapping: {path}")
        parsed = ClarityUserConfig.model_validate(loaded)
        if api_key is None and parsed.openai is not None and parsed.openai.api_key:
            api_key = parsed.openai.api_key
    if api_key is None:
        return ClarityUserConfig()
    return ClarityUserConfig(openai=OpenAiUserConfig(api_key=api_key))


def resolve_openai_api_key(*, config: Optional[ClarityUserConfig] = None) -> Optional[str]:
    """
    Resolve an OpenAI API key from the environment or user configuration.

    :param config: Preloaded user configuration.
    :type config: ClarityUserConfig or None
    :return: API key or None when none is configured.
    :rtype: str or None
    """
    env_key = os.environ.get("OPENAI_API_KEY")
    if env_key:
        return env_key
    loaded = config or load_user_config()
    if loaded.openai is None:
        return None
    return loaded.openai.api_key
