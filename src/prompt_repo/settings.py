from __future__ import annotations

import os
from pathlib import Path
from typing import Any, get_origin

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from prompt_repo.config import CONFIG_FILENAMES, ENV_PREFIX, IGNORE_FILENAME
from prompt_repo.exceptions import ConfigurationError
from prompt_repo.logging import logger

ENV_FILE = find_dotenv(usecwd=True)


class FilterConfig(BaseModel):
    """CLI-style filter configuration consumed by the ignore resolver."""

    model_config = ConfigDict(frozen=True)

    include: list[str] = Field(default_factory=list, description="Include globs.")
    exclude: list[str] = Field(default_factory=list, description="Exclude globs.")
    include_priority: bool = Field(
        default=False,
        description="Include globs override exclusions instead of acting as an allow-list.",
    )
    exclude_from_tree: bool = Field(
        default=False,
        description="Hide CLI-excluded paths from the tree even when they stay listed.",
    )


class Settings(BaseModel):
    """Configuration settings for the prompt_repo command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    paths: list[Path] = Field(default_factory=list, description="Root paths to process.")
    include: list[str] = Field(default_factory=list, description="Include glob.")
    exclude: list[str] = Field(default_factory=list, description="Exclude glob.")
    include_priority: bool = Field(
        default=False,
        description="Include globs win over exclusions.",
    )
    exclude_from_tree: bool = Field(
        default=False,
        description="Hide excluded paths from the tree.",
    )
    ignore_filename: str = Field(default=IGNORE_FILENAME, description="Per-root ignore file name.")
    max_files: int | None = Field(default=None, ge=1, description="Stop after this many listed files.")

    output: Path | None = Field(default=None, description="Output file.")
    clipboard: bool = Field(default=False, description="Copy the prompt to the clipboard.")
    append: bool = Field(default=False, description="Append to the clipboard instead of overwriting.")
    json_output: bool = Field(default=False, description="Print a JSON payload instead of the prompt.")
    template: Path | None = Field(default=None, description="Custom template file.")
    var: list[str] = Field(default_factory=list, description="Template variables as key=value.")
    read: bool = Field(default=False, description="Read root paths from the clipboard.")

    line_number: bool = Field(default=False, description="Prefix code lines with numbers.")
    no_codeblock: bool = Field(default=False, description="Do not wrap code in fenced blocks.")
    relative_paths: bool = Field(default=False, description="Show paths relative to the root label.")
    max_bytes: int | None = Field(
        default=500_000,
        ge=0,
        description="Text files above are truncated.",
    )
    text_head_lines: int = Field(default=200, ge=0, description="Head lines for big text files.")
    text_tail_lines: int = Field(default=80, ge=0, description="Tail lines for big text files.")

    diff: bool = Field(default=False, description="Include the git diff.")
    git_diff_branch: str = Field(default="", description="Two comma-separated branches to diff.")
    git_log_branch: str = Field(default="", description="Two comma-separated branches to log.")
    encoding: str = Field(default="", description="Tokenizer for token counting; empty disables it.")

    config: Path | None = Field(default=None, description="YAML configuration file.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Debug logging.")

    @property
    def filter_config(self) -> FilterConfig:
        return FilterConfig(
            include=self.include,
            exclude=self.exclude,
            include_priority=self.include_priority,
            exclude_from_tree=self.exclude_from_tree,
        )

    def variables(self) -> dict[str, str]:
        """Parse ``--var key=value`` entries.

        Raises:
            ConfigurationError: if an entry has no ``=`` or an empty key

        Returns:
            dict[str, str]: the user-defined template variables
        """
        out: dict[str, str] = {}
        for item in self.var:
            key, sep, value = item.partition("=")
            key = key.strip()
            if not sep or not key:
                raise ConfigurationError(message=f"Template variable must be key=value, got {item!r}")
            out[key] = value
        return out


def _field_key(raw: str) -> str:
    return raw.strip().lower().replace("-", "_")


def load_env_defaults(env_file: str | None = ENV_FILE) -> dict[str, Any]:
    """Collect ``PROMPT_REPO_*`` settings from a ``.env`` file and the environment.

    The environment wins over the ``.env`` file. Keys that are not Settings fields
    are ignored. List settings take a single value, except ``PROMPT_REPO_PATHS``
    which is split on the path separator.

    Args:
        env_file (str | None): path of the ``.env`` file, if any

    Returns:
        dict[str, Any]: field name to raw value, list fields wrapped in a list
    """
    values: dict[str, str] = {}
    if env_file:
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update(os.environ)
    out: dict[str, Any] = {}
    for key, value in values.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = _field_key(key.removeprefix(ENV_PREFIX))
        field = Settings.model_fields.get(name)
        if field is None:
            logger.debug("unknown_env_setting", key=key)
        elif get_origin(field.annotation) is list:
            out[name] = value.split(os.pathsep) if name == "paths" else [value]
        else:
            out[name] = value
    return out


def find_config_file(start: Path | None = None) -> Path | None:
    """Return the first default config file found in ``start`` (the working directory by default)."""
    base = start or Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Load settings from a YAML mapping.

    Args:
        path (Path): the YAML file

    Raises:
        ConfigurationError: if the file cannot be read or is not a mapping

    Returns:
        dict[str, Any]: field name to value, dashes in keys turned into underscores
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(message=f"Cannot load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(message=f"Config file {path} must contain a mapping")
    return {_field_key(str(k)): v for k, v in data.items()}
