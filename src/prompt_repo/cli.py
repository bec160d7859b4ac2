"""
prompt_repo — Turn one or more directories into a single LLM prompt.

Overview
--------
Every path under the given roots is filtered through four rule sources: the
built-in default exclusions, a per-root ``.promptignore`` file, ``--include``
globs and ``--exclude`` globs. Included files are listed in a deterministic
depth-first order and drawn as a tree, then rendered into a Markdown prompt
(or a custom ``{{ variable }}`` template) that is printed, written to a file
or copied to the clipboard.

By default, ``--include`` turns the listing into an allow-list. With
``--include-priority`` includes instead override exclusions, default ones
included. ``--exclude-from-tree`` hides ``--exclude`` matches from the tree.

Settings are read, in increasing priority, from ``PROMPT_REPO_*`` environment
variables (and a ``.env`` file), a YAML config file (``--config`` or
``.prompt-repo.yaml`` in the working directory), then the command line.

Usage
-----
Run ``prompt-repo --help`` for full options. Common examples:
    - Python sources only, to stdout:
        prompt-repo . --include py

    - Keep lockfiles out of the listing but let one through:
        prompt-repo . --exclude "*.toml" --include pyproject.toml --include-priority

    - JSON payload with a token count:
        prompt-repo . --json --encoding cl100k

    - Copy to the clipboard and log to a file:
        prompt-repo src --clipboard --log-file prompt.log
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from prompt_repo import __version__
from prompt_repo.assembly import assemble_prompt_context
from prompt_repo.exceptions import ConfigurationError, PromptRepoError
from prompt_repo.logging import logger, setup_logging
from prompt_repo.output_construction import (
    build_json_payload,
    emit_output,
    load_template,
    read_paths_from_clipboard,
    render_files,
    render_prompt,
    skipped_summary,
)
from prompt_repo.settings import Settings, find_config_file, load_config_file, load_env_defaults
from prompt_repo.tokens import count_tokens, get_model_info

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Options that are not given are left out of the namespace, so lower
    priority sources (config file, environment) can fill them.
    """
    p = argparse.ArgumentParser(
        prog="prompt-repo",
        description="Assemble a filtered listing and tree of a codebase into an LLM prompt.",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("paths", nargs="*", type=Path, default=[], help="Root directories or files.")

    filters = p.add_argument_group("filtering")
    filters.add_argument(
        "-i",
        "--include",
        action="append",
        help="Include glob or extension, comma-separated (repeatable).",
    )
    filters.add_argument(
        "-e",
        "--exclude",
        action="append",
        help="Exclude glob or extension, comma-separated (repeatable).",
    )
    filters.add_argument(
        "--include-priority",
        action="store_true",
        help="Includes override exclusions instead of acting as an allow-list.",
    )
    filters.add_argument(
        "--exclude-from-tree",
        action="store_true",
        help="Hide --exclude matches from the tree.",
    )
    filters.add_argument("--ignore-file", dest="ignore_filename", help="Per-root ignore file name.")
    filters.add_argument("--max-files", type=int, help="Stop after this many listed files.")

    content = p.add_argument_group("content")
    content.add_argument("-l", "--line-number", action="store_true", help="Prefix code lines with numbers.")
    content.add_argument("--no-codeblock", action="store_true", help="Do not wrap code in fenced blocks.")
    content.add_argument(
        "--relative-paths",
        action="store_true",
        help="Show paths as <root name>/<relative path>.",
    )
    content.add_argument("--max-bytes", type=int, help="Text files above are truncated.")
    content.add_argument("--text-head-lines", type=int, help="Head lines for big text files.")
    content.add_argument("--text-tail-lines", type=int, help="Tail lines for big text files.")
    content.add_argument("-d", "--diff", action="store_true", help="Include the staged git diff.")
    content.add_argument("--git-diff-branch", metavar="BRANCHES", help="Diff between two branches: a,b.")
    content.add_argument("--git-log-branch", metavar="BRANCHES", help="Log between two branches: a,b.")

    output = p.add_argument_group("output")
    output.add_argument("-t", "--template", type=Path, help="Custom template file.")
    output.add_argument("--var", action="append", metavar="KEY=VALUE", help="Template variable (repeatable).")
    output.add_argument("-o", "--output", type=Path, help="Output file.")
    output.add_argument("-c", "--clipboard", action="store_true", help="Copy the prompt to the clipboard.")
    output.add_argument("-a", "--append", action="store_true", help="Append to the clipboard.")
    output.add_argument("--json", dest="json_output", action="store_true", help="Print a JSON payload.")
    output.add_argument("--encoding", help="Count tokens: cl100k, o200k, p50k, p50k_edit, r50k, gpt2.")
    output.add_argument("--read", action="store_true", help="Read root paths from the clipboard.")

    misc = p.add_argument_group("misc")
    misc.add_argument("--config", type=Path, help="YAML configuration file.")
    misc.add_argument("--log-file", help="Log file path.")
    misc.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Merge defaults, environment, config file and command line into Settings.

    Raises:
        ConfigurationError: if a source holds an invalid value
    """
    cli_values: dict[str, Any] = vars(build_parser().parse_args(argv))
    if not cli_values.get("paths"):
        cli_values.pop("paths", None)

    env_values = load_env_defaults()
    config_path = cli_values.get("config") or env_values.get("config") or find_config_file()
    config_values = load_config_file(Path(config_path)) if config_path else {}

    merged = {**env_values, **config_values, **cli_values}
    try:
        return Settings(**merged)
    except ValidationError as e:
        raise ConfigurationError(message=f"Invalid settings: {e}") from e


def run(settings: Settings) -> int:
    """Assemble, render and emit the prompt.

    Raises:
        PromptRepoError: for any configuration-level failure
    """
    if settings.read:
        settings = settings.model_copy(update={"paths": [*settings.paths, *read_paths_from_clipboard()]})

    context, _ = assemble_prompt_context(settings)
    context, files = render_files(context, settings)
    template = load_template(settings.template) if settings.template else None
    prompt = render_prompt(context, files, template=template)

    token_count: int | None = None
    model_info = ""
    if settings.encoding:
        token_count = count_tokens(prompt, settings.encoding)
        model_info = get_model_info(settings.encoding)

    summary = skipped_summary(context)
    if summary:
        print(f"[!] {summary}", file=sys.stderr)

    if settings.json_output:
        print(build_json_payload(prompt, context, files, token_count=token_count, model_info=model_info))
        return 0
    if token_count is not None:
        print(f"[i] Token count: {token_count}, Model info: {model_info}", file=sys.stderr)
    emit_output(prompt, settings)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
        if settings.log_file or settings.verbose:
            setup_logging(settings.log_file or None, verbose=settings.verbose)
        return run(settings)
    except PromptRepoError as e:
        logger.error("run_failed", kind=e.kind, error=str(e))
        print(f"[!] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
