from __future__ import annotations

import io
import json
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pyperclip

from prompt_repo.exceptions import ConfigurationError, PathUnreadableError
from prompt_repo.file_manipulation import RenderedFile, file_to_prompt_text
from prompt_repo.logging import logger
from prompt_repo.walker import summarize_skipped

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from prompt_repo.assembly import PromptContext
    from prompt_repo.settings import Settings

TEMPLATE_VARIABLE = re.compile(r"\{\{\s*(?P<var>[A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
BUILTIN_VARIABLES = frozenset(
    {
        "absolute_code_path",
        "source_tree",
        "files",
        "git_diff",
        "git_diff_branch",
        "git_log_branch",
        "skipped_summary",
    },
)
CLIPBOARD_SEPARATOR = "\n\n----------\n\n"


def render_files(context: PromptContext, settings: Settings) -> tuple[PromptContext, list[RenderedFile]]:
    """Read and format every listed file, dropping those left out.

    Files that cannot be read are skipped and counted in the returned context.

    Args:
        context (PromptContext): the assembled context
        settings (Settings): the run configuration

    Returns:
        tuple[PromptContext, list[RenderedFile]]: the updated context and the rendered files
    """
    rendered: list[RenderedFile] = []
    unreadable: list[PathUnreadableError] = []
    for entry in context.files:
        try:
            rf = file_to_prompt_text(
                entry,
                relative_paths=settings.relative_paths,
                line_numbers=settings.line_number,
                no_codeblock=settings.no_codeblock,
                text_head_lines=settings.text_head_lines,
                text_tail_lines=settings.text_tail_lines,
            )
        except PathUnreadableError as e:
            logger.warning("entry_skipped", kind=e.kind, detail=str(e))
            unreadable.append(e)
            continue
        if rf is not None:
            rendered.append(rf)
    return context.with_skipped(unreadable), rendered


def render_file_blocks(files: Iterable[RenderedFile]) -> str:
    out = io.StringIO()
    for rf in files:
        out.write(f"`{rf.path}`:\n\n{rf.code}\n\n")
    return out.getvalue()


def skipped_summary(context: PromptContext) -> str:
    return summarize_skipped(context.skipped, truncated=context.truncated)


def build_markdown(context: PromptContext, files: Sequence[RenderedFile]) -> str:
    """Build the default prompt.

    The prompt holds the project path, the source tree, one block per file, the
    requested git sections and, when anything was skipped, a closing note.

    Args:
        context (PromptContext): the assembled context
        files (Sequence[RenderedFile]): the rendered listing

    Returns:
        str: the prompt text
    """
    out = io.StringIO()
    out.write(f"Project Path: {context.absolute_code_path}\n\n")
    out.write("Source Tree:\n\n")
    out.write(f"```\n{context.source_tree}\n```\n\n")
    out.write(render_file_blocks(files))

    sections = (
        ("Git Diff", context.git_diff),
        ("Git Diff Between Branches", context.git_diff_branch),
        ("Git Log Between Branches", context.git_log_branch),
    )
    for title, body in sections:
        if body.strip():
            out.write(f"{title}:\n\n```diff\n{body.rstrip()}\n```\n\n")

    note = skipped_summary(context)
    if note:
        out.write(f"> Note: {note}\n")
    return out.getvalue().rstrip() + "\n"


def extract_template_variables(template: str) -> list[str]:
    """Names of every ``{{ name }}`` placeholder, in order of first use.

    Args:
        template (str): the template text

    Returns:
        list[str]: unique placeholder names
    """
    seen: dict[str, None] = {}
    for m in TEMPLATE_VARIABLE.finditer(template):
        seen.setdefault(m.group("var"), None)
    return list(seen)


def resolve_template_variables(
    template: str,
    provided: dict[str, str],
    *,
    ask: Callable[[str], str] | None = None,
) -> dict[str, str]:
    """Fill every user-defined placeholder of ``template``.

    Values come from ``provided`` (``--var``). Missing ones are asked with
    ``ask`` when given, else interactively when stdin is a terminal, else they
    render empty with a warning.

    Args:
        template (str): the template text
        provided (dict[str, str]): values given on the command line
        ask (Callable[[str], str] | None): question callback

    Returns:
        dict[str, str]: a value for every user-defined placeholder
    """
    if ask is None and sys.stdin.isatty():
        ask = input
    values = dict(provided)
    for name in extract_template_variables(template):
        if name in BUILTIN_VARIABLES or name in values:
            continue
        if ask is None:
            logger.warning("template_variable_undefined", variable=name)
            values[name] = ""
            continue
        try:
            values[name] = ask(f"Enter value for '{name}': ")
        except EOFError:
            values[name] = ""
    return values


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute ``{{ name }}`` placeholders; unknown names render empty."""
    return TEMPLATE_VARIABLE.sub(lambda m: values.get(m.group("var"), ""), template)


def load_template(path: Path) -> str:
    """Read a custom template file.

    Raises:
        ConfigurationError: if the file cannot be read
    """
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(message=f"Failed to read custom template file {path}: {e}") from e


def render_prompt(
    context: PromptContext,
    files: Sequence[RenderedFile],
    *,
    template: str | None = None,
    ask: Callable[[str], str] | None = None,
) -> str:
    """Render the final prompt, with the default layout or a custom template.

    Args:
        context (PromptContext): the assembled context
        files (Sequence[RenderedFile]): the rendered listing
        template (str | None): custom template text
        ask (Callable[[str], str] | None): question callback for undefined variables

    Returns:
        str: the prompt
    """
    if template is None:
        return build_markdown(context, files)
    values = resolve_template_variables(template, context.variables, ask=ask)
    values.update(
        {
            "absolute_code_path": context.absolute_code_path,
            "source_tree": context.source_tree,
            "files": render_file_blocks(files),
            "git_diff": context.git_diff,
            "git_diff_branch": context.git_diff_branch,
            "git_log_branch": context.git_log_branch,
            "skipped_summary": skipped_summary(context),
        },
    )
    return render_template(template, values)


def build_json_payload(
    prompt: str,
    context: PromptContext,
    files: Sequence[RenderedFile],
    *,
    token_count: int | None = None,
    model_info: str = "",
) -> str:
    """Serialize the prompt and its metadata as pretty-printed JSON."""
    payload = {
        "prompt": prompt,
        "directory_name": context.absolute_code_path,
        "token_count": token_count,
        "model_info": model_info,
        "files": [rf.path for rf in files],
        "skipped": context.skipped,
        "truncated": context.truncated,
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def copy_to_clipboard(text: str, *, append: bool = False) -> None:
    """Copy ``text`` to the clipboard, after the current content when appending.

    Raises:
        pyperclip.PyperclipException: if no clipboard mechanism is available
    """
    if append:
        existing = pyperclip.paste()
        if existing:
            text = f"{existing}{CLIPBOARD_SEPARATOR}{text}"
    pyperclip.copy(text)


def write_to_file(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info("prompt_written", path=str(path), chars=len(text))


def emit_output(prompt: str, settings: Settings) -> None:
    """Send the prompt to the requested destinations.

    Standard output is used when neither a file nor the clipboard is requested,
    and as the fallback when the clipboard is unavailable.
    """
    if settings.output:
        write_to_file(Path(settings.output), prompt)
        print(f"[✓] Prompt written to {settings.output}", file=sys.stderr)
    if settings.clipboard:
        try:
            copy_to_clipboard(prompt, append=settings.append)
        except pyperclip.PyperclipException as e:
            logger.warning("clipboard_unavailable", error=str(e))
            print(f"[!] Failed to copy to clipboard: {e}", file=sys.stderr)
            print(prompt)
        else:
            done = "Appended to clipboard successfully." if settings.append else "Copied to clipboard successfully."
            print(f"[✓] {done}", file=sys.stderr)
    if not settings.output and not settings.clipboard:
        print(prompt, end="")


def parse_paths_from_clipboard(content: str) -> list[Path]:
    """Whitespace-separated paths from clipboard text, keeping those that exist.

    Raises:
        ConfigurationError: if no existing path is found
    """
    paths = [Path(s) for s in content.split() if Path(s).exists()]
    if not paths:
        raise ConfigurationError(message="No valid paths found in clipboard")
    return paths


def read_paths_from_clipboard() -> list[Path]:
    """Root paths listed in the clipboard.

    Raises:
        ConfigurationError: if the clipboard cannot be read or holds no existing path
    """
    try:
        content = pyperclip.paste()
    except pyperclip.PyperclipException as e:
        raise ConfigurationError(message=f"Failed to read paths from clipboard: {e}") from e
    return parse_paths_from_clipboard(content)
