from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from prompt_repo.exceptions import PathUnreadableError
from prompt_repo.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

    from prompt_repo.listing import FileListingEntry

BASE64_RUN = re.compile(r"[A-Za-z0-9+/=]{80,}")
BASE64_KEEP = 50
BASE64_MAX = 100
FENCE = "```"
SNIFF_BYTES = 4096


def is_utf8_text(chunk: bytes, *, complete: bool = True) -> bool:
    """Check if a chunk of bytes is utf-8 text.

    Args:
        chunk (bytes): the bytes to test.
        complete (bool): False when ``chunk`` is only the start of a file.

    Returns:
        bool: True if the chunk decodes as utf-8.
    """
    try:
        chunk.decode("utf-8")
    except UnicodeDecodeError as e:
        # a multi-byte sequence cut at the chunk end is still text
        return not complete and e.start >= len(chunk) - 3
    return True


def decode_lossy(raw: bytes) -> str:
    """Decode utf-8, rendering every invalid sequence as ``[]``."""
    return raw.decode("utf-8", errors="replace").replace("\ufffd", "[]")


def read_file_bytes(path: Path) -> bytes | None:
    """Read a listed file, tolerating files that vanished since the walk.

    Args:
        path (Path): the file to read

    Raises:
        PathUnreadableError: if the file exists but cannot be read

    Returns:
        bytes | None: the content, or None if the file vanished
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        logger.warning("file_vanished", path=str(path))
        return None
    except OSError as e:
        raise PathUnreadableError(path=path, reason=e.strerror or str(e)) from e


def shorten_long_base64_strings(code: str) -> str:
    """Collapse long base64-looking runs to their first and last 50 characters.

    Runs of 80 characters or more are considered, only those above 100
    characters are shortened.
    """

    def _shorten(m: re.Match[str]) -> str:
        run = m.group(0)
        if len(run) <= BASE64_MAX:
            return run
        return f"{run[:BASE64_KEEP]}...{run[-BASE64_KEEP:]}"

    return BASE64_RUN.sub(_shorten, code)


def add_line_numbers(code: str) -> str:
    """Prefix every line with its 1-based number, right-aligned on 4 columns."""
    return "".join(f"{n:4} | {line}\n" for n, line in enumerate(code.splitlines(), start=1))


def wrap_code_block(code: str, extension: str, *, line_numbers: bool = False, no_codeblock: bool = False) -> str:
    """Format file content for the prompt.

    Args:
        code (str): the file content
        extension (str): extension used as the fence info string
        line_numbers (bool): prefix lines with their number
        no_codeblock (bool): return the content without a fenced block

    Returns:
        str: the formatted content
    """
    body = add_line_numbers(code) if line_numbers else code
    if no_codeblock:
        return body
    return f"{FENCE}{extension}\n{body}\n{FENCE}"


def take_head_tail(lines: list[str], head: int, tail: int) -> str:
    """Select the first and last lines of a file.

    Args:
        lines (list[str]): the lines of the file to select from
        head (int): the number of lines to include from the head of the file
        tail (int): the number of lines to include from the tail of the file

    Returns:
        str: a string containing the selected head and tail lines,
            separated by an ellipsis if both are included
    """
    head_n = max(0, head)
    tail_n = max(0, tail)
    if head_n == 0 and tail_n == 0:
        return ""
    if head_n + tail_n >= len(lines):
        return "\n".join(lines)
    out: list[str] = []
    out.extend(lines[:head_n])
    out.append("…")
    out.extend(lines[-tail_n:] if tail_n else [])
    return "\n".join(out)


@dataclass(frozen=True)
class RenderedFile:
    """A listed file as it appears in the prompt."""

    path: str
    extension: str
    code: str


def file_to_prompt_text(
    entry: FileListingEntry,
    *,
    relative_paths: bool = False,
    line_numbers: bool = False,
    no_codeblock: bool = False,
    text_head_lines: int = 200,
    text_tail_lines: int = 80,
) -> RenderedFile | None:
    """Read and format one listing entry.

    Large files keep only their head and tail lines, binary files are replaced
    by a size stub. Files that vanished since the walk, or only hold whitespace,
    are left out.

    Args:
        entry (FileListingEntry): the entry to render
        relative_paths (bool): display ``<root label>/<rel>`` instead of the absolute path
        line_numbers (bool): prefix lines with their number
        no_codeblock (bool): do not wrap the content in a fenced block
        text_head_lines (int): head lines kept for large files
        text_tail_lines (int): tail lines kept for large files

    Raises:
        PathUnreadableError: if the file exists but cannot be read

    Returns:
        RenderedFile | None: the rendered file, or None when it is left out
    """
    raw = entry.read_bytes()
    if raw is None:
        return None
    if not is_utf8_text(raw[:SNIFF_BYTES], complete=len(raw) <= SNIFF_BYTES):
        code = f"(binary file, size={entry.size} bytes)"
    else:
        text = decode_lossy(raw)
        if not text.strip():
            return None
        if entry.is_too_big:
            body = take_head_tail(text.splitlines(), head=text_head_lines, tail=text_tail_lines)
            meta = f"(truncated, size={entry.size} bytes)"
            text = meta if not body else f"{meta}\n{body}"
        code = shorten_long_base64_strings(text)
    return RenderedFile(
        path=entry.display_path(relative=relative_paths),
        extension=entry.extension,
        code=wrap_code_block(code, entry.extension, line_numbers=line_numbers, no_codeblock=no_codeblock),
    )

