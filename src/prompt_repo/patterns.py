"""Glob patterns tagged with their origin, compiled into matchable sets.

Matching follows gitwildmatch rules through ``pathspec``: ``*`` stays inside one
path segment, ``**`` spans segments, ``?`` is one character and ``[...]`` is a
character class. Matching is case-sensitive. A pattern without an inner slash
matches at any depth, and a pattern that matches a directory also matches
everything beneath it. Directories are matched with a trailing ``/``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pathspec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern, GitWildMatchPatternError

from prompt_repo.config import PATTERN_ALIASES, PatternOrigin, Polarity
from prompt_repo.exceptions import ConfigurationError, InvalidGlobPatternError
from prompt_repo.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

GLOB_CHARS = frozenset("*?[")
_EXTENSION_SHORTHAND = re.compile(r"^[A-Za-z0-9_+-]+$")


@dataclass(frozen=True)
class Pattern:
    """A single glob expression and the configuration source it came from."""

    glob: str
    origin: PatternOrigin

    @property
    def polarity(self) -> Polarity:
        """Only CLI includes admit paths; every other origin excludes."""
        if self.origin is PatternOrigin.CLI_INCLUDE:
            return Polarity.INCLUDE
        return Polarity.EXCLUDE


def normalize_globs(globs: Sequence[str]) -> list[str]:
    """Normalize a sequence of path glob patterns.

    Strip whitespace, split comma-separated values, replace backslashes with
    forward slashes and drop empty entries.

    Args:
        globs (Sequence[str]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        for part in (g or "").split(","):
            g2 = part.strip()
            if not g2:
                continue
            out.append(g2.replace("\\", "/"))
    return out


def expand_shorthand(glob: str) -> str:
    """Expand CLI shorthands into real globs.

    ``py`` becomes ``*.py`` (a bare token without dot, slash or glob character is
    an extension), ``docker``/``dockerfile`` and ``env`` map to their aliases,
    and a leading ``!`` is dropped since the flag already fixes the polarity.

    Args:
        glob (str): a normalized CLI glob

    Returns:
        str: the glob to compile
    """
    g = glob.removeprefix("!")
    alias = PATTERN_ALIASES.get(g.lower())
    if alias:
        return alias
    if _EXTENSION_SHORTHAND.match(g):
        return f"*.{g}"
    return g


def _character_class_error(glob: str) -> str | None:
    i = 0
    n = len(glob)
    while i < n:
        if glob[i] == "[":
            j = i + 1
            if j < n and glob[j] in "!^":
                j += 1
            # a "]" right after the opening bracket is a literal member
            if j < n and glob[j] == "]":
                j += 1
            close = glob.find("]", j)
            if close == -1:
                return f"unterminated character class at index {i}"
            i = close
        i += 1
    return None


def compile_glob(glob: str, origin: PatternOrigin) -> GitWildMatchPattern:
    """Validate and compile one glob.

    Args:
        glob (str): the glob to compile
        origin (PatternOrigin): where the glob came from, for error reporting

    Raises:
        InvalidGlobPatternError: if the glob has a malformed character class or
            cannot be compiled by the matcher

    Returns:
        GitWildMatchPattern: the compiled pattern
    """
    reason = _character_class_error(glob)
    if reason:
        raise InvalidGlobPatternError(pattern=glob, origin=str(origin), reason=reason)
    try:
        return GitWildMatchPattern(glob)
    except GitWildMatchPatternError as e:
        raise InvalidGlobPatternError(pattern=glob, origin=str(origin), reason=str(e)) from e


def fixed_prefix(glob: str) -> str | None:
    """Return the literal leading directory of an anchored glob.

    Args:
        glob (str): the glob to inspect

    Returns:
        str | None: ``None`` when the glob can match at any depth (it has no inner
            slash), otherwise the leading segments before the first segment with a
            glob character (possibly empty)
    """
    stripped = glob.rstrip("/")
    if "/" not in stripped:
        return None
    segments = stripped.lstrip("/").split("/")
    literal: list[str] = []
    for seg in segments:
        if GLOB_CHARS.intersection(seg):
            break
        literal.append(seg)
    return "/".join(literal)


@dataclass(frozen=True)
class PatternSet:
    """Ordered patterns of a single polarity, compiled for matching.

    Insertion order is kept for diagnostics only; a path matches the set when it
    matches any member (ignore-file negations aside).
    """

    polarity: Polarity
    patterns: tuple[Pattern, ...] = ()
    _spec: pathspec.PathSpec = field(default_factory=lambda: pathspec.PathSpec([]), repr=False, compare=False)

    @classmethod
    def build(cls, patterns: Iterable[Pattern], polarity: Polarity) -> PatternSet:
        """Compile patterns into a set.

        Every pattern is validated first; each invalid one is logged once and the
        first error aborts the build.

        Args:
            patterns (Iterable[Pattern]): the patterns, all of ``polarity``
            polarity (Polarity): the polarity of the set

        Raises:
            ValueError: if a pattern does not have the set's polarity
            InvalidGlobPatternError: if any pattern is malformed

        Returns:
            PatternSet: the compiled set
        """
        members = tuple(patterns)
        compiled: list[GitWildMatchPattern] = []
        errors: list[InvalidGlobPatternError] = []
        for pat in members:
            if pat.polarity is not polarity:
                msg = f"Pattern {pat.glob!r} from {pat.origin} is not a {polarity} pattern"
                raise ValueError(msg)
            try:
                compiled.append(compile_glob(pat.glob, pat.origin))
            except InvalidGlobPatternError as e:
                logger.error("invalid_glob_pattern", pattern=e.pattern, origin=e.origin, reason=e.reason)
                errors.append(e)
        if errors:
            raise errors[0]
        return cls(polarity=polarity, patterns=members, _spec=pathspec.PathSpec(compiled))

    @classmethod
    def from_globs(cls, globs: Iterable[str], origin: PatternOrigin) -> PatternSet:
        """Build a set from raw globs that all share ``origin``."""
        pats = [Pattern(glob=g, origin=origin) for g in globs]
        polarity = Polarity.INCLUDE if origin is PatternOrigin.CLI_INCLUDE else Polarity.EXCLUDE
        return cls.build(pats, polarity)

    def __len__(self) -> int:
        return len(self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    @property
    def globs(self) -> list[str]:
        return [p.glob for p in self.patterns]

    def by_origin(self) -> dict[PatternOrigin, list[Pattern]]:
        """Group patterns by origin, keeping insertion order within each group."""
        grouped: dict[PatternOrigin, list[Pattern]] = {}
        for pat in self.patterns:
            grouped.setdefault(pat.origin, []).append(pat)
        return grouped

    def matches(self, rel: str) -> bool:
        """Return whether the root-relative POSIX path ``rel`` matches the set.

        Directories must be passed with a trailing ``/``.
        """
        if not self.patterns:
            return False
        return self._spec.match_file(rel)

    def could_match_beneath(self, dir_rel: str) -> bool:
        """Conservatively tell whether a pattern could match a path under ``dir_rel``.

        Args:
            dir_rel (str): root-relative directory path, without trailing slash

        Returns:
            bool: False only when every pattern is anchored to a literal prefix
                that is disjoint from ``dir_rel``
        """
        base = dir_rel.strip("/")
        for pat in self.patterns:
            prefix = fixed_prefix(pat.glob)
            if not prefix:
                return True
            if prefix == base or prefix.startswith(base + "/") or base.startswith(prefix + "/"):
                return True
        return False


def load_ignore_file(root: Path, filename: str) -> PatternSet | None:
    """Load the project ignore file found directly under ``root``.

    Blank lines and lines starting with ``#`` are skipped; every other line is an
    exclusion glob relative to ``root``. Gitignore negation (``!path``) is kept.

    Args:
        root (Path): the root directory owning the ignore file
        filename (str): the ignore file name

    Raises:
        InvalidGlobPatternError: if a line is not a valid glob
        ConfigurationError: if the file exists but cannot be read

    Returns:
        PatternSet | None: the ignore-file patterns, or None if there is no such file
    """
    path = root / filename
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ConfigurationError(message=f"Cannot read ignore file {path}: {e.strerror or e}") from e
    globs: list[str] = []
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        globs.append(s)
    logger.debug("ignore_file_loaded", path=str(path), patterns=len(globs))
    return PatternSet.from_globs(globs, PatternOrigin.IGNORE_FILE)
