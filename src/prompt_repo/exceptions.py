from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar


@dataclass(frozen=True)
class PromptRepoError(Exception):
    """Base exception for errors in the prompt_repo package."""

    kind: ClassVar[str] = "PromptRepoError"

    def __str__(self) -> str:
        return self.kind


@dataclass(frozen=True)
class InvalidGlobPatternError(PromptRepoError):
    """Raised when a glob pattern cannot be parsed.

    Filtering cannot be trusted with an unparseable rule, so this aborts the run.
    """

    kind: ClassVar[str] = "InvalidGlobPattern"

    pattern: str
    origin: str
    reason: str

    def __str__(self) -> str:
        return f"Invalid glob pattern {self.pattern!r} ({self.origin}): {self.reason}"


@dataclass(frozen=True)
class ConfigurationError(PromptRepoError):
    """Raised when the run configuration cannot be honored."""

    kind: ClassVar[str] = "Configuration"

    message: str = "Invalid configuration."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class NoRootsProvidedError(ConfigurationError):
    """Raised when no root path was given."""

    kind: ClassVar[str] = "NoRootsProvided"

    message: str = "No root paths were provided."


@dataclass(frozen=True)
class RootNotFoundError(ConfigurationError):
    """Raised when a root path does not exist."""

    kind: ClassVar[str] = "RootNotFound"

    root: Path = Path()
    message: str = "Path does not exist."

    def __str__(self) -> str:
        return f"{self.message}: {self.root}"


@dataclass(frozen=True)
class PathUnreadableError(PromptRepoError):
    """A single entry could not be read during traversal (skipped, not raised)."""

    kind: ClassVar[str] = "PathUnreadable"

    path: Path
    reason: str

    def __str__(self) -> str:
        return f"Cannot read {self.path}: {self.reason}"


@dataclass(frozen=True)
class SymlinkCycleError(PromptRepoError):
    """A symlink leads back to one of its ancestor directories (skipped, not raised)."""

    kind: ClassVar[str] = "SymlinkCycle"

    path: Path
    target: Path

    def __str__(self) -> str:
        return f"Symlink cycle at {self.path} -> {self.target}"


@dataclass(frozen=True)
class GitCommandError(PromptRepoError):
    """Raised when a git command fails."""

    kind: ClassVar[str] = "GitCommand"

    command: str
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return f"`{self.command}` exited with {self.returncode}: {detail}"
