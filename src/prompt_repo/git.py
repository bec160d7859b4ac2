"""Thin wrappers around the ``git`` command line."""

from __future__ import annotations

import subprocess  # noqa: S404
from typing import TYPE_CHECKING

from prompt_repo.exceptions import ConfigurationError, GitCommandError
from prompt_repo.logging import logger
from prompt_repo.patterns import normalize_globs

if TYPE_CHECKING:
    from pathlib import Path


def run_git(repo: Path, *args: str) -> str:
    """Run a git command inside ``repo`` and return its standard output.

    Args:
        repo (Path): working directory of the command
        *args (str): git arguments

    Raises:
        GitCommandError: if git is missing or exits with a non-zero status

    Returns:
        str: the command's standard output
    """
    cmd = ["git", *args]
    logger.debug("git_command", command=" ".join(cmd), cwd=str(repo))
    try:
        out = subprocess.run(  # noqa: S603
            cmd,
            cwd=str(repo),
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitCommandError(command=" ".join(cmd), returncode=127, stdout="", stderr=str(e)) from e
    if out.returncode != 0:
        raise GitCommandError(
            command=" ".join(cmd),
            returncode=out.returncode,
            stdout=out.stdout,
            stderr=out.stderr,
        )
    return out.stdout


def get_git_diff(repo: Path) -> str:
    """Staged changes of the repository (index against HEAD)."""
    return run_git(repo, "diff", "--cached", "--no-color")


def _verify_branch(repo: Path, branch: str) -> None:
    run_git(repo, "rev-parse", "--verify", "--quiet", f"{branch}^{{commit}}")


def get_git_diff_between_branches(repo: Path, branch1: str, branch2: str) -> str:
    """Diff between two branches.

    Args:
        repo (Path): the repository
        branch1 (str): base branch
        branch2 (str): compared branch

    Raises:
        GitCommandError: if a branch does not exist or git fails

    Returns:
        str: the diff text
    """
    for branch in (branch1, branch2):
        _verify_branch(repo, branch)
    return run_git(repo, "diff", "--no-color", f"{branch1}..{branch2}")


def get_git_log(repo: Path, branch1: str, branch2: str) -> str:
    """One line per commit reachable from ``branch2`` but not from ``branch1``.

    Lines read ``<short hash> - <subject>``.
    """
    for branch in (branch1, branch2):
        _verify_branch(repo, branch)
    return run_git(repo, "log", "--no-color", "--format=%h - %s", f"{branch1}..{branch2}")


def parse_branch_pair(value: str) -> tuple[str, str]:
    """Split ``"main,feature"`` into two branch names.

    Raises:
        ConfigurationError: unless exactly two names are given
    """
    names = normalize_globs([value])
    if len(names) != 2:  # noqa: PLR2004
        raise ConfigurationError(message="Please provide exactly two branches separated by a comma.")
    return names[0], names[1]
