"""Glue between configuration, the filtering engine and rendering.

Runs the fixed pipeline: roots are resolved, the resolver is built once, the
walker classifies every entry, then the tree and listing assemblers consume the
same records independently.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, computed_field

from prompt_repo.exceptions import GitCommandError, NoRootsProvidedError, RootNotFoundError
from prompt_repo.git import get_git_diff, get_git_diff_between_branches, get_git_log, parse_branch_pair
from prompt_repo.listing import FileListingEntry, build_listing
from prompt_repo.logging import logger
from prompt_repo.resolver import IgnoreResolver
from prompt_repo.tree import TreeNode, build_tree, render_trees, root_label
from prompt_repo.walker import PathWalker, WalkReport

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from prompt_repo.exceptions import PromptRepoError
    from prompt_repo.settings import Settings


class PromptContext(BaseModel):
    """Everything handed to the template renderer.

    The git slots are always present, empty when not requested.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    roots: list[Path] = Field(..., description="Resolved root paths, in order")
    trees: list[TreeNode] = Field(default_factory=list, description="One tree per root")
    files: list[FileListingEntry] = Field(default_factory=list, description="Ordered file listing")
    git_diff: str = Field(default="", description="Staged diff of the first root")
    git_diff_branch: str = Field(default="", description="Diff between two branches")
    git_log_branch: str = Field(default="", description="Log between two branches")
    variables: dict[str, str] = Field(default_factory=dict, description="User template variables")
    skipped: dict[str, int] = Field(default_factory=dict, description="Skipped entries per error kind")
    truncated: bool = Field(default=False, description="The file limit stopped the walk early")

    @computed_field
    @property
    def absolute_code_path(self) -> str:
        """Label of the processed roots."""
        return ", ".join(root_label(r) for r in self.roots)

    @computed_field
    @property
    def source_tree(self) -> str:
        return render_trees(self.trees)

    def with_skipped(self, errors: Sequence[PromptRepoError]) -> PromptContext:
        """Copy of the context with ``errors`` added to the skipped counts."""
        if not errors:
            return self
        counts = Counter(self.skipped)
        counts.update(e.kind for e in errors)
        return self.model_copy(update={"skipped": dict(counts)})


def resolve_roots(paths: Sequence[Path | str]) -> list[Path]:
    """Resolve and de-duplicate the root paths, keeping their order.

    Raises:
        NoRootsProvidedError: if ``paths`` is empty
        RootNotFoundError: if a path does not exist
    """
    if not paths:
        raise NoRootsProvidedError
    roots: list[Path] = []
    for raw in paths:
        p = Path(raw).expanduser()
        if not p.exists():
            raise RootNotFoundError(root=p)
        resolved = p.resolve()
        if resolved not in roots:
            roots.append(resolved)
    return roots


def _git_slot(fetch: Callable[[], str], slot: str) -> str:
    try:
        return fetch()
    except GitCommandError as e:
        logger.warning("git_slot_failed", slot=slot, error=str(e))
        return ""


def collect_git_slots(repo: Path, settings: Settings) -> dict[str, str]:
    """Fill the requested git slots for ``repo``.

    Branch pairs are validated first; git failures leave their slot empty.

    Raises:
        ConfigurationError: if a branch option does not name exactly two branches
    """
    diff_pair = parse_branch_pair(settings.git_diff_branch) if settings.git_diff_branch else None
    log_pair = parse_branch_pair(settings.git_log_branch) if settings.git_log_branch else None
    slots = {"git_diff": "", "git_diff_branch": "", "git_log_branch": ""}
    if not repo.is_dir():
        return slots
    if settings.diff:
        slots["git_diff"] = _git_slot(lambda: get_git_diff(repo), "git_diff")
    if diff_pair:
        slots["git_diff_branch"] = _git_slot(
            lambda: get_git_diff_between_branches(repo, *diff_pair),
            "git_diff_branch",
        )
    if log_pair:
        slots["git_log_branch"] = _git_slot(lambda: get_git_log(repo, *log_pair), "git_log_branch")
    return slots


def assemble_prompt_context(settings: Settings) -> tuple[PromptContext, WalkReport]:
    """Run the filtering engine and gather the rendering context.

    Args:
        settings (Settings): the run configuration

    Raises:
        NoRootsProvidedError: if no path was given
        RootNotFoundError: if a path does not exist
        InvalidGlobPatternError: if a glob is malformed
        ConfigurationError: for a malformed branch pair or template variable

    Returns:
        tuple[PromptContext, WalkReport]: the context and the raw walk report
    """
    roots = resolve_roots(settings.paths)
    variables = settings.variables()
    resolver = IgnoreResolver.build(roots, settings.filter_config, ignore_filename=settings.ignore_filename)
    git_slots = collect_git_slots(roots[0], settings)

    report = PathWalker(resolver, max_files=settings.max_files).walk()
    trees = [build_tree(root, report.records_for(root)) for root in roots]
    files = build_listing(report.records, max_bytes=settings.max_bytes)
    logger.info(
        "context_assembled",
        roots=[str(r) for r in roots],
        files=len(files),
        skipped=report.skipped_counts(),
        truncated=report.truncated,
    )
    context = PromptContext(
        roots=roots,
        trees=trees,
        files=files,
        variables=variables,
        skipped=report.skipped_counts(),
        truncated=report.truncated,
        **git_slots,
    )
    return context, report
