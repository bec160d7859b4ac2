"""Deterministic depth-first traversal of the root directories.

Siblings are sorted at every level and subdirectories are walked before the
files next to them, so the emitted record order never depends on the order the
filesystem happens to return entries in. Traversal uses an explicit stack.
"""

from __future__ import annotations

import os
import stat
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from prompt_repo.config import EntryKind
from prompt_repo.exceptions import PathUnreadableError, SymlinkCycleError
from prompt_repo.logging import logger
from prompt_repo.resolver import ROOT_DECISION

if TYPE_CHECKING:
    from prompt_repo.exceptions import PromptRepoError
    from prompt_repo.resolver import IgnoreResolver, ResolvedDecision

    FileId = tuple[int, int]


@dataclass(frozen=True)
class PathRecord:
    """One classified filesystem entry. Created once, never modified."""

    root: Path
    path: Path
    rel: str
    kind: EntryKind
    decision: ResolvedDecision
    is_empty_dir: bool = False
    size: int = 0

    @property
    def name(self) -> str:
        return self.rel.rsplit("/", 1)[-1] if self.rel else self.root.name

    @property
    def parts(self) -> list[str]:
        return self.rel.split("/") if self.rel else []


def summarize_skipped(counts: dict[str, int], *, truncated: bool = False) -> str:
    """Human readable skipped-entry summary, empty when nothing was skipped or cut."""
    parts: list[str] = []
    if counts:
        detail = ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
        parts.append(f"Skipped {sum(counts.values())} entries ({detail})")
    if truncated:
        parts.append("file limit reached, listing truncated")
    return "; ".join(parts)


@dataclass
class WalkReport:
    """Records and per-entry diagnostics of a walk."""

    records: list[PathRecord] = field(default_factory=list)
    diagnostics: list[PromptRepoError] = field(default_factory=list)
    pruned: int = 0
    truncated: bool = False

    def records_for(self, root: Path) -> list[PathRecord]:
        return [r for r in self.records if r.root == root]

    def skipped_counts(self) -> dict[str, int]:
        """Number of skipped entries per error kind."""
        return dict(Counter(d.kind for d in self.diagnostics))


@dataclass(frozen=True)
class _DirTask:
    root: Path
    path: Path
    rel: str
    decision: ResolvedDecision
    ancestors: frozenset[FileId]


@dataclass(frozen=True)
class _FileTask:
    root: Path
    path: Path
    rel: str
    decision: ResolvedDecision
    entry: os.DirEntry[str]


def _file_id(st: os.stat_result) -> FileId:
    return (st.st_dev, st.st_ino)


def _join(rel: str, name: str) -> str:
    return f"{rel}/{name}" if rel else name


class PathWalker:
    """Walk every root of a resolver and classify each entry.

    Args:
        resolver (IgnoreResolver): the shared, read-only decision maker
        max_files (int | None): stop once this many listed files were emitted
    """

    def __init__(self, resolver: IgnoreResolver, *, max_files: int | None = None) -> None:
        self.resolver = resolver
        self.max_files = max_files
        self._roots = frozenset(resolver.roots)
        self._listed = 0

    def walk(self) -> WalkReport:
        """Traverse all roots in order and return the classified records."""
        report = WalkReport()
        self._listed = 0
        for root in self.resolver.roots:
            if report.truncated:
                break
            self.walk_root(root, report)
        logger.debug(
            "walk_finished",
            records=len(report.records),
            listed=self._listed,
            pruned=report.pruned,
            skipped=report.skipped_counts(),
            truncated=report.truncated,
        )
        return report

    def _skip(self, report: WalkReport, error: PromptRepoError) -> None:
        report.diagnostics.append(error)
        logger.warning("entry_skipped", kind=error.kind, detail=str(error))

    def _limit_reached(self) -> bool:
        return self.max_files is not None and self._listed >= self.max_files

    def walk_root(self, root: Path, report: WalkReport) -> None:
        """Traverse one root, appending to ``report``."""
        try:
            st = root.stat()
        except OSError as e:
            self._skip(report, PathUnreadableError(path=root, reason=e.strerror or str(e)))
            return

        if not stat.S_ISDIR(st.st_mode):
            if self._limit_reached():
                report.truncated = True
                return
            report.records.append(
                PathRecord(
                    root=root,
                    path=root,
                    rel=root.name,
                    kind=EntryKind.FILE,
                    decision=ROOT_DECISION,
                    size=st.st_size,
                ),
            )
            self._listed += 1
            return

        stack: list[_DirTask | _FileTask] = [
            _DirTask(root=root, path=root, rel="", decision=ROOT_DECISION, ancestors=frozenset({_file_id(st)})),
        ]
        while stack:
            task = stack.pop()
            if isinstance(task, _FileTask):
                if task.decision.include_in_listing and self._limit_reached():
                    report.truncated = True
                    logger.info("file_limit_reached", max_files=self.max_files)
                    return
                self._emit_file(task, report)
            else:
                stack.extend(self._expand(task, report))

    def _emit_file(self, task: _FileTask, report: WalkReport) -> None:
        size = 0
        if task.decision.include_in_listing:
            try:
                size = task.entry.stat().st_size
            except OSError as e:
                self._skip(report, PathUnreadableError(path=task.path, reason=e.strerror or str(e)))
                return
            self._listed += 1
        report.records.append(
            PathRecord(
                root=task.root,
                path=task.path,
                rel=task.rel,
                kind=EntryKind.FILE,
                decision=task.decision,
                size=size,
            ),
        )

    def _expand(self, task: _DirTask, report: WalkReport) -> list[_DirTask | _FileTask]:
        """List one directory and return the tasks for its children, in stack order."""
        try:
            with os.scandir(task.path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            self._skip(report, PathUnreadableError(path=task.path, reason=e.strerror or str(e)))
            return []

        if task.rel:
            report.records.append(
                PathRecord(
                    root=task.root,
                    path=task.path,
                    rel=task.rel,
                    kind=EntryKind.DIRECTORY,
                    decision=task.decision,
                    is_empty_dir=not entries,
                ),
            )

        dirs: list[_DirTask] = []
        files: list[_FileTask] = []
        for entry in entries:
            path = task.path / entry.name
            try:
                entry.name.encode("utf-8")
            except UnicodeEncodeError:
                self._skip(report, PathUnreadableError(path=path, reason="path component is not valid UTF-8"))
                continue
            rel = _join(task.rel, entry.name)
            if path in self._roots:
                # classified by its own root, with that root's ignore file
                logger.debug("nested_root_deferred", root=str(task.root), rel=rel)
                continue
            try:
                # follows symlinks: a link is classified as its target
                st = entry.stat()
            except FileNotFoundError:
                self._skip(report, PathUnreadableError(path=path, reason="broken symlink"))
                continue
            except OSError as e:
                self._skip(report, PathUnreadableError(path=path, reason=e.strerror or str(e)))
                continue

            if stat.S_ISDIR(st.st_mode):
                child_id = _file_id(st)
                if child_id in task.ancestors:
                    self._skip(report, SymlinkCycleError(path=path, target=Path(os.path.realpath(path))))
                    continue
                if self.resolver.should_prune(task.root, rel):
                    report.pruned += 1
                    logger.debug("directory_pruned", root=str(task.root), rel=rel)
                    continue
                decision = self.resolver.decide_relative(task.root, rel, EntryKind.DIRECTORY)
                dirs.append(
                    _DirTask(
                        root=task.root,
                        path=path,
                        rel=rel,
                        decision=decision,
                        ancestors=task.ancestors | {child_id},
                    ),
                )
            elif stat.S_ISREG(st.st_mode):
                decision = self.resolver.decide_relative(task.root, rel, EntryKind.FILE)
                files.append(_FileTask(root=task.root, path=path, rel=rel, decision=decision, entry=entry))
            else:
                logger.debug("special_file_ignored", path=str(path))

        # popped last-in first-out: directories in order, then files in order
        return [*reversed(files), *reversed(dirs)]
