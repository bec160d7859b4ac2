"""Per-path include/exclude decisions.

The resolver is built once from every rule source and never mutated afterwards,
so a single instance can be shared by any number of walkers.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

from prompt_repo.config import DEFAULT_EXCLUDES, IGNORE_FILENAME, EntryKind, PatternOrigin
from prompt_repo.exceptions import NoRootsProvidedError
from prompt_repo.logging import logger
from prompt_repo.patterns import PatternSet, expand_shorthand, load_ignore_file, normalize_globs

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from prompt_repo.settings import FilterConfig


@dataclass(frozen=True)
class ResolvedDecision:
    """Listing and tree visibility of one path. The two flags are independent."""

    include_in_listing: bool
    include_in_tree: bool


@dataclass(frozen=True)
class MatchResult:
    """Raw pattern matches for one path, before precedence is applied."""

    is_default_excluded: bool
    is_ignorefile_excluded: bool
    is_cli_excluded: bool
    is_cli_included: bool

    @property
    def base_excluded(self) -> bool:
        return self.is_default_excluded or self.is_ignorefile_excluded or self.is_cli_excluded


ROOT_DECISION = ResolvedDecision(include_in_listing=True, include_in_tree=True)


def _match_key(rel: str, kind: EntryKind) -> str:
    return f"{rel}/" if kind is EntryKind.DIRECTORY else rel


@dataclass(frozen=True)
class IgnoreResolver:
    """Immutable rule set answering ``decide(path, kind)`` for every root."""

    roots: tuple[Path, ...]
    defaults: PatternSet
    cli_include: PatternSet
    cli_exclude: PatternSet
    ignore_files: Mapping[Path, PatternSet] = field(default_factory=lambda: MappingProxyType({}))
    include_priority: bool = False
    exclude_from_tree: bool = False

    @classmethod
    def build(
        cls,
        roots: Sequence[Path],
        filter_config: FilterConfig,
        *,
        ignore_filename: str = IGNORE_FILENAME,
        defaults: Sequence[str] = DEFAULT_EXCLUDES,
    ) -> IgnoreResolver:
        """Assemble the resolver from defaults, per-root ignore files and CLI globs.

        All ignore files are loaded here, before any decision is made.

        Args:
            roots (Sequence[Path]): resolved root paths
            filter_config (FilterConfig): CLI include/exclude globs and flags
            ignore_filename (str): name of the per-root ignore file
            defaults (Sequence[str]): built-in exclusion globs

        Raises:
            NoRootsProvidedError: if ``roots`` is empty
            InvalidGlobPatternError: if any glob is malformed

        Returns:
            IgnoreResolver: the resolver
        """
        if not roots:
            raise NoRootsProvidedError
        ignore_files: dict[Path, PatternSet] = {}
        for root in roots:
            if not root.is_dir():
                continue
            loaded = load_ignore_file(root, ignore_filename)
            if loaded:
                ignore_files[root] = loaded

        include = [expand_shorthand(g) for g in normalize_globs(filter_config.include)]
        exclude = [expand_shorthand(g) for g in normalize_globs(filter_config.exclude)]
        resolver = cls(
            roots=tuple(roots),
            defaults=PatternSet.from_globs(defaults, PatternOrigin.DEFAULT),
            cli_include=PatternSet.from_globs(include, PatternOrigin.CLI_INCLUDE),
            cli_exclude=PatternSet.from_globs(exclude, PatternOrigin.CLI_EXCLUDE),
            ignore_files=MappingProxyType(ignore_files),
            include_priority=filter_config.include_priority,
            exclude_from_tree=filter_config.exclude_from_tree,
        )
        patterns: Counter[str] = Counter()
        for ps in (resolver.defaults, resolver.cli_include, resolver.cli_exclude, *ignore_files.values()):
            patterns.update({str(origin): len(pats) for origin, pats in ps.by_origin().items()})
        logger.debug(
            "resolver_built",
            roots=[str(r) for r in roots],
            patterns=dict(patterns),
            ignore_files={str(k): len(v) for k, v in ignore_files.items()},
            include=resolver.cli_include.globs,
            exclude=resolver.cli_exclude.globs,
            include_priority=resolver.include_priority,
            exclude_from_tree=resolver.exclude_from_tree,
        )
        return resolver

    @property
    def allow_list_mode(self) -> bool:
        """Include globs act as an allow-list unless include priority turns them into overrides."""
        return bool(self.cli_include) and not self.include_priority

    def locate(self, path: Path) -> tuple[Path, str]:
        """Find the innermost root containing ``path``.

        Args:
            path (Path): an absolute path

        Raises:
            ValueError: if ``path`` is under none of the roots

        Returns:
            tuple[Path, str]: the root and the POSIX path relative to it ("" for the root)
        """
        for root in sorted(self.roots, key=lambda r: len(r.parts), reverse=True):
            try:
                rel = path.relative_to(root)
            except ValueError:
                continue
            rel_str = rel.as_posix()
            return root, "" if rel_str == "." else rel_str
        msg = f"{path} is not under any root"
        raise ValueError(msg)

    def match(self, root: Path, rel: str, kind: EntryKind) -> MatchResult:
        """Evaluate each rule source against one root-relative path."""
        key = _match_key(rel, kind)
        ignore_set = self.ignore_files.get(root)
        return MatchResult(
            is_default_excluded=self.defaults.matches(key),
            is_ignorefile_excluded=bool(ignore_set) and ignore_set.matches(key),
            is_cli_excluded=self.cli_exclude.matches(key),
            is_cli_included=self.cli_include.matches(key),
        )

    def decide_relative(self, root: Path, rel: str, kind: EntryKind) -> ResolvedDecision:
        """Decide listing and tree visibility for ``rel`` under ``root``.

        Precedence, by origin only:

        1. include priority plus an include match forces the path into the listing;
        2. otherwise any default, ignore-file or CLI exclusion removes it;
        3. otherwise, in allow-list mode, it must match an include glob.

        The tree additionally hides anything excluded by defaults or the ignore
        file (even when forced into the listing) and, with ``exclude_from_tree``,
        anything matched by a CLI exclude.
        """
        if not rel:
            return ROOT_DECISION
        m = self.match(root, rel, kind)
        if self.include_priority and m.is_cli_included:
            listing = True
        elif m.base_excluded:
            listing = False
        elif self.allow_list_mode:
            listing = m.is_cli_included
        else:
            listing = True

        tree = (
            listing
            and not m.is_default_excluded
            and not m.is_ignorefile_excluded
            and not (self.exclude_from_tree and m.is_cli_excluded)
        )
        return ResolvedDecision(include_in_listing=listing, include_in_tree=tree)

    def decide(self, path: Path, kind: EntryKind) -> ResolvedDecision:
        """Decide listing and tree visibility for an absolute ``path``."""
        root, rel = self.locate(path)
        return self.decide_relative(root, rel, kind)

    def should_prune(self, root: Path, rel: str) -> bool:
        """Tell the walker whether a directory's subtree can be skipped entirely.

        Only an excluded directory is pruned. Failing the allow-list never prunes,
        since nested files may still match (``src/**/*.py`` under ``src/``). With
        include priority, an excluded directory is still entered when an include
        glob could match something beneath it.
        """
        if not rel:
            return False
        m = self.match(root, rel, EntryKind.DIRECTORY)
        if not m.base_excluded:
            return False
        if self.include_priority and (m.is_cli_included or self.cli_include.could_match_beneath(rel)):
            return False
        return True
