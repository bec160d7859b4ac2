from __future__ import annotations

import os
from pathlib import Path

import pytest

from prompt_repo.config import EntryKind
from prompt_repo.exceptions import PathUnreadableError, SymlinkCycleError
from prompt_repo.resolver import IgnoreResolver
from prompt_repo.settings import FilterConfig
from prompt_repo.walker import PathWalker, WalkReport, summarize_skipped


def write_files(root: Path, *rels: str) -> None:
    for rel in rels:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"content of {rel}\n", encoding="utf-8")


def walk(root: Path, *, max_files: int | None = None, **kwargs: object) -> WalkReport:
    resolver = IgnoreResolver.build([root], FilterConfig(**kwargs))
    return PathWalker(resolver, max_files=max_files).walk()


@pytest.mark.unit
def test_siblings_sorted_directories_first(tmp_path: Path) -> None:
    write_files(tmp_path, "m.txt", "z/y.txt", "a/x.txt", "b.txt")

    report = walk(tmp_path)

    assert [r.rel for r in report.records] == ["a", "a/x.txt", "z", "z/y.txt", "b.txt", "m.txt"]
    assert [r.kind for r in report.records][:2] == [EntryKind.DIRECTORY, EntryKind.FILE]
    assert report.diagnostics == []


@pytest.mark.unit
def test_listed_files_carry_their_size(tmp_path: Path) -> None:
    (tmp_path / "five.txt").write_text("12345", encoding="utf-8")

    (record,) = walk(tmp_path).records

    assert record.size == 5  # noqa: PLR2004
    assert record.name == "five.txt"
    assert record.parts == ["five.txt"]


@pytest.mark.unit
def test_empty_directory_is_marked(tmp_path: Path) -> None:
    (tmp_path / "empty").mkdir()
    write_files(tmp_path, "full/a.txt")

    by_rel = {r.rel: r for r in walk(tmp_path).records}

    assert by_rel["empty"].is_empty_dir
    assert not by_rel["full"].is_empty_dir


@pytest.mark.unit
def test_excluded_directory_is_pruned(tmp_path: Path) -> None:
    write_files(tmp_path, "node_modules/lib/index.js", "src/app.py")

    report = walk(tmp_path)

    assert [r.rel for r in report.records] == ["src", "src/app.py"]
    assert report.pruned == 1


@pytest.mark.unit
def test_allow_list_descends_into_unmatched_directories(tmp_path: Path) -> None:
    write_files(tmp_path, "src/pkg/mod.py", "src/readme.md")

    report = walk(tmp_path, include=["src/**/*.py"])
    listed = [r.rel for r in report.records if r.kind is EntryKind.FILE and r.decision.include_in_listing]

    assert listed == ["src/pkg/mod.py"]
    assert report.pruned == 0


@pytest.mark.unit
def test_priority_include_reaches_into_default_excluded_directory(tmp_path: Path) -> None:
    write_files(tmp_path, ".git/config", ".git/HEAD", "a.py")

    report = walk(tmp_path, include=[".git/config"], include_priority=True)
    listed = [r.rel for r in report.records if r.kind is EntryKind.FILE and r.decision.include_in_listing]

    assert listed == [".git/config", "a.py"]


@pytest.mark.unit
def test_file_root_yields_single_record(tmp_path: Path) -> None:
    write_files(tmp_path, "solo.py")
    root = tmp_path / "solo.py"

    report = walk(root)

    assert len(report.records) == 1
    record = report.records[0]
    assert record.path == root
    assert record.kind is EntryKind.FILE
    assert record.decision.include_in_listing
    assert record.decision.include_in_tree


@pytest.mark.unit
def test_symlink_cycle_is_reported_once(tmp_path: Path) -> None:
    write_files(tmp_path, "sub/a.txt")
    (tmp_path / "sub" / "loop").symlink_to(tmp_path, target_is_directory=True)

    report = walk(tmp_path)

    cycles = [d for d in report.diagnostics if isinstance(d, SymlinkCycleError)]
    assert len(cycles) == 1
    assert cycles[0].path == tmp_path / "sub" / "loop"
    assert report.skipped_counts() == {"SymlinkCycle": 1}
    assert [r.rel for r in report.records] == ["sub", "sub/a.txt"]


@pytest.mark.unit
def test_symlinked_directory_is_followed(tmp_path: Path) -> None:
    write_files(tmp_path, "real/a.txt")
    (tmp_path / "alias").symlink_to(tmp_path / "real", target_is_directory=True)

    rels = [r.rel for r in walk(tmp_path).records]

    assert rels == ["alias", "alias/a.txt", "real", "real/a.txt"]


@pytest.mark.unit
def test_broken_symlink_is_skipped(tmp_path: Path) -> None:
    write_files(tmp_path, "ok.txt")
    (tmp_path / "dangling").symlink_to(tmp_path / "missing")

    report = walk(tmp_path)

    assert [r.rel for r in report.records] == ["ok.txt"]
    assert len(report.diagnostics) == 1
    diag = report.diagnostics[0]
    assert isinstance(diag, PathUnreadableError)
    assert diag.reason == "broken symlink"


@pytest.mark.unit
@pytest.mark.skipif(not hasattr(os, "geteuid") or os.geteuid() == 0, reason="root ignores permissions")
def test_unreadable_directory_is_skipped(tmp_path: Path) -> None:
    write_files(tmp_path, "locked/secret.txt", "open/a.txt")
    locked = tmp_path / "locked"
    locked.chmod(0)
    try:
        report = walk(tmp_path)
    finally:
        locked.chmod(0o755)

    assert [r.rel for r in report.records] == ["open", "open/a.txt"]
    assert report.skipped_counts() == {"PathUnreadable": 1}


@pytest.mark.unit
def test_non_utf8_name_is_skipped(tmp_path: Path) -> None:
    write_files(tmp_path, "good.txt")
    try:
        (tmp_path / os.fsdecode(b"bad\xff.txt")).write_text("x", encoding="utf-8")
    except (OSError, UnicodeError):
        pytest.skip("filesystem refuses non UTF-8 names")

    report = walk(tmp_path)

    assert [r.rel for r in report.records] == ["good.txt"]
    assert report.skipped_counts() == {"PathUnreadable": 1}


@pytest.mark.unit
def test_max_files_stops_early(tmp_path: Path) -> None:
    write_files(tmp_path, "a.txt", "b.txt", "c.txt")

    report = walk(tmp_path, max_files=2)

    assert [r.rel for r in report.records] == ["a.txt", "b.txt"]
    assert report.truncated
    assert "listing truncated" in summarize_skipped(report.skipped_counts(), truncated=report.truncated)


@pytest.mark.unit
def test_max_files_not_reached(tmp_path: Path) -> None:
    write_files(tmp_path, "a.txt", "b.txt")

    report = walk(tmp_path, max_files=2)

    assert len(report.records) == 2  # noqa: PLR2004
    assert not report.truncated
    assert summarize_skipped(report.skipped_counts(), truncated=report.truncated) == ""


@pytest.mark.unit
def test_max_files_counts_only_listed_files(tmp_path: Path) -> None:
    write_files(tmp_path, "a.txt", "b.py", "c.txt")

    report = walk(tmp_path, max_files=1, include=["*.py"])
    listed = [r.rel for r in report.records if r.decision.include_in_listing]

    assert listed == ["b.py"]
    assert not report.truncated


@pytest.mark.unit
def test_walk_covers_roots_in_order(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    write_files(first, "z.txt")
    write_files(second, "a.txt")
    resolver = IgnoreResolver.build([second, first], FilterConfig())

    report = PathWalker(resolver).walk()

    assert [r.root for r in report.records] == [second, first]
    assert [r.rel for r in report.records_for(first)] == ["z.txt"]


@pytest.mark.unit
def test_summarize_skipped() -> None:
    assert summarize_skipped({}) == ""
    assert summarize_skipped({"SymlinkCycle": 1, "PathUnreadable": 2}) == (
        "Skipped 3 entries (PathUnreadable=2, SymlinkCycle=1)"
    )
    assert summarize_skipped({"PathUnreadable": 1}, truncated=True) == (
        "Skipped 1 entries (PathUnreadable=1); file limit reached, listing truncated"
    )


@pytest.mark.unit
def test_nested_root_is_walked_only_under_its_own_rules(tmp_path: Path) -> None:
    outer = tmp_path / "outer"
    inner = outer / "inner"
    write_files(outer, "b.txt", "inner/a.txt", "inner/keep.py")
    (inner / ".promptignore").write_text("*.txt\n", encoding="utf-8")
    resolver = IgnoreResolver.build([outer, inner], FilterConfig())

    report = PathWalker(resolver).walk()

    assert [r.rel for r in report.records_for(outer)] == ["b.txt"]
    listed = [r.rel for r in report.records_for(inner) if r.decision.include_in_listing]
    assert listed == [".promptignore", "keep.py"]
    for record in report.records:
        assert resolver.decide(record.path, record.kind) == record.decision
