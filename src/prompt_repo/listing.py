from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, computed_field

from prompt_repo.config import EntryKind, SizeCategory
from prompt_repo.file_manipulation import read_file_bytes
from prompt_repo.tree import root_label

if TYPE_CHECKING:
    from collections.abc import Iterable

    from prompt_repo.walker import PathRecord


class FileListingEntry(BaseModel):
    """Metadata for a file included in the listing.

    Content is not loaded here; ``read_bytes`` reads it on demand.

    Attributes:
        path: Absolute path to the file on disk.
        rel: POSIX path relative to ``root``.
        root: The root the file was found under.
        root_label: Display name of the root.
        kind: Entry kind, always a file for listed entries.
        size: File size in bytes.
        max_file_size: Size above which the file counts as large; None means no limit.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to its root")
    root: Path = Field(..., description="Root directory (or file) the entry belongs to")
    root_label: str = Field(..., description="Display name of the root")
    kind: EntryKind = Field(default=EntryKind.FILE, description="Entry kind")
    size: int = Field(default=0, ge=0, description="File size in bytes")
    max_file_size: int | None = Field(
        default=None,
        description="Maximum file size in bytes before the file counts as large; None means no limit",
    )

    @computed_field
    @property
    def extension(self) -> str:
        """Extension without the dot, empty when there is none."""
        return self.path.suffix.removeprefix(".")

    @computed_field
    @property
    def is_too_big(self) -> bool:
        if self.max_file_size is None:
            return False
        return self.size > self.max_file_size

    @computed_field
    @property
    def size_category(self) -> SizeCategory:
        if self.size == 0:
            return SizeCategory.EMPTY
        if self.is_too_big:
            return SizeCategory.LARGE
        return SizeCategory.NORMAL

    def display_path(self, *, relative: bool = False) -> str:
        """Path shown in the prompt.

        Args:
            relative (bool): show ``<root label>/<rel>`` instead of the absolute path

        Returns:
            str: the path to display
        """
        if not relative:
            return str(self.path)
        if self.path == self.root:
            return self.rel
        return f"{self.root_label}/{self.rel}"

    def read_bytes(self) -> bytes | None:
        """Read the file content, or None if it vanished since the walk.

        Raises:
            PathUnreadableError: if the file exists but cannot be read
        """
        return read_file_bytes(self.path)


def build_listing(records: Iterable[PathRecord], *, max_bytes: int | None = None) -> list[FileListingEntry]:
    """Keep listed files, in walk order.

    Args:
        records (Iterable[PathRecord]): the walker's records
        max_bytes (int | None): size above which a file is flagged as large

    Returns:
        list[FileListingEntry]: the ordered listing
    """
    return [
        FileListingEntry(
            path=rec.path,
            rel=rec.rel,
            root=rec.root,
            root_label=root_label(rec.root),
            kind=rec.kind,
            size=rec.size,
            max_file_size=max_bytes,
        )
        for rec in records
        if rec.kind is EntryKind.FILE and rec.decision.include_in_listing
    ]
