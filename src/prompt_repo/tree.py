from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from prompt_repo.config import EntryKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from prompt_repo.walker import PathRecord

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
SPACE = "    "


@dataclass
class TreeNode:
    """A directory or file in the rendered tree view."""

    name: str
    is_dir: bool = True
    children: dict[str, TreeNode] = field(default_factory=dict)

    def child(self, name: str, *, is_dir: bool) -> TreeNode:
        """Return the child called ``name``, creating it if needed."""
        node = self.children.get(name)
        if node is None:
            node = TreeNode(name=name, is_dir=is_dir)
            self.children[name] = node
        return node

    def sorted_children(self) -> list[TreeNode]:
        """Directories first, then files, each in lexicographic order."""
        dirs = sorted((c for c in self.children.values() if c.is_dir), key=lambda c: c.name)
        files = sorted((c for c in self.children.values() if not c.is_dir), key=lambda c: c.name)
        return [*dirs, *files]


def root_label(root: Path) -> str:
    return root.name or str(root)


def build_tree(root: Path, records: Iterable[PathRecord]) -> TreeNode:
    """Build the tree of one root from its walk records.

    Only tree-visible files and tree-visible empty directories become nodes.
    Their ancestors are created on demand, so a directory whose children were
    all filtered out never shows up.

    Args:
        root (Path): the root the records belong to
        records (Iterable[PathRecord]): records of that root, in any order

    Returns:
        TreeNode: the root node, labelled with the root's name
    """
    top = TreeNode(name=root_label(root))
    for rec in records:
        if rec.root != root or not rec.decision.include_in_tree:
            continue
        if rec.kind is EntryKind.FILE:
            if rec.path == root:
                # a file root is its own single leaf
                top.is_dir = False
                continue
            *parents, leaf = rec.parts
            is_leaf_dir = False
        elif rec.is_empty_dir:
            *parents, leaf = rec.parts
            is_leaf_dir = True
        else:
            continue
        cur = top
        for part in parents:
            cur = cur.child(part, is_dir=True)
        cur.child(leaf, is_dir=is_leaf_dir)
    return top


def render_tree_lines(node: TreeNode) -> list[str]:
    """Draw a tree with box connectors.

    Args:
        node (TreeNode): the root node; its label is printed as is

    Returns:
        list[str]: one line per node, directories suffixed with ``/``
    """
    lines: list[str] = [node.name]
    # (node, prefix, is_last) entries, popped in display order
    stack: list[tuple[TreeNode, str, bool]] = []
    children = node.sorted_children()
    stack.extend((c, "", i == len(children) - 1) for i, c in reversed(list(enumerate(children))))
    while stack:
        cur, prefix, last = stack.pop()
        branch = LAST_BRANCH if last else BRANCH
        lines.append(prefix + branch + cur.name + ("/" if cur.is_dir else ""))
        if cur.children:
            ext = SPACE if last else PIPE
            kids = cur.sorted_children()
            stack.extend((c, prefix + ext, i == len(kids) - 1) for i, c in reversed(list(enumerate(kids))))
    return lines


def render_tree(node: TreeNode) -> str:
    return "\n".join(render_tree_lines(node))


def render_trees(nodes: Sequence[TreeNode]) -> str:
    """Render one tree per root, separated by a blank line."""
    return "\n\n".join(render_tree(n) for n in nodes)
