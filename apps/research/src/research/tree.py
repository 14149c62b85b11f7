"""Flat tree listing to nested hierarchy."""

import logging
from typing import Iterable, Literal

from pydantic import BaseModel, Field

from ghcontent import TreeEntry

logger = logging.getLogger(__name__)


class TreeNode(BaseModel):
    """Node of the navigable hierarchy."""

    path: str
    name: str
    kind: Literal["file", "directory"]
    children: list["TreeNode"] = Field(default_factory=list)

    @property
    def is_directory(self) -> bool:
        return self.kind == "directory"


def sort_key(node: TreeNode) -> tuple[int, str, str]:
    """Directories first, then case-insensitive name, then exact name."""
    return (0 if node.is_directory else 1, node.name.casefold(), node.name)


def _sort(nodes: list[TreeNode]) -> None:
    nodes.sort(key=sort_key)
    for node in nodes:
        if node.children:
            _sort(node.children)


def build_tree(entries: Iterable[TreeEntry]) -> list[TreeNode]:
    """
    Build the hierarchy from a flat listing.

    Entries may arrive in any order, so every node is created before any is
    attached. A node whose parent is absent from the listing becomes a root.
    """
    entries = list(entries)
    nodes: dict[str, TreeNode] = {
        entry.path: TreeNode(path=entry.path, name=entry.name, kind=entry.kind)
        for entry in entries
    }

    roots: list[TreeNode] = []
    for entry in entries:
        node = nodes[entry.path]
        parts = entry.path.split("/")
        if len(parts) == 1:
            roots.append(node)
            continue
        parent = nodes.get("/".join(parts[:-1]))
        if parent is not None:
            parent.children.append(node)
        else:
            logger.debug("Orphaned entry promoted to root: %s", entry.path)
            roots.append(node)

    _sort(roots)
    return roots


def flatten_files(entries: Iterable[TreeEntry]) -> list[TreeEntry]:
    """Files only, in listing order."""
    return [entry for entry in entries if entry.kind == "file"]


def count_nodes(nodes: list[TreeNode]) -> int:
    return sum(1 + count_nodes(node.children) for node in nodes)


def find_node(nodes: list[TreeNode], path: str) -> TreeNode | None:
    path = path.strip("/")
    for node in nodes:
        if node.path == path:
            return node
        if node.children and path.startswith(node.path + "/"):
            found = find_node(node.children, path)
            if found is not None:
                return found
    return None


def iter_lines(nodes: list[TreeNode], depth: int = 0) -> Iterable[str]:
    """Indented text rendering, one node per line."""
    for node in nodes:
        suffix = "/" if node.is_directory else ""
        yield f"{'  ' * depth}{node.name}{suffix}"
        yield from iter_lines(node.children, depth + 1)
