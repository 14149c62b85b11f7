"""Tests for building the navigable hierarchy from flat listings."""

import random

import pytest

from ghcontent import TreeEntry
from research.tree import build_tree, count_nodes, find_node, flatten_files, iter_lines


def entries(*specs: str) -> list[TreeEntry]:
    """``"dir/"`` is a directory, anything else a file."""
    return [
        TreeEntry(path=s.rstrip("/"), kind="directory" if s.endswith("/") else "file")
        for s in specs
    ]


LISTING = entries(
    "docs/",
    "docs/guide.md",
    "docs/api/",
    "docs/api/client.py",
    "docs/Advanced.md",
    "zeta.md",
    "alpha/",
    "alpha/b.txt",
    "README.md",
)


def walk(nodes):
    for node in nodes:
        yield node
        yield from walk(node.children)


def assert_sorted(nodes):
    kinds = [n.kind for n in nodes]
    assert kinds == sorted(kinds, key=lambda k: k != "directory")
    for group in ("directory", "file"):
        names = [n.name for n in nodes if n.kind == group]
        assert names == sorted(names, key=lambda n: (n.casefold(), n))
    for node in nodes:
        assert_sorted(node.children)


class TestBuildTree:
    def test_nests_and_orders(self):
        tree = build_tree(LISTING)

        assert list(iter_lines(tree)) == [
            "alpha/",
            "  b.txt",
            "docs/",
            "  api/",
            "    client.py",
            "  Advanced.md",
            "  guide.md",
            "README.md",
            "zeta.md",
        ]

    def test_names_are_final_segments(self):
        for node in walk(build_tree(LISTING)):
            assert node.name == node.path.split("/")[-1]

    def test_directories_first_then_alphabetical(self):
        assert_sorted(build_tree(LISTING))

    def test_node_count_matches_input(self):
        assert count_nodes(build_tree(LISTING)) == len(LISTING)

    def test_deterministic(self):
        assert build_tree(LISTING) == build_tree(LISTING)

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_input_order_does_not_matter(self, seed):
        shuffled = list(LISTING)
        random.Random(seed).shuffle(shuffled)

        assert build_tree(shuffled) == build_tree(LISTING)

    def test_child_listed_before_parent(self):
        tree = build_tree(entries("a/b/c.md", "a/b/", "a/"))

        assert [n.path for n in walk(tree)] == ["a", "a/b", "a/b/c.md"]

    def test_orphan_becomes_root(self):
        tree = build_tree(entries("missing/parent/file.md", "top.md"))

        assert [n.path for n in tree] == ["missing/parent/file.md", "top.md"]
        assert tree[0].name == "file.md"

    def test_case_insensitive_with_exact_tiebreak(self):
        tree = build_tree(entries("b.md", "a.md", "A.md", "Z/"))

        assert [n.name for n in tree] == ["Z", "A.md", "a.md", "b.md"]

    def test_files_have_no_children(self):
        for node in walk(build_tree(LISTING)):
            if node.kind == "file":
                assert node.children == []

    def test_empty(self):
        assert build_tree([]) == []


class TestHelpers:
    def test_flatten_files_keeps_listing_order(self):
        assert [e.path for e in flatten_files(LISTING)] == [
            "docs/guide.md",
            "docs/api/client.py",
            "docs/Advanced.md",
            "zeta.md",
            "alpha/b.txt",
            "README.md",
        ]

    def test_find_node(self):
        tree = build_tree(LISTING)

        assert find_node(tree, "docs/api/client.py").name == "client.py"
        assert find_node(tree, "/docs/api/").kind == "directory"
        assert find_node(tree, "docs/nope.md") is None
