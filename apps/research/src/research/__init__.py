"""Research area: repository tree navigation and file viewing."""

from .navigation import LoadStatus, NavigationState, search_files
from .outline import Heading, extract_outline
from .settings import DEFAULT_REPO_CONFIG, get_repo_config, parse_repo_url, save_repo_config
from .topics import Topic, find_topic, load_topics
from .tree import TreeNode, build_tree, count_nodes, find_node, flatten_files
from .viewer import (
    BlobHandle,
    ContentResolver,
    FileKind,
    ResolvedFile,
    ResolverState,
    classify,
    decode_notebook,
)

__all__ = [
    "BlobHandle",
    "ContentResolver",
    "DEFAULT_REPO_CONFIG",
    "FileKind",
    "Heading",
    "LoadStatus",
    "NavigationState",
    "ResolvedFile",
    "ResolverState",
    "Topic",
    "TreeNode",
    "build_tree",
    "classify",
    "count_nodes",
    "decode_notebook",
    "extract_outline",
    "find_node",
    "find_topic",
    "flatten_files",
    "get_repo_config",
    "load_topics",
    "parse_repo_url",
    "save_repo_config",
    "search_files",
]
