"""Research session state: active topic, tree and file search."""

import logging
from enum import Enum
from urllib.parse import unquote

import httpx

from ghcontent import (
    CacheStore,
    ContentError,
    GitHubClient,
    RepositoryConfig,
    TreeEntry,
    describe_error,
)

from .topics import Topic, find_topic
from .tree import TreeNode, build_tree, flatten_files

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 10


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def search_files(entries: list[TreeEntry], query: str, limit: int = SEARCH_RESULT_LIMIT) -> list[TreeEntry]:
    """Case-insensitive substring match on path or name, first ``limit`` hits."""
    needle = query.strip().lower()
    if not needle:
        return []
    hits: list[TreeEntry] = []
    for entry in entries:
        if needle in entry.path.lower() or needle in entry.name.lower():
            hits.append(entry)
            if len(hits) >= limit:
                break
    return hits


class NavigationState:
    """
    Holds what the research sidebar and search need for the active topic.

    A location with no matching topic means "no tree", not an error. Tree
    results from a load that a newer load superseded are discarded.
    """

    def __init__(
        self,
        client: GitHubClient,
        topics: list[Topic],
        global_token: str | None = None,
        cache: CacheStore | None = None,
    ):
        self.client = client
        self.topics = [t.model_copy(deep=True) for t in topics]
        self.global_token = global_token
        self.cache = cache if cache is not None else client.cache
        self.location: str | None = None
        self.topic: Topic | None = None
        self.config: RepositoryConfig | None = None
        self.tree: list[TreeNode] = []
        self.files: list[TreeEntry] = []
        self.status = LoadStatus.IDLE
        self.error: Exception | None = None
        self.error_message: str | None = None
        self._generation = 0

    def _clear(self) -> None:
        self.config = None
        self.tree = []
        self.files = []
        self.error = None
        self.error_message = None

    async def reload(self) -> None:
        """Fetch and rebuild the tree for the active topic (also the retry action)."""
        self._generation += 1
        generation = self._generation
        self._clear()

        if self.topic is None:
            self.status = LoadStatus.IDLE
            return

        config = self.topic.repo_config.with_token_fallback(self.global_token)
        self.config = config
        self.status = LoadStatus.LOADING
        logger.info("Loading tree for topic %s", self.topic.title)
        try:
            entries = await self.client.fetch_tree(config)
        except (ContentError, httpx.HTTPError) as e:
            if generation != self._generation:
                logger.debug("Discarding stale tree failure: %s", e)
                return
            logger.error("Failed to load research tree for %s/%s: %s", config.owner, config.repo_name, e)
            self.status = LoadStatus.FAILED
            self.error = e
            self.error_message = describe_error(e)
            return

        if generation != self._generation:
            logger.debug("Discarding stale tree for %s/%s", config.owner, config.repo_name)
            return
        self.files = flatten_files(entries)
        self.tree = build_tree(entries)
        self.status = LoadStatus.READY
        logger.debug("Tree ready: %d files", len(self.files))

    async def navigate(self, location: str) -> Topic | None:
        """Follow ``location``; reloads only when the active topic changes."""
        self.location = location
        topic = find_topic(self.topics, location)
        changed = (topic.id if topic else None) != (self.topic.id if self.topic else None)
        self.topic = topic
        if changed or self.status is LoadStatus.IDLE:
            await self.reload()
        return topic

    async def set_global_token(self, token: str | None) -> None:
        if token == self.global_token:
            return
        self.global_token = token
        await self.reload()

    async def update_topic_config(self, topic_id: str | int, config: RepositoryConfig) -> None:
        """Apply an edited repository configuration to a topic."""
        for topic in self.topics:
            if topic.id == topic_id:
                topic.repo_config = config.model_copy()
                break
        else:
            raise KeyError(topic_id)
        if self.cache is not None:
            self.cache.invalidate_by_prefix()
        if self.topic is not None and self.topic.id == topic_id:
            self.topic = next(t for t in self.topics if t.id == topic_id)
            await self.reload()

    def relative_path(self, location: str | None = None) -> str:
        """File path inside the active topic's repository for ``location``."""
        location = self.location if location is None else location
        if self.topic is None or location is None:
            return ""
        base = self.topic.path.rstrip("/")
        return unquote(location[len(base) + 1:]) if location.startswith(base + "/") else ""

    def search(self, query: str, limit: int = SEARCH_RESULT_LIMIT) -> list[TreeEntry]:
        return search_files(self.files, query, limit)
