"""Research topics: route prefixes bound to a content repository."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from ghcontent import RepositoryConfig

logger = logging.getLogger(__name__)


class Topic(BaseModel):
    """One research area, e.g. ``/research/machine-learning``."""

    id: str | int
    title: str
    path: str
    description: str = ""
    repo_config: RepositoryConfig = Field(default_factory=RepositoryConfig)

    def matches(self, location: str) -> bool:
        """True when ``location`` is this topic's route or lies below it."""
        base = self.path.rstrip("/")
        return location == base or location.startswith(base + "/")


def find_topic(topics: list[Topic], location: str) -> Topic | None:
    """The topic whose route prefixes ``location``; the longest route wins."""
    candidates = [t for t in topics if t.matches(location)]
    if not candidates:
        return None
    return max(candidates, key=lambda t: len(t.path.rstrip("/")))


def load_topics(path: str | Path) -> list[Topic]:
    """Load topics exported from the document store as a JSON list."""
    path = Path(path)
    logger.info("Loading topics from %s", path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    topics = [Topic.model_validate(item) for item in data]
    logger.debug("Loaded %d topics", len(topics))
    return topics
