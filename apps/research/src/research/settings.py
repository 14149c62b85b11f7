"""Global repository settings persisted in local storage."""

import json
import logging
from urllib.parse import urlparse

from ghcontent import CacheStore, LocalStorage, RepositoryConfig

logger = logging.getLogger(__name__)

CONFIG_KEY = "gh_config_v1"

DEFAULT_REPO_CONFIG = RepositoryConfig(
    owner="thameem",
    repo_name="research",
    branch="main",
)


def get_repo_config(storage: LocalStorage) -> RepositoryConfig:
    """Saved configuration, or the default when none is stored or it is unreadable."""
    raw = storage.get_item(CONFIG_KEY)
    if raw is None:
        return DEFAULT_REPO_CONFIG.model_copy()
    try:
        return RepositoryConfig.model_validate(json.loads(raw))
    except ValueError as e:
        logger.warning("Ignoring unreadable saved configuration: %s", e)
        return DEFAULT_REPO_CONFIG.model_copy()


def save_repo_config(
    storage: LocalStorage,
    config: RepositoryConfig,
    cache: CacheStore | None = None,
) -> None:
    """
    Persist ``config`` and clear cached responses.

    The cache sweep keeps content from a previously configured repository
    from being served under the new one.
    """
    storage.set_item(CONFIG_KEY, config.model_dump_json())
    logger.info("Saved repository configuration: %s/%s@%s", config.owner, config.repo_name, config.branch)
    if cache is not None:
        cache.invalidate_by_prefix()


def parse_repo_url(url: str, current: RepositoryConfig) -> RepositoryConfig:
    """
    Fill owner, repo and branch from a github.com URL.

    The branch is taken only from ``/tree/<branch>`` or ``/blob/<branch>``
    URLs. Anything that is not a github.com repository URL returns
    ``current`` unchanged.
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return current
    if parsed.hostname != "github.com":
        return current
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        return current

    branch = current.branch
    if len(parts) >= 4 and parts[2] in ("tree", "blob"):
        branch = parts[3]
    return RepositoryConfig(
        owner=parts[0],
        repo_name=parts[1],
        branch=branch,
        sub_path=current.sub_path,
        access_token=current.access_token,
    )
