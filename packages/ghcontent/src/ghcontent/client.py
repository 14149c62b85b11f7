"""GitHub content client."""

import logging
import math
import os
import re
import subprocess
import time
from typing import Any, Callable
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .cache import CacheKey, CacheStore
from .exceptions import (
    ConfigurationInvalid,
    ContentError,
    NotFound,
    RateLimited,
    RequestFailed,
    Unauthorized,
)
from .models import FileMetadata, RepositoryConfig, TreeEntry

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds

# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
)

JSON_ACCEPT = "application/vnd.github.v3+json"
RAW_ACCEPT = "application/vnd.github.v3.raw"

# Extensions surfaced in the tree; everything else is dropped from listings.
TREE_EXTENSIONS = frozenset({
    "md", "txt", "pdf",
    "png", "jpg", "jpeg", "gif", "svg", "webp",
    "js", "jsx", "ts", "tsx", "py", "json", "css", "html",
    "ipynb",
})

_COMMIT_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


def get_token_from_gh_cli() -> str | None:
    """Return the token ``gh auth token`` prints, or None when gh is unusable."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Resolve the global GitHub token.

    Priority: explicit ``token``, then ``GH_TOKEN`` / ``GITHUB_TOKEN``,
    then ``gh auth token`` when ``use_gh_cli`` is set.
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


def create_retry_decorator(max_retries: int = DEFAULT_MAX_RETRIES):
    """Create a retry decorator with specified max retries."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def is_commit_sha(ref: str) -> bool:
    """True when ``ref`` is a full commit id rather than a moving branch name."""
    return bool(_COMMIT_SHA_RE.match(ref))


def is_listed(entry: TreeEntry) -> bool:
    """Directories always; files only with an extension in ``TREE_EXTENSIONS``."""
    return entry.kind == "directory" or entry.extension in TREE_EXTENSIONS


def scope_to_sub_path(entries: list[TreeEntry], sub_path: str) -> list[TreeEntry]:
    """Keep entries below ``sub_path`` and make their paths relative to it."""
    if not sub_path:
        return list(entries)
    prefix = sub_path + "/"
    return [
        TreeEntry(path=e.path[len(prefix):], kind=e.kind)
        for e in entries
        if e.path.startswith(prefix)
    ]


class GitHubClient:
    """
    Async GitHub REST client for browsing repository content.

    Every operation takes the :class:`RepositoryConfig` explicitly. Tree,
    content and metadata responses go through the optional
    :class:`CacheStore`; binary blobs are never cached.
    """

    BASE_URL = "https://api.github.com"
    RAW_BASE_URL = "https://raw.githubusercontent.com"
    USER_AGENT = "research-browser"

    def __init__(
        self,
        cache: CacheStore | None = None,
        base_url: str | None = None,
        raw_base_url: str | None = None,
        timeout: float = 30.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize GitHub client.

        Args:
            cache: Response cache (no caching when omitted)
            base_url: Custom API base URL (defaults to GitHub API)
            raw_base_url: Custom raw content CDN URL
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts for transport errors
            transport: httpx transport override, used by tests
            clock: Wall clock in epoch seconds, used for rate-limit estimates
        """
        self.cache = cache
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.raw_base_url = (raw_base_url or self.RAW_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.clock = clock
        logger.info("GitHub client ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    # ============ HTTP plumbing ============

    def _headers(self, config: RepositoryConfig, accept: str = JSON_ACCEPT) -> dict[str, str]:
        headers = {"Accept": accept, "User-Agent": self.USER_AGENT}
        if config.access_token:
            headers["Authorization"] = f"token {config.access_token}"
        return headers

    def _repo_url(self, config: RepositoryConfig, suffix: str) -> str:
        return f"{self.base_url}/repos/{config.owner}/{config.repo_name}{suffix}"

    async def _get(
        self,
        url: str,
        headers: dict[str, str],
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with retry on transport errors. Status codes are left to the caller."""

        @create_retry_decorator(self.max_retries)
        async def do_request() -> httpx.Response:
            logger.debug("Request: GET %s", url)
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers=headers, params=params)
            logger.debug("Response: GET %s (status=%d)", url, response.status_code)
            return response

        return await do_request()

    def _rate_limit_minutes(self, response: httpx.Response) -> int | None:
        reset = response.headers.get("x-ratelimit-reset")
        if reset is None:
            return None
        try:
            reset_at = float(reset)
        except ValueError:
            logger.debug("Unparsable rate limit reset header: %r", reset)
            return None
        if not math.isfinite(reset_at):
            logger.debug("Non-finite rate limit reset header: %r", reset)
            return None
        return max(0, math.ceil((reset_at - self.clock()) / 60))

    def _raise_for_status(self, response: httpx.Response, what: str) -> None:
        """Translate a non-2xx response into the content error taxonomy."""
        status = response.status_code
        if response.is_success:
            return
        if status == 401:
            raise Unauthorized(f"Unauthorized or private repository: {what}")
        if status == 403:
            minutes = self._rate_limit_minutes(response)
            logger.warning("Rate limited on %s (retry in %s minutes)", what, minutes)
            raise RateLimited(f"API rate limit exceeded or access denied: {what}", minutes)
        if status == 404:
            raise NotFound(what)
        raise RequestFailed(f"Failed to fetch {what} (HTTP {status})", status)

    def _require_complete(self, config: RepositoryConfig) -> None:
        if not config.is_complete:
            raise ConfigurationInvalid("Repository configuration is missing owner or repository name")

    def _cache_get(self, key: CacheKey) -> Any | None:
        return self.cache.get(key) if self.cache is not None else None

    def _cache_set(self, key: CacheKey, value: Any) -> None:
        if self.cache is not None:
            self.cache.set(key, value)

    # ============ Tree ============

    async def _resolve_commit(self, config: RepositoryConfig) -> str | None:
        """Branch name to commit SHA; None when the branch or repo is missing."""
        if is_commit_sha(config.branch):
            return config.branch
        logger.debug("Resolving branch %s for %s/%s", config.branch, config.owner, config.repo_name)
        response = await self._get(
            self._repo_url(config, f"/branches/{config.branch}"),
            self._headers(config),
        )
        if response.status_code == 404:
            logger.info("Branch or repository not found: %s/%s@%s", config.owner, config.repo_name, config.branch)
            return None
        self._raise_for_status(response, f"branch {config.branch}")
        try:
            return response.json()["commit"]["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise RequestFailed(f"Malformed branch response for {config.branch}", response.status_code) from e

    async def _fetch_listing(self, config: RepositoryConfig) -> list[TreeEntry] | None:
        sha = await self._resolve_commit(config)
        if sha is None:
            return None
        response = await self._get(
            self._repo_url(config, f"/git/trees/{sha}"),
            self._headers(config),
            params={"recursive": 1},
        )
        if response.status_code == 404:
            logger.info("Tree not found for %s/%s@%s", config.owner, config.repo_name, sha)
            return None
        self._raise_for_status(response, f"tree {sha}")
        try:
            data = response.json()
            entries = [TreeEntry.from_github(item) for item in data.get("tree", [])]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RequestFailed(f"Malformed tree response for {sha}", response.status_code) from e
        if data.get("truncated"):
            logger.warning("Tree listing for %s/%s was truncated by GitHub", config.owner, config.repo_name)
        return [e for e in entries if is_listed(e)]

    async def fetch_tree(self, config: RepositoryConfig) -> list[TreeEntry]:
        """
        Fetch the recursive file tree for the configured branch.

        Args:
            config: Repository configuration

        Returns:
            Flat list of directories and displayable files, empty when the
            repository or branch does not exist
        """
        self._require_complete(config)
        logger.info("Fetching tree: %s/%s ref=%s", config.owner, config.repo_name, config.branch)
        key = CacheKey.tree(config.owner, config.repo_name, config.branch)
        cached = self._cache_get(key)
        if cached is not None:
            entries = [TreeEntry.model_validate(item) for item in cached]
        else:
            entries = await self._fetch_listing(config)
            if entries is None:
                return []
            self._cache_set(key, [e.model_dump() for e in entries])
        scoped = scope_to_sub_path(entries, config.sub_path)
        logger.debug("Tree fetched: %d entries", len(scoped))
        return scoped

    # ============ Raw content ============

    async def fetch_raw_via_api(self, config: RepositoryConfig, path: str) -> httpx.Response:
        """Tier 1: authenticated contents endpoint with the raw media type."""
        full_path = config.full_path(path)
        response = await self._get(
            self._repo_url(config, f"/contents/{quote(full_path, safe='/')}"),
            self._headers(config, accept=RAW_ACCEPT),
            params={"ref": config.branch},
        )
        self._raise_for_status(response, full_path)
        return response

    async def fetch_raw_via_cdn(self, config: RepositoryConfig, path: str) -> httpx.Response:
        """Tier 2: unauthenticated raw CDN, public repositories only."""
        full_path = config.full_path(path)
        url = (
            f"{self.raw_base_url}/{config.owner}/{config.repo_name}"
            f"/{config.branch}/{quote(full_path, safe='/')}"
        )
        response = await self._get(url, {"User-Agent": self.USER_AGENT})
        self._raise_for_status(response, full_path)
        return response

    async def _fetch_raw(self, config: RepositoryConfig, path: str) -> httpx.Response:
        """
        Fetch raw bytes through the API, falling back to the CDN.

        When both tiers fail, an auth or rate-limit error from the API wins
        over the CDN's error since the CDN cannot see private content.
        """
        try:
            return await self.fetch_raw_via_api(config, path)
        except (ContentError, httpx.TransportError) as primary:
            logger.warning("API fetch failed for %s (%s), trying raw URL fallback", path, primary)
            try:
                return await self.fetch_raw_via_cdn(config, path)
            except (ContentError, httpx.TransportError) as fallback:
                logger.error("Raw URL fallback failed for %s: %s", path, fallback)
                if isinstance(primary, (Unauthorized, RateLimited)):
                    raise primary from fallback
                raise

    async def fetch_file_content(self, config: RepositoryConfig, path: str) -> str:
        """
        Fetch a text file.

        Args:
            config: Repository configuration
            path: File path relative to the tree root

        Returns:
            Decoded file text
        """
        self._require_complete(config)
        full_path = config.full_path(path)
        logger.info("Fetching file content: %s/%s path=%s", config.owner, config.repo_name, full_path)
        key = CacheKey.content(config.owner, config.repo_name, config.branch, full_path)
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        response = await self._fetch_raw(config, path)
        text = response.content.decode("utf-8", errors="replace")
        logger.debug("File content fetched: %s (%d chars)", full_path, len(text))
        self._cache_set(key, text)
        return text

    async def fetch_file_blob(self, config: RepositoryConfig, path: str) -> bytes:
        """Fetch a binary file (images, PDFs). Not cached."""
        self._require_complete(config)
        logger.info("Fetching file blob: %s/%s path=%s", config.owner, config.repo_name, path)
        response = await self._fetch_raw(config, path)
        logger.debug("File blob fetched: %s (%d bytes)", path, len(response.content))
        return response.content

    # ============ Metadata ============

    async def fetch_file_metadata(self, config: RepositoryConfig, path: str) -> FileMetadata | None:
        """
        Fetch the latest commit touching ``path``.

        Metadata is decoration: every failure, rate limiting included, is
        logged and reported as ``None``.
        """
        if not config.is_complete:
            logger.debug("Skipping metadata for incomplete configuration")
            return None
        full_path = config.full_path(path)
        key = CacheKey.metadata(config.owner, config.repo_name, full_path)
        cached = self._cache_get(key)
        if cached is not None:
            try:
                return FileMetadata.model_validate(cached)
            except ValueError as e:
                logger.debug("Ignoring unreadable cached metadata for %s: %s", full_path, e)

        try:
            response = await self._get(
                self._repo_url(config, "/commits"),
                self._headers(config),
                params={"path": full_path, "per_page": 1},
            )
            self._raise_for_status(response, f"commits for {full_path}")
            commits = response.json()
            if not commits:
                logger.debug("No commits found for %s", full_path)
                return None
            metadata = FileMetadata.from_commit(commits[0])
        except Exception as e:
            logger.warning("Failed to fetch metadata for %s: %s", full_path, e)
            return None

        self._cache_set(key, metadata.model_dump(mode="json"))
        return metadata
