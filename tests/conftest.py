"""Pytest configuration and shared fakes."""

import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

# Make both packages importable without an install.
root = Path(__file__).parent.parent
sys.path.insert(0, str(root / "packages" / "ghcontent" / "src"))
sys.path.insert(0, str(root / "apps" / "research" / "src"))

from ghcontent import CacheStore, GitHubClient, LocalStorage, RepositoryConfig  # noqa: E402

API_HOST = "api.github.com"
RAW_HOST = "raw.githubusercontent.com"
NOW = 1_700_000_000.0


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitHub:
    """Routes requests by (host, path) and records every request seen."""

    def __init__(self):
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        path: str,
        status: int = 200,
        json: Any = None,
        content: bytes | str | None = None,
        headers: dict[str, str] | None = None,
        host: str = API_HOST,
    ) -> None:
        if json is not None:
            response = httpx.Response(status, json=json, headers=headers)
        else:
            response = httpx.Response(status, content=content or b"", headers=headers)
        self.routes[(host, path)] = response

    def add_repo(self, owner: str, repo: str, branch: str, sha: str, tree: list[dict]) -> None:
        self.add(f"/repos/{owner}/{repo}/branches/{branch}", json={"name": branch, "commit": {"sha": sha}})
        self.add(f"/repos/{owner}/{repo}/git/trees/{sha}", json={"sha": sha, "tree": tree, "truncated": False})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.url.host, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(
            response.status_code,
            content=response.content,
            headers=response.headers,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def blob(path: str) -> dict:
    return {"path": path, "type": "blob", "mode": "100644", "sha": "b" * 40}


def tree_item(path: str) -> dict:
    return {"path": path, "type": "tree", "mode": "040000", "sha": "t" * 40}


def commit(sha: str = "c" * 40, author: str = "Ada", date: str = "2024-05-01T10:00:00Z") -> dict:
    return {
        "sha": sha,
        "html_url": f"https://github.com/acme/docs/commit/{sha}",
        "commit": {
            "author": {"name": author, "date": date},
            "committer": {"name": author, "date": date},
        },
        "author": {"login": author.lower(), "html_url": f"https://github.com/{author.lower()}"},
    }


@pytest.fixture(autouse=True)
def no_env_token(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return LocalStorage()


@pytest.fixture
def cache(storage, clock):
    return CacheStore(storage, clock=clock)


@pytest.fixture
def fake():
    return FakeGitHub()


@pytest.fixture
def client(fake, cache, clock):
    return GitHubClient(cache=cache, transport=fake.transport, clock=clock, max_retries=1)


@pytest.fixture
def config():
    return RepositoryConfig(owner="acme", repo_name="docs", branch="main")
