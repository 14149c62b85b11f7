"""Tests for the research CLI."""

import functools
import json

import pytest
from click.testing import CliRunner

from conftest import NOW, blob, tree_item
from ghcontent import GitHubClient
from research import cli as cli_module

SHA = "a" * 40


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, fake, tmp_path, monkeypatch):
    monkeypatch.setattr(
        cli_module,
        "GitHubClient",
        functools.partial(GitHubClient, transport=fake.transport),
    )
    monkeypatch.chdir(tmp_path)
    storage = str(tmp_path / "storage.json")

    def run(*args):
        return runner.invoke(cli_module.cli, ["--storage", storage, *args])

    return run


@pytest.fixture
def repo(fake):
    fake.add_repo(
        "acme",
        "docs",
        "main",
        SHA,
        [tree_item("notes"), blob("notes/intro.md"), blob("notes/logo.png"), blob("index.md")],
    )
    fake.add("/repos/acme/docs/contents/notes/intro.md", content="# Intro\n")
    fake.add("/repos/acme/docs/contents/notes/logo.png", content=b"\x89PNG")
    return fake


def test_config_set_and_show(invoke):
    result = invoke("config", "set", "--url", "https://github.com/acme/docs/tree/dev")
    assert result.exit_code == 0, result.output
    assert "acme/docs@dev" in result.output

    result = invoke("config", "show")
    assert "https://github.com/acme/docs" in result.output
    assert "Branch:     dev" in result.output
    assert "Token:      not set" in result.output


def test_tree(invoke, repo):
    invoke("config", "set", "--owner", "acme", "--repo", "docs")

    result = invoke("tree")

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ["notes/", "  intro.md", "  logo.png", "index.md"]


def test_tree_of_empty_repository(invoke, fake):
    invoke("config", "set", "--owner", "acme", "--repo", "empty")

    result = invoke("tree")

    assert result.exit_code == 0
    assert "No items found." in result.output


def test_search(invoke, repo):
    invoke("config", "set", "--owner", "acme", "--repo", "docs")

    result = invoke("search", "INTRO")

    assert result.output.splitlines() == ["notes/intro.md"]


def test_show_markdown(invoke, repo):
    invoke("config", "set", "--owner", "acme", "--repo", "docs")

    result = invoke("show", "/research/notes/intro.md")

    assert result.exit_code == 0, result.output
    assert "# Intro" in result.output


def test_show_image_to_file(invoke, repo, tmp_path):
    invoke("config", "set", "--owner", "acme", "--repo", "docs")
    out = tmp_path / "logo.png"

    result = invoke("show", "/research/notes/logo.png", "-o", str(out))

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == b"\x89PNG"
    assert "image/png" in result.output


def test_rate_limit_is_reported(invoke, fake):
    fake.add(
        "/repos/acme/docs/branches/main",
        status=403,
        headers={"X-RateLimit-Reset": str(int(NOW + 600))},
    )
    invoke("config", "set", "--owner", "acme", "--repo", "docs")

    result = invoke("tree")

    assert result.exit_code == 1
    assert "API rate limit exceeded. Try again in" in result.output


def test_topics_file(invoke, repo, tmp_path):
    topics = tmp_path / "topics.json"
    topics.write_text(
        json.dumps([
            {
                "id": 1,
                "title": "Docs",
                "path": "/research/docs",
                "repo_config": {"owner": "acme", "repo_name": "docs"},
            }
        ]),
        encoding="utf-8",
    )

    result = invoke("--topics", str(topics), "search", "index", "/research/docs")

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ["index.md"]


def test_unknown_location(invoke):
    result = invoke("tree", "/elsewhere")

    assert result.exit_code == 1
    assert "No topic matches /elsewhere" in result.output


def test_cache_clear(invoke, repo):
    invoke("config", "set", "--owner", "acme", "--repo", "docs")
    invoke("tree")

    result = invoke("cache", "clear")

    assert "Removed 1 cached entries" in result.output
