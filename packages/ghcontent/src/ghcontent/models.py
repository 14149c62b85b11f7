"""GitHub content data models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator


class RepositoryConfig(BaseModel):
    """One content source: a repository, a ref and an optional sub-directory."""

    owner: str = ""
    repo_name: str = ""
    branch: str = "main"
    sub_path: str = ""
    access_token: str | None = None

    @field_validator("repo_name")
    @classmethod
    def strip_git_suffix(cls, value: str) -> str:
        value = value.strip()
        return value[: -len(".git")] if value.endswith(".git") else value

    @field_validator("sub_path")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        return value.strip().strip("/")

    @property
    def is_complete(self) -> bool:
        return bool(self.owner.strip() and self.repo_name)

    def with_token_fallback(self, token: str | None) -> "RepositoryConfig":
        """Return a copy using ``token`` when this config carries none."""
        return self.model_copy(
            update={"access_token": self.access_token or token or None}
        )

    def full_path(self, path: str) -> str:
        """Join a tree-relative path onto ``sub_path``."""
        path = path.strip("/")
        if not self.sub_path:
            return path
        return f"{self.sub_path}/{path}" if path else self.sub_path

    def html_url(self, path: str) -> str:
        """Link to the file on github.com."""
        return (
            f"https://github.com/{self.owner}/{self.repo_name}"
            f"/blob/{self.branch}/{self.full_path(path)}"
        )


class TreeEntry(BaseModel):
    """Flat tree listing item."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: Literal["file", "directory"]

    @classmethod
    def from_github(cls, item: dict[str, Any]) -> "TreeEntry":
        """Build from a ``git/trees`` item (``type`` is ``blob`` or ``tree``)."""
        kind = "directory" if item.get("type") == "tree" else "file"
        return cls(path=item["path"], kind=kind)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        name = self.name
        return name.rsplit(".", 1)[-1].lower() if "." in name else ""


class FileMetadata(BaseModel):
    """Latest commit touching a file."""

    last_updated: datetime
    author_name: str
    author_profile_url: str | None = None
    commit_url: str
    commit_sha: str

    @classmethod
    def from_commit(cls, commit: dict[str, Any]) -> "FileMetadata":
        """Build from one item of the ``commits`` endpoint."""
        details = commit["commit"]
        author = commit.get("author") or {}
        return cls(
            last_updated=details["committer"]["date"],
            author_name=details["author"]["name"],
            author_profile_url=author.get("html_url"),
            commit_url=commit["html_url"],
            commit_sha=commit["sha"],
        )
