"""File viewer logic: classify, fetch and decode one selected file."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum

import httpx

from ghcontent import (
    ContentError,
    DecodeFailed,
    FileMetadata,
    GitHubClient,
    RepositoryConfig,
    describe_error,
)

from .outline import Heading, extract_outline

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "svg", "webp"})
MARKDOWN_EXTENSIONS = frozenset({"md", "txt"})
DEFAULT_NOTEBOOK_LANGUAGE = "python"


class FileKind(str, Enum):
    """How a file is fetched and displayed."""

    IMAGE = "image"
    MARKDOWN = "markdown"
    NOTEBOOK = "notebook"
    PDF = "pdf"
    CODE = "code"

    @property
    def is_binary(self) -> bool:
        return self in (FileKind.IMAGE, FileKind.PDF)


def extension_of(path: str) -> str:
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def classify(path: str) -> FileKind:
    ext = extension_of(path)
    if ext in IMAGE_EXTENSIONS:
        return FileKind.IMAGE
    if ext in MARKDOWN_EXTENSIONS:
        return FileKind.MARKDOWN
    if ext == "ipynb":
        return FileKind.NOTEBOOK
    if ext == "pdf":
        return FileKind.PDF
    return FileKind.CODE


def mime_type(path: str) -> str:
    """MIME type for binary kinds."""
    ext = extension_of(path)
    kind = classify(path)
    if kind is FileKind.PDF:
        return "application/pdf"
    if kind is FileKind.IMAGE:
        if ext == "svg":
            return "image/svg+xml"
        return f"image/{'jpeg' if ext == 'jpg' else ext}"
    return "application/octet-stream"


def _cell_source(cell: dict) -> str:
    source = cell.get("source", "")
    if isinstance(source, str):
        return source
    if isinstance(source, list) and all(isinstance(line, str) for line in source):
        return "".join(source)
    raise DecodeFailed("Failed to parse notebook file: cell source is not text")


def _mapping(value, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeFailed(f"Failed to parse notebook file: {what} is not an object")
    return value


def _notebook_language(notebook: dict) -> str:
    metadata = _mapping(notebook.get("metadata"), "metadata")
    kernelspec = _mapping(metadata.get("kernelspec"), "kernelspec")
    language_info = _mapping(metadata.get("language_info"), "language_info")
    language = kernelspec.get("language") or language_info.get("name")
    return language if isinstance(language, str) and language else DEFAULT_NOTEBOOK_LANGUAGE


def decode_notebook(text: str) -> str:
    """
    Flatten a Jupyter notebook into one markdown document.

    Markdown cells are kept verbatim and code cells are fenced with the
    notebook language, in cell order. Raw and unknown cells are skipped.

    Raises:
        DecodeFailed: the text is not a notebook
    """
    try:
        notebook = json.loads(text)
    except ValueError as e:
        raise DecodeFailed("Failed to parse notebook file") from e
    if not isinstance(notebook, dict) or not isinstance(notebook.get("cells"), list):
        raise DecodeFailed("Failed to parse notebook file: no cells")

    language = _notebook_language(notebook)
    parts: list[str] = []
    for cell in notebook["cells"]:
        if not isinstance(cell, dict):
            raise DecodeFailed("Failed to parse notebook file: malformed cell")
        cell_type = cell.get("cell_type")
        if cell_type == "markdown":
            parts.append(_cell_source(cell) + "\n\n")
        elif cell_type == "code":
            parts.append(f"```{language}\n{_cell_source(cell)}\n```\n\n")
    return "".join(parts)


def render_code(text: str, extension: str) -> str:
    """Wrap source in a fenced block for syntax highlighting."""
    return f"```{extension}\n{text}\n```"


def render_document(kind: FileKind, text: str, path: str) -> str:
    """Displayable markdown for a text kind."""
    if kind is FileKind.MARKDOWN:
        return text
    if kind is FileKind.NOTEBOOK:
        return decode_notebook(text)
    if kind is FileKind.CODE:
        return render_code(text, extension_of(path))
    raise ValueError(f"{kind.value} files are not rendered as text")


class BlobHandle:
    """
    Revocable in-memory reference to a binary payload.

    The owner must call :meth:`release` once the payload is no longer
    displayed; reading ``data`` afterwards is an error.
    """

    def __init__(self, data: bytes, mime_type: str):
        self._data = data
        self.mime_type = mime_type
        self.size = len(data)
        self.released = False

    @property
    def data(self) -> bytes:
        if self.released:
            raise RuntimeError("Blob handle has been released")
        return self._data

    def release(self) -> None:
        if not self.released:
            self._data = b""
            self.released = True

    def __enter__(self) -> "BlobHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size} bytes"
        return f"BlobHandle({self.mime_type}, {state})"


@dataclass
class ResolvedFile:
    """A file ready for display."""

    path: str
    kind: FileKind
    html_url: str
    document: str | None = None
    blob: BlobHandle | None = None
    metadata: FileMetadata | None = None
    outline: list[Heading] = field(default_factory=list)


class ResolverState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ContentResolver:
    """
    Per-selection loader for the file viewer.

    Each :meth:`open` supersedes the previous one: its blob is released and
    any result still in flight for an older selection is dropped on arrival.
    Commit metadata loads alongside the content but never holds it up; it
    is attached to the resolved file when it lands (see :meth:`wait_metadata`).
    """

    def __init__(self, client: GitHubClient):
        self.client = client
        self.state = ResolverState.IDLE
        self.path: str | None = None
        self.current: ResolvedFile | None = None
        self.error: Exception | None = None
        self.error_message: str | None = None
        self._generation = 0
        self._metadata_task: asyncio.Task | None = None

    def _release(self) -> None:
        if self._metadata_task is not None:
            self._metadata_task.cancel()
            self._metadata_task = None
        if self.current is not None and self.current.blob is not None:
            self.current.blob.release()

    async def _resolve(self, config: RepositoryConfig, path: str) -> ResolvedFile:
        kind = classify(path)
        html_url = config.html_url(path)

        if kind.is_binary:
            data = await self.client.fetch_file_blob(config, path)
            return ResolvedFile(
                path=path,
                kind=kind,
                html_url=html_url,
                blob=BlobHandle(data, mime_type(path)),
            )

        text = await self.client.fetch_file_content(config, path)
        document = render_document(kind, text, path)
        outline = extract_outline(document) if kind is not FileKind.CODE else []
        return ResolvedFile(
            path=path,
            kind=kind,
            html_url=html_url,
            document=document,
            outline=outline,
        )

    @staticmethod
    def _attach_metadata(resolved: ResolvedFile, task: asyncio.Task) -> None:
        if not task.cancelled():
            resolved.metadata = task.result()

    async def wait_metadata(self) -> FileMetadata | None:
        """Wait for the displayed file's commit metadata, None when unavailable."""
        task = self._metadata_task
        if task is None or self.current is None:
            return None
        resolved = self.current
        try:
            metadata = await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
            return None
        resolved.metadata = metadata
        return metadata

    async def open(self, config: RepositoryConfig, path: str) -> ResolvedFile | None:
        """
        Load ``path`` for display.

        Returns:
            The resolved file, or None when loading failed (see ``error``)
            or a newer selection superseded this one
        """
        self._generation += 1
        generation = self._generation
        self._release()
        self.state = ResolverState.LOADING
        self.path = path
        self.current = None
        self.error = None
        self.error_message = None
        logger.info("Opening %s (%s)", path, classify(path).value)
        metadata_task = asyncio.create_task(self.client.fetch_file_metadata(config, path))
        self._metadata_task = metadata_task

        try:
            resolved = await self._resolve(config, path)
        except (ContentError, httpx.HTTPError) as e:
            if generation != self._generation:
                logger.debug("Discarding stale failure for %s: %s", path, e)
                return None
            logger.error("Failed to fetch file %s: %s", path, e)
            metadata_task.cancel()
            self._metadata_task = None
            self.state = ResolverState.FAILED
            self.error = e
            self.error_message = describe_error(e)
            return None

        if generation != self._generation:
            logger.debug("Discarding stale result for %s", path)
            if resolved.blob is not None:
                resolved.blob.release()
            return None

        metadata_task.add_done_callback(lambda task: self._attach_metadata(resolved, task))
        self.current = resolved
        self.state = ResolverState.READY
        return resolved

    def close(self) -> None:
        """Release the displayed file and drop anything in flight."""
        self._generation += 1
        self._release()
        self.current = None
        self.path = None
        self.state = ResolverState.IDLE
