"""
Site Publisher - File Bundle

In-memory representation of a generated site and of the transfer units
derived from it.

A FileBundle maps relative POSIX paths (stored without a leading slash) to
file content plus a MIME type. TransferUnits are produced from a bundle by
publishing.packager.prepare and carry the compressed bytes and their digest.

Usage:
    bundle = FileBundle()
    bundle.add_html("index.html", "<h1>Hi</h1>")
    bundle.add_css("css/style.css", "body{}")
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from config.logging import get_logger


logger = get_logger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
CSS_CONTENT_TYPE = "text/css; charset=utf-8"
JS_CONTENT_TYPE = "application/javascript; charset=utf-8"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def normalize_path(path: str) -> str:
    """
    Normalize a bundle path to its stored form.

    Backslashes become forward slashes, leading separators and "./" segments
    are dropped. Empty paths and parent-directory segments are rejected.
    """
    parts = [p for p in path.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts:
        raise ValueError(f"Invalid bundle path: {path!r}")
    if ".." in parts:
        raise ValueError(f"Bundle path may not contain '..': {path!r}")
    return "/".join(parts)


def to_remote_path(path: str) -> str:
    """Return the provider form of a path: exactly one leading slash."""
    return "/" + path.lstrip("/")


@dataclass(frozen=True)
class FileEntry:
    """Content and MIME type of one file in a bundle."""

    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class TransferUnit:
    """
    One file ready for transfer.

    The digest is the hex SHA-256 of the compressed bytes only; two units
    with the same compressed content share a digest regardless of path.
    """

    path: str
    compressed: bytes
    digest: str

    @property
    def remote_path(self) -> str:
        return to_remote_path(self.path)

    @property
    def size(self) -> int:
        return len(self.compressed)


class FileBundle:
    """
    Ordered mapping of relative path -> FileEntry.

    Insertion order is preserved. Adding a path that already exists replaces
    its entry.
    """

    def __init__(self) -> None:
        self._files: dict[str, FileEntry] = {}

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def add(
        self,
        path: str,
        content: Union[bytes, bytearray, memoryview],
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Add raw bytes under path. The bytes are copied."""
        if not isinstance(content, (bytes, bytearray, memoryview)):
            raise TypeError(f"Bundle content must be bytes, got {type(content).__name__}")
        self._files[normalize_path(path)] = FileEntry(bytes(content), content_type)

    def add_html(self, path: str, content: str) -> None:
        self.add(path, content.encode("utf-8"), HTML_CONTENT_TYPE)

    def add_css(self, path: str, content: str) -> None:
        self.add(path, content.encode("utf-8"), CSS_CONTENT_TYPE)

    def add_js(self, path: str, content: str) -> None:
        self.add(path, content.encode("utf-8"), JS_CONTENT_TYPE)

    @classmethod
    def from_directory(cls, source_dir: Path) -> "FileBundle":
        """
        Load every file under source_dir into a new bundle.

        Files are added in sorted path order so repeated loads of the same
        tree produce identical bundles.

        Raises:
            FileNotFoundError: If source_dir does not exist
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise FileNotFoundError(f"Source directory does not exist: {source_dir}")

        bundle = cls()
        for file_path in sorted(source_dir.rglob("*")):
            if not file_path.is_file():
                continue
            rel_path = file_path.relative_to(source_dir).as_posix()
            content_type, _ = mimetypes.guess_type(file_path.name)
            bundle.add(rel_path, file_path.read_bytes(), content_type or DEFAULT_CONTENT_TYPE)

        logger.debug(
            f"Loaded bundle from {source_dir}: {bundle.file_count} files",
            extra={"source_dir": str(source_dir), "file_count": bundle.file_count},
        )
        return bundle

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def file_count(self) -> int:
        return len(self._files)

    @property
    def total_bytes(self) -> int:
        return sum(entry.size for entry in self._files.values())

    def paths(self) -> list[str]:
        return list(self._files)

    def get(self, path: str) -> Optional[FileEntry]:
        return self._files.get(normalize_path(path))

    def items(self) -> Iterator[tuple[str, FileEntry]]:
        return iter(self._files.items())

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._files
        except ValueError:
            return False

    def __getitem__(self, path: str) -> FileEntry:
        return self._files[normalize_path(path)]

    def __repr__(self) -> str:
        return f"FileBundle(files={self.file_count}, bytes={self.total_bytes})"


__all__ = [
    "FileBundle",
    "FileEntry",
    "TransferUnit",
    "normalize_path",
    "to_remote_path",
    "HTML_CONTENT_TYPE",
    "CSS_CONTENT_TYPE",
    "JS_CONTENT_TYPE",
    "DEFAULT_CONTENT_TYPE",
]
