"""
Site Publisher - Content Packager

Turns a FileBundle into transfer units: each file is gzipped with a fixed
compression level and no timestamp in the header, then identified by the
SHA-256 of the compressed bytes.

Usage:
    from publishing.packager import prepare

    units = prepare(bundle)
    for path, unit in units.items():
        print(path, unit.digest)
"""

import gzip
import hashlib
import io
import zlib
from typing import Iterable

from config.logging import get_logger
from publishing.bundle import FileBundle, TransferUnit
from publishing.exceptions import PreparationError


logger = get_logger(__name__)

DEFAULT_COMPRESSION_LEVEL = 9
CHUNK_SIZE = 64 * 1024


def compress(content: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """
    gzip content deterministically.

    mtime is pinned to 0 and no filename is written, so identical input
    always yields identical output.
    """
    buffer = io.BytesIO()
    with gzip.GzipFile(filename="", mode="wb", compresslevel=level, fileobj=buffer, mtime=0) as gz:
        view = memoryview(content)
        for offset in range(0, len(view), CHUNK_SIZE):
            gz.write(view[offset:offset + CHUNK_SIZE])
    return buffer.getvalue()


def compute_digest(data: bytes) -> str:
    """Hex SHA-256 of data."""
    return hashlib.sha256(data).hexdigest()


def prepare(
    bundle: FileBundle,
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
) -> dict[str, TransferUnit]:
    """
    Package every file of a bundle into a TransferUnit.

    Args:
        bundle: Files to package
        compression_level: gzip level (1-9)

    Returns:
        Mapping of bundle path -> TransferUnit, in bundle order

    Raises:
        PreparationError: If any file fails to compress. No partial result
            is returned.
    """
    units: dict[str, TransferUnit] = {}

    for path, entry in bundle.items():
        try:
            compressed = compress(entry.content, compression_level)
        except (OSError, ValueError, zlib.error) as e:
            raise PreparationError(
                f"Failed to compress {path}: {e}",
                details={"path": path},
            ) from e

        units[path] = TransferUnit(
            path=path,
            compressed=compressed,
            digest=compute_digest(compressed),
        )

    logger.debug(
        f"Prepared {len(units)} transfer units",
        extra={
            "unit_count": len(units),
            "distinct_digests": len({u.digest for u in units.values()}),
        },
    )
    return units


def unique_units(units: Iterable[TransferUnit]) -> dict[str, TransferUnit]:
    """Collapse units sharing a digest; the first unit seen for a digest wins."""
    by_digest: dict[str, TransferUnit] = {}
    for unit in units:
        by_digest.setdefault(unit.digest, unit)
    return by_digest


__all__ = [
    "prepare",
    "compress",
    "compute_digest",
    "unique_units",
    "DEFAULT_COMPRESSION_LEVEL",
]
