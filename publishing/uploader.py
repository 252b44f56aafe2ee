"""
Site Publisher - Unit Uploader

Uploads the units the provider asked for, addressed by digest.

Each unit is sent independently. A failed unit is recorded and the rest of
the batch still runs; the caller compares the uploaded count with the
required count before finalizing. Uploads run concurrently up to a fixed
fan-out limit.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

from config.logging import get_logger
from publishing.bundle import TransferUnit
from publishing.exceptions import PartialUploadError, ProviderError
from publishing.hosting_client import HostingClient


logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


@dataclass
class UploadReport:
    """Per-batch upload outcome."""

    required_count: int = 0
    uploaded: set[str] = field(default_factory=set)
    failed: dict[str, str] = field(default_factory=dict)  # digest -> reason
    bytes_transferred: int = 0

    @property
    def uploaded_count(self) -> int:
        return len(self.uploaded)

    @property
    def complete(self) -> bool:
        return self.uploaded_count == self.required_count

    def raise_for_incomplete(self) -> None:
        if not self.complete:
            raise PartialUploadError(
                uploaded=self.uploaded_count,
                required=self.required_count,
                failed=self.failed,
            )


class Uploader:
    """
    Uploads transfer units to a version's upload URL.

    Args:
        max_concurrency: Maximum uploads in flight at once
    """

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency

    async def upload(
        self,
        client: HostingClient,
        upload_url: str,
        units: Sequence[TransferUnit],
    ) -> UploadReport:
        """
        Upload every unit, never stopping on a single failure.

        Units sharing a digest are sent once.

        Returns:
            UploadReport with uploaded digests and per-digest failures
        """
        distinct: dict[str, TransferUnit] = {}
        for unit in units:
            distinct.setdefault(unit.digest, unit)

        report = UploadReport(required_count=len(distinct))
        if not distinct:
            logger.info("No files need uploading")
            return report

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _upload_one(unit: TransferUnit) -> None:
            async with semaphore:
                try:
                    await client.upload_unit(upload_url, unit.digest, unit.compressed)
                except ProviderError as e:
                    logger.warning(
                        f"Upload failed for {unit.path}: {e.message}",
                        extra={
                            "path": unit.path,
                            "digest": unit.digest,
                            "status_code": e.status_code,
                        },
                    )
                    report.failed[unit.digest] = e.message
                    return
                except Exception as e:
                    logger.exception(
                        f"Upload failed for {unit.path}: {e}",
                        extra={"path": unit.path, "digest": unit.digest},
                    )
                    report.failed[unit.digest] = f"{type(e).__name__}: {e}"
                    return

                report.uploaded.add(unit.digest)
                report.bytes_transferred += unit.size
                logger.debug(f"Uploaded: {unit.path}", extra={"digest": unit.digest})

        await asyncio.gather(*(_upload_one(unit) for unit in distinct.values()))

        logger.info(
            f"Uploaded {report.uploaded_count}/{report.required_count} files",
            extra={
                "uploaded": report.uploaded_count,
                "required": report.required_count,
                "failed": len(report.failed),
                "bytes": report.bytes_transferred,
            },
        )
        return report


__all__ = [
    "Uploader",
    "UploadReport",
    "DEFAULT_MAX_CONCURRENCY",
]
