"""
Site Publisher - Site Deployer

Deploys a generated static site to the hosting provider.

Features:
- Content-addressed uploads (only bytes the provider lacks are sent)
- Live and preview channels
- Concurrent unit uploads with a fan-out limit
- Dry-run planning without remote calls
- Structured result with per-stage failure reporting

Each attempt allocates a fresh provider version. A failed attempt leaves an
unfinalized version behind, which the provider discards on its own; the
recovery strategy is simply to deploy again.

Usage:
    deployer = SiteDeployer()
    result = await deployer.deploy(bundle, Live())
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx

from config.logging import get_logger, LogContext
from config.settings import Settings, get_settings
from publishing.bundle import FileBundle
from publishing.exceptions import ConfigurationError, DeploymentError
from publishing.hosting_client import HostingClient, TokenProvider, settings_token_provider
from publishing.packager import prepare, unique_units
from publishing.release import ReleaseController
from publishing.session import ChannelTarget, DeploymentSession, Live, Preview
from publishing.uploader import Uploader


logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DeploymentResult:
    """Result of a deployment attempt."""

    success: bool = True
    channel: str = ""
    url: Optional[str] = None
    version_id: Optional[str] = None

    files_total: int = 0
    units_distinct: int = 0
    units_required: int = 0
    files_uploaded: int = 0
    bytes_transferred: int = 0

    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    failed_stage: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def files_skipped(self) -> int:
        """Distinct files the provider already held."""
        return self.units_distinct - self.units_required

    def add_error(self, message: str, stage: Optional[str] = None) -> None:
        """Add an error and mark deployment as failed."""
        self.errors.append(message)
        self.success = False
        if stage and self.failed_stage is None:
            self.failed_stage = stage


class SiteDeployer:
    """
    Deploys a FileBundle to a channel of the configured hosting site.

    Stages run strictly in order: prepare, open, populate, upload, finalize,
    release. Any failure ends the attempt and is reported in the result.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the deployer.

        Args:
            settings: Settings to use (defaults to get_settings())
            token_provider: Bearer token source (defaults to HOSTING_ACCESS_TOKEN)
            transport: Optional httpx transport for the hosting client
        """
        self.settings = settings or get_settings()
        self.token_provider = token_provider or settings_token_provider(self.settings)
        self.transport = transport
        self.controller = ReleaseController.from_settings(self.settings)
        self.uploader = Uploader(max_concurrency=self.settings.hosting_upload_concurrency)

    def preview_target(self, channel_id: Optional[str] = None) -> Preview:
        return Preview(
            channel_id=channel_id or self.settings.preview_channel_id,
            ttl_seconds=self.settings.preview_channel_ttl_seconds,
        )

    async def deploy(
        self,
        bundle: FileBundle,
        target: Optional[ChannelTarget] = None,
    ) -> DeploymentResult:
        """
        Deploy a bundle and release it to a channel.

        Args:
            bundle: Files to publish (may be empty)
            target: Channel to release to (defaults to Live())

        Returns:
            DeploymentResult; on failure success is False and failed_stage
            names the stage that failed
        """
        target = target or Live()
        result = DeploymentResult(channel=target.channel_id, files_total=bundle.file_count)

        with LogContext(site_id=self.settings.hosting_site_id, channel=target.channel_id):
            logger.info(
                f"Deploying {bundle.file_count} files",
                extra={"bytes": bundle.total_bytes},
            )

            try:
                site_id = self._validate_config()
                session = await self._run(site_id, bundle, target, result)
                result.url = session.public_url
            except DeploymentError as e:
                logger.error(f"Deployment failed: {e}", extra={"stage": e.stage, **e.details})
                result.add_error(e.message, stage=e.stage)
            except Exception as e:
                logger.exception(f"Deployment failed: {e}")
                result.add_error(f"Deployment failed: {e}", stage="deploy")

            result.completed_at = _utcnow()

            logger.info(
                "Deployment complete",
                extra={
                    "success": result.success,
                    "url": result.url,
                    "version_id": result.version_id,
                    "required": result.units_required,
                    "uploaded": result.files_uploaded,
                    "skipped": result.files_skipped,
                    "bytes_transferred": result.bytes_transferred,
                    "duration_seconds": result.duration_seconds,
                },
            )

        return result

    async def _run(
        self,
        site_id: str,
        bundle: FileBundle,
        target: ChannelTarget,
        result: DeploymentResult,
    ) -> DeploymentSession:
        units = prepare(bundle, self.settings.hosting_compression_level)
        result.units_distinct = len(unique_units(units.values()))

        async with HostingClient.from_settings(
            self.settings,
            transport=self.transport,
            token_provider=self.token_provider,
        ) as client:
            session = await self.controller.open(client, site_id, target)
            result.version_id = session.version_id

            negotiation = await self.controller.populate(client, session, units)
            result.units_required = len(negotiation.required_digests)

            if negotiation.nothing_to_upload:
                logger.info("No files need uploading (all already held by the provider)")
            else:
                report = await self.uploader.upload(
                    client,
                    negotiation.upload_url,
                    negotiation.required_units,
                )
                result.files_uploaded = report.uploaded_count
                result.bytes_transferred = report.bytes_transferred
                for digest, reason in report.failed.items():
                    result.warnings.append(f"Upload failed: {digest}: {reason}")

                self.controller.record_uploads(session, report)
                report.raise_for_incomplete()

            await self.controller.finalize(client, session)
            await self.controller.release(client, session)

        return session

    def _validate_config(self) -> str:
        """Fail fast on missing configuration, before any remote call."""
        if not self.settings.hosting_site_id:
            raise ConfigurationError(
                "Hosting site ID is not configured. Set HOSTING_SITE_ID."
            )
        # Resolving the token up front surfaces a missing credential here.
        self.token_provider()
        return self.settings.hosting_site_id

    def plan(self, bundle: FileBundle) -> dict[str, str]:
        """Prepare a bundle and return its provider file map, without remote calls."""
        units = prepare(bundle, self.settings.hosting_compression_level)
        return {unit.remote_path: unit.digest for unit in units.values()}


# =============================================================================
# CLI Entry Point
# =============================================================================

def main() -> int:
    """
    Main entry point for deployment.

    Usage:
        python -m publishing.deployer [--channel live|preview] [--dry-run]
    """
    import argparse

    from config.logging import setup_logging

    parser = argparse.ArgumentParser(description="Deploy the generated static site")
    parser.add_argument(
        "--channel",
        choices=["live", "preview"],
        default="live",
        help="Channel to release to",
    )
    parser.add_argument("--preview-id", type=str, help="Preview channel id", default=None)
    parser.add_argument("--dry-run", action="store_true", help="Show what would be uploaded")
    parser.add_argument("--source", type=str, help="Source directory", default=None)
    args = parser.parse_args()

    setup_logging()
    settings = get_settings()

    logger.info("=" * 60)
    logger.info("Site Publisher - Deployer")
    logger.info("=" * 60)

    source_dir = Path(args.source) if args.source else settings.get_output_path()
    try:
        bundle = FileBundle.from_directory(source_dir)
    except FileNotFoundError as e:
        print(f"\nDeployment FAILED\n  {e}")
        return 1

    deployer = SiteDeployer(settings=settings)

    if args.dry_run:
        try:
            files = deployer.plan(bundle)
        except DeploymentError as e:
            print(f"\nDry run FAILED\n  {e}")
            return 1
        print(f"\n[DRY RUN] {len(files)} files, {len(set(files.values()))} distinct digests")
        for path, digest in files.items():
            print(f"  {digest[:12]}  {path}")
        return 0

    if args.channel == "preview":
        target: ChannelTarget = deployer.preview_target(args.preview_id)
    else:
        target = Live()

    result = asyncio.run(deployer.deploy(bundle, target))

    print(f"\nDeployment {'completed' if result.success else 'FAILED'}")
    print(f"  Channel: {result.channel}")
    if result.url:
        print(f"  URL: {result.url}")
    print(f"  Files: {result.files_total}")
    print(f"  Files uploaded: {result.files_uploaded} of {result.units_required} required")
    print(f"  Files skipped: {result.files_skipped}")
    print(f"  Bytes transferred: {result.bytes_transferred:,}")
    print(f"  Duration: {result.duration_seconds:.1f}s")

    if result.errors:
        print(f"\nErrors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  - {error}")

    if result.warnings:
        print(f"\nWarnings ({len(result.warnings)}):")
        for warning in result.warnings[:5]:
            print(f"  - {warning}")

    return 0 if result.success else 1


if __name__ == "__main__":
    import sys
    sys.exit(main())
