"""
Site Publisher - Release Controller

Drives a DeploymentSession through the provider: allocates the version,
registers its files, finalizes it and points a channel at it.

Live and preview releases share one code path; the ChannelTarget decides
the channel id and whether the channel is created with a TTL.

Usage:
    controller = ReleaseController.from_settings(settings)
    session = await controller.open(client, "my-site", Live())
    negotiation = await controller.populate(client, session, units)
    ...
    await controller.finalize(client, session)
    url = await controller.release(client, session)
"""

from typing import Any, Mapping, Optional

from config.logging import get_logger, LogContext
from config.settings import Settings
from publishing.bundle import TransferUnit
from publishing.exceptions import (
    FinalizationError,
    ProviderError,
    ReleaseError,
    SessionStateError,
    VersionCreationError,
)
from publishing.hosting_client import HostingClient
from publishing.negotiator import NegotiationResult, negotiate
from publishing.session import ChannelTarget, DeploymentSession, SessionState
from publishing.uploader import UploadReport


logger = get_logger(__name__)


class ReleaseController:
    """
    Stage-by-stage driver for one deployment session.

    The controller holds release policy only (cache headers, release
    messages, URL fallbacks); the client and session are passed to every
    call.
    """

    def __init__(
        self,
        html_cache_control: str = "no-cache",
        asset_cache_control: str = "public, max-age=3600",
        release_message_live: str = "Deploy from Site Publisher",
        release_message_preview: str = "Preview from Site Publisher",
        channel_url_template: str = "https://{site_id}--{channel_id}.web.app/",
        live_url_template: str = "https://{site_id}.web.app/",
    ):
        self.html_cache_control = html_cache_control
        self.asset_cache_control = asset_cache_control
        self.release_message_live = release_message_live
        self.release_message_preview = release_message_preview
        self.channel_url_template = channel_url_template
        self.live_url_template = live_url_template

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReleaseController":
        return cls(
            html_cache_control=settings.html_cache_control,
            asset_cache_control=settings.asset_cache_control,
            release_message_live=settings.release_message_live,
            release_message_preview=settings.release_message_preview,
            channel_url_template=settings.channel_url_template,
            live_url_template=settings.live_url_template,
        )

    def version_config(self) -> dict[str, Any]:
        """Cache-control policy attached to every new version."""
        return {
            "headers": [
                {
                    "glob": "**/*.html",
                    "headers": {"Cache-Control": self.html_cache_control},
                },
                {
                    "glob": "**/*.{css,js}",
                    "headers": {"Cache-Control": self.asset_cache_control},
                },
            ]
        }

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def open(
        self,
        client: HostingClient,
        site_id: str,
        target: ChannelTarget,
    ) -> DeploymentSession:
        """Allocate a new version and return a session bound to it."""
        try:
            version_id = await client.create_version(site_id, self.version_config())
        except ProviderError as e:
            raise VersionCreationError(
                f"Could not create version for site '{site_id}': {e.message}",
                details={"site_id": site_id, "status_code": e.status_code},
            ) from e

        LogContext.bind(version_id=version_id)
        logger.info(f"Created version: {version_id}", extra={"channel": target.channel_id})
        return DeploymentSession(site_id=site_id, version_id=version_id, target=target)

    async def populate(
        self,
        client: HostingClient,
        session: DeploymentSession,
        units: Mapping[str, TransferUnit],
    ) -> NegotiationResult:
        """Register the full file map and record what must be uploaded."""
        result = await negotiate(client, session.version_id, units)
        session.mark_populated(result.required_digests, result.upload_url)
        return result

    def record_uploads(self, session: DeploymentSession, report: UploadReport) -> None:
        """Confirm the digests an upload batch delivered."""
        if session.state is SessionState.POPULATED:
            session.confirm_uploads(report.uploaded)

    async def finalize(self, client: HostingClient, session: DeploymentSession) -> None:
        """
        Mark the version complete.

        Raises:
            FinalizationError: If required uploads are unconfirmed (the
                provider is not called) or the provider rejects the request
        """
        unconfirmed = session.unconfirmed_digests
        if unconfirmed:
            required = len(session.required_digests)
            raise FinalizationError(
                f"{required - len(unconfirmed)} of {required} required files uploaded; "
                "refusing to finalize",
                details={"version_id": session.version_id, "unconfirmed": unconfirmed},
            )
        if session.state is not SessionState.UPLOADED:
            raise FinalizationError(
                f"Cannot finalize a session in state '{session.state.value}'",
                details={"version_id": session.version_id},
            )

        try:
            data = await client.finalize_version(session.version_id)
        except ProviderError as e:
            raise FinalizationError(
                f"Provider rejected finalize: {e.message}",
                details={"version_id": session.version_id, "status_code": e.status_code},
            ) from e

        status = data.get("status")
        if status is not None and status != "FINALIZED":
            raise FinalizationError(
                f"Version status is '{status}' after finalize",
                details={"version_id": session.version_id},
            )

        session.mark_finalized()
        logger.info(f"Version finalized: {session.version_id}")

    async def release(self, client: HostingClient, session: DeploymentSession) -> str:
        """
        Point the session's channel at its version.

        Creates the channel first when missing (an existing channel is not an
        error). Preview channels get their TTL at creation only.

        Returns:
            Public URL of the channel
        """
        if session.state is not SessionState.FINALIZED:
            raise ReleaseError(
                f"Cannot release a session in state '{session.state.value}'",
                details={"version_id": session.version_id},
            )

        target = session.target
        site_id = session.site_id
        message = self.release_message_preview if target.is_preview else self.release_message_live

        try:
            created = await client.create_channel(site_id, target.channel_id, target.ttl_seconds)
            if created:
                logger.info(
                    f"Created channel: {target.channel_id}",
                    extra={"ttl_seconds": target.ttl_seconds},
                )
            await client.create_release(site_id, target.channel_id, session.version_id, message)
        except ProviderError as e:
            raise ReleaseError(
                f"Release to channel '{target.channel_id}' failed: {e.message}",
                details={
                    "version_id": session.version_id,
                    "channel": target.channel_id,
                    "status_code": e.status_code,
                },
            ) from e

        # The channel already serves the new version from here on.
        try:
            channel = await client.get_channel(site_id, target.channel_id)
        except ProviderError as e:
            logger.warning(
                f"Could not read channel after release: {e.message}",
                extra={"channel": target.channel_id, "status_code": e.status_code},
            )
            channel = {}

        url = self._channel_url(channel, site_id, target)
        try:
            session.mark_released(url)
        except SessionStateError as e:
            raise ReleaseError(e.message, details=e.details) from e

        logger.info(f"Released {session.version_id} to {target.channel_id}: {url}")
        return url

    def _channel_url(
        self,
        channel: Mapping[str, Any],
        site_id: str,
        target: ChannelTarget,
    ) -> str:
        url: Optional[str] = channel.get("url")
        if isinstance(url, str) and url:
            return url

        # The release has already happened, so report a constructed URL
        # rather than fail.
        template = self.channel_url_template if target.is_preview else self.live_url_template
        fallback = template.format(site_id=site_id, channel_id=target.channel_id)
        logger.warning(
            "Channel response had no URL; using constructed URL",
            extra={"channel": target.channel_id, "url": fallback},
        )
        return fallback


__all__ = [
    "ReleaseController",
]
