"""
Site Publisher - Deployment Errors

Every failure in a deployment attempt is reported as a DeploymentError
subclass naming the stage it came from. Provider HTTP failures are raised
as ProviderError by the hosting client and wrapped by the stage that made
the call.
"""

from typing import Any, Optional


class ProviderError(Exception):
    """A hosting API call failed (non-2xx response, transport error or timeout)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        url: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.url = url

    @property
    def is_conflict(self) -> bool:
        """True when the provider reported that the resource already exists."""
        return self.status_code == 409


class DeploymentError(Exception):
    """Base class for all deployment failures."""

    stage = "deploy"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class ConfigurationError(DeploymentError):
    """Required configuration (site id, credentials) is missing."""

    stage = "configure"


class PreparationError(DeploymentError):
    """A file could not be packaged into a transfer unit."""

    stage = "prepare"


class VersionCreationError(DeploymentError):
    """The provider refused to allocate a new version."""

    stage = "open"


class NegotiationError(DeploymentError):
    """The populate call failed or returned a response we cannot use."""

    stage = "populate"


class PartialUploadError(DeploymentError):
    """One or more required units were not uploaded."""

    stage = "upload"

    def __init__(
        self,
        uploaded: int,
        required: int,
        failed: Optional[dict[str, str]] = None,
    ):
        self.uploaded = uploaded
        self.required = required
        self.failed = dict(failed or {})
        super().__init__(
            f"Uploaded {uploaded} of {required} required files",
            details={"uploaded": uploaded, "required": required, "failed": self.failed},
        )


class FinalizationError(DeploymentError):
    """The version could not be finalized."""

    stage = "finalize"


class ReleaseError(DeploymentError):
    """The channel could not be created or pointed at the version."""

    stage = "release"


class SessionStateError(DeploymentError):
    """A session was asked to make a transition its current state does not allow."""

    stage = "session"


__all__ = [
    "ProviderError",
    "DeploymentError",
    "ConfigurationError",
    "PreparationError",
    "VersionCreationError",
    "NegotiationError",
    "PartialUploadError",
    "FinalizationError",
    "ReleaseError",
    "SessionStateError",
]
