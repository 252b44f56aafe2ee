"""
Site Publisher - Deployment Session

State of one release attempt against one provider version.

Lifecycle (strictly forward, one step at a time):

    CREATED --populate--> POPULATED --uploads confirmed--> UPLOADED
            --finalize--> FINALIZED --release--> RELEASED

A session whose populate step reports nothing to upload moves straight from
CREATED to UPLOADED. Sessions are never reused across attempts.
"""

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

from publishing.exceptions import SessionStateError


LIVE_CHANNEL_ID = "live"


class SessionState(str, enum.Enum):
    CREATED = "created"
    POPULATED = "populated"
    UPLOADED = "uploaded"
    FINALIZED = "finalized"
    RELEASED = "released"


# =============================================================================
# Channel Targets
# =============================================================================

@dataclass(frozen=True)
class Live:
    """The site's production channel."""

    channel_id: str = field(default=LIVE_CHANNEL_ID, init=False)
    ttl_seconds: Optional[int] = field(default=None, init=False)

    @property
    def is_preview(self) -> bool:
        return False


@dataclass(frozen=True)
class Preview:
    """A named preview channel that the provider expires after ttl_seconds."""

    channel_id: str = "preview"
    ttl_seconds: Optional[int] = 604_800

    def __post_init__(self) -> None:
        if self.channel_id == LIVE_CHANNEL_ID:
            raise ValueError("A preview channel cannot be named 'live'")

    @property
    def is_preview(self) -> bool:
        return True


ChannelTarget = Union[Live, Preview]


# =============================================================================
# Session
# =============================================================================

@dataclass
class DeploymentSession:
    """
    One deployment attempt bound to one provider version.

    Attributes:
        site_id: Provider site identifier
        version_id: Full provider version name
        target: Channel the version will be released to
        state: Current lifecycle state
        required_digests: Digests the provider asked for at populate time
        confirmed_digests: Digests confirmed uploaded
        upload_url: Base URL for unit uploads, scoped to this version
        public_url: Channel URL, set once released
    """

    site_id: str
    version_id: str
    target: ChannelTarget
    state: SessionState = SessionState.CREATED
    required_digests: list[str] = field(default_factory=list)
    confirmed_digests: set[str] = field(default_factory=set)
    upload_url: Optional[str] = None
    public_url: Optional[str] = None

    @property
    def unconfirmed_digests(self) -> list[str]:
        return [d for d in self.required_digests if d not in self.confirmed_digests]

    @property
    def all_uploads_confirmed(self) -> bool:
        return not self.unconfirmed_digests

    def _require(self, *allowed: SessionState, action: str) -> None:
        if self.state not in allowed:
            raise SessionStateError(
                f"Cannot {action} a session in state '{self.state.value}'",
                details={"version_id": self.version_id, "state": self.state.value},
            )

    def mark_populated(self, required_digests: list[str], upload_url: Optional[str]) -> None:
        """
        Record the populate outcome.

        An empty required set means nothing has to be transferred, so the
        session moves directly to UPLOADED.
        """
        self._require(SessionState.CREATED, action="populate")
        self.required_digests = list(dict.fromkeys(required_digests))
        self.upload_url = upload_url
        if self.required_digests:
            self.state = SessionState.POPULATED
        else:
            self.state = SessionState.UPLOADED

    def confirm_uploads(self, digests: set[str]) -> None:
        """
        Record confirmed uploads; moves to UPLOADED once every required digest
        is confirmed.
        """
        self._require(SessionState.POPULATED, action="confirm uploads for")
        unknown = set(digests) - set(self.required_digests)
        if unknown:
            raise SessionStateError(
                f"Confirmed {len(unknown)} digests that were never required",
                details={"version_id": self.version_id, "digests": sorted(unknown)},
            )
        self.confirmed_digests.update(digests)
        if self.all_uploads_confirmed:
            self.state = SessionState.UPLOADED

    def mark_finalized(self) -> None:
        self._require(SessionState.UPLOADED, action="finalize")
        self.state = SessionState.FINALIZED

    def mark_released(self, public_url: str) -> None:
        self._require(SessionState.FINALIZED, action="release")
        self.public_url = public_url
        self.state = SessionState.RELEASED


__all__ = [
    "SessionState",
    "DeploymentSession",
    "ChannelTarget",
    "Live",
    "Preview",
    "LIVE_CHANNEL_ID",
]
