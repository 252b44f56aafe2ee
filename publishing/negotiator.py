"""
Site Publisher - Transfer Negotiator

Registers the full path -> digest map of a version with the provider and
works out which units actually have to be uploaded.

The provider answers with the digests it does not already hold and the
upload URL to use for them. An empty answer is a valid outcome meaning the
provider already has every byte of the site.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.logging import get_logger
from publishing.bundle import TransferUnit
from publishing.exceptions import NegotiationError, ProviderError
from publishing.hosting_client import HostingClient
from publishing.packager import unique_units


logger = get_logger(__name__)


class PopulateFilesResponse(BaseModel):
    """Provider response to populateFiles."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    upload_url: Optional[str] = Field(default=None, alias="uploadUrl")
    upload_required_hashes: list[str] = Field(default_factory=list, alias="uploadRequiredHashes")


@dataclass
class NegotiationResult:
    """
    Outcome of populate.

    Attributes:
        upload_url: Base upload URL (None when nothing is required)
        required_digests: Distinct digests to upload, in provider order
        units_by_digest: One unit per required digest
    """

    upload_url: Optional[str]
    required_digests: list[str] = field(default_factory=list)
    units_by_digest: dict[str, TransferUnit] = field(default_factory=dict)

    @property
    def nothing_to_upload(self) -> bool:
        return not self.required_digests

    @property
    def required_units(self) -> list[TransferUnit]:
        return [self.units_by_digest[d] for d in self.required_digests]


def build_files_map(units: Mapping[str, TransferUnit]) -> dict[str, str]:
    """Provider-shaped {"/path": digest} map."""
    return {unit.remote_path: unit.digest for unit in units.values()}


async def negotiate(
    client: HostingClient,
    version_id: str,
    units: Mapping[str, TransferUnit],
) -> NegotiationResult:
    """
    Register every unit with the version and return what must be uploaded.

    Args:
        client: Open hosting client
        version_id: Full provider version name
        units: Prepared units keyed by bundle path

    Raises:
        NegotiationError: If the call fails or the response cannot be used
    """
    files = build_files_map(units)

    try:
        raw = await client.populate_files(version_id, files)
    except ProviderError as e:
        raise NegotiationError(
            f"populateFiles failed: {e.message}",
            details={"version_id": version_id, "status_code": e.status_code},
        ) from e

    try:
        response = PopulateFilesResponse.model_validate(raw)
    except ValidationError as e:
        raise NegotiationError(
            f"Malformed populateFiles response: {e.error_count()} validation errors",
            details={"version_id": version_id},
        ) from e

    known = unique_units(units.values())
    required = list(dict.fromkeys(response.upload_required_hashes))

    unknown = [d for d in required if d not in known]
    if unknown:
        raise NegotiationError(
            f"Provider requested {len(unknown)} digests that are not in the bundle",
            details={"version_id": version_id, "digests": unknown},
        )

    if required and not response.upload_url:
        raise NegotiationError(
            "Provider requested uploads but returned no upload URL",
            details={"version_id": version_id, "required": len(required)},
        )

    result = NegotiationResult(
        upload_url=response.upload_url or None,
        required_digests=required,
        units_by_digest={d: known[d] for d in required},
    )

    logger.info(
        f"Provider requires {len(required)} of {len(known)} distinct files",
        extra={
            "version_id": version_id,
            "paths": len(files),
            "distinct_digests": len(known),
            "required": len(required),
        },
    )
    return result


__all__ = [
    "negotiate",
    "build_files_map",
    "NegotiationResult",
    "PopulateFilesResponse",
]
