"""
Site Publisher - Publishing API

JSON endpoints for previewing and deploying the generated site.

Endpoints:
    POST /api/publish/preview          deploy to the preview channel
    POST /api/publish/deploy           deploy to the live channel
    GET  /api/publish/preview-summary  list the files that would be published
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config.logging import get_logger
from config.settings import get_settings
from publishing.bundle import FileBundle
from publishing.deployer import DeploymentResult, SiteDeployer
from publishing.session import ChannelTarget, Live


logger = get_logger(__name__)

router = APIRouter(prefix="/publish", tags=["publish"])

BundleSource = Callable[[], FileBundle]


# =============================================================================
# Response Models
# =============================================================================

class PublishResponse(BaseModel):
    status: str = "success"
    url: Optional[str] = None
    preview_url: Optional[str] = None
    version_id: Optional[str] = None
    file_count: int
    files_uploaded: int
    files_skipped: int
    timestamp: str


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
    stage: Optional[str] = None
    timestamp: str


class SummaryResponse(BaseModel):
    status: str = "success"
    file_count: int
    files: list[str]
    timestamp: str


# =============================================================================
# Dependencies
# =============================================================================

def get_bundle_source() -> BundleSource:
    """Default bundle source: the generated output directory."""
    settings = get_settings()
    return lambda: FileBundle.from_directory(settings.get_output_path())


def get_deployer() -> SiteDeployer:
    return SiteDeployer(settings=get_settings())


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(message: str, stage: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(message=message or "Unknown error", stage=stage, timestamp=_timestamp())
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(),
    )


async def _publish(
    target: ChannelTarget,
    bundle_source: BundleSource,
    deployer: SiteDeployer,
):
    try:
        bundle = bundle_source()
    except (OSError, ValueError) as e:
        logger.error(f"Site output not available: {e}")
        return _error(str(e), stage="load")

    result: DeploymentResult = await deployer.deploy(bundle, target)
    if not result.success:
        return _error("; ".join(result.errors), stage=result.failed_stage)

    return PublishResponse(
        url=result.url,
        preview_url=result.url if target.is_preview else None,
        version_id=result.version_id,
        file_count=result.files_total,
        files_uploaded=result.files_uploaded,
        files_skipped=result.files_skipped,
        timestamp=_timestamp(),
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/preview",
    response_model=PublishResponse,
    responses={500: {"model": ErrorResponse}},
)
async def publish_preview(
    bundle_source: BundleSource = Depends(get_bundle_source),
    deployer: SiteDeployer = Depends(get_deployer),
):
    """Deploy the site to the preview channel and return its URL."""
    logger.info("Preview deployment requested")
    return await _publish(deployer.preview_target(), bundle_source, deployer)


@router.post(
    "/deploy",
    response_model=PublishResponse,
    responses={500: {"model": ErrorResponse}},
)
async def publish_live(
    bundle_source: BundleSource = Depends(get_bundle_source),
    deployer: SiteDeployer = Depends(get_deployer),
):
    """Deploy the site to the live channel."""
    logger.info("Production deployment requested")
    return await _publish(Live(), bundle_source, deployer)


@router.get(
    "/preview-summary",
    response_model=SummaryResponse,
    responses={500: {"model": ErrorResponse}},
)
async def preview_summary(
    bundle_source: BundleSource = Depends(get_bundle_source),
):
    """List the files that would be published, without deploying."""
    try:
        bundle = bundle_source()
    except (OSError, ValueError) as e:
        logger.error(f"Site output not available: {e}")
        return _error(str(e), stage="load")

    return SummaryResponse(
        file_count=bundle.file_count,
        files=sorted(bundle.paths()),
        timestamp=_timestamp(),
    )
