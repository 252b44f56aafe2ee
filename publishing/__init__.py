"""
Site Publisher - Publishing Package

Content-addressed deployment of a generated static site to the hosting
provider.

Modules:
    bundle: FileBundle and TransferUnit data model
    packager: gzip + SHA-256 packaging of bundle files
    hosting_client: Async REST client for the hosting API
    session: Deployment session state machine and channel targets
    negotiator: populateFiles negotiation
    uploader: Concurrent upload of required units
    release: Version finalization and channel release
    deployer: End-to-end deployment and CLI

Usage:
    from publishing import FileBundle, SiteDeployer, Live

    bundle = FileBundle()
    bundle.add_html("index.html", "<h1>Hi</h1>")

    result = await SiteDeployer().deploy(bundle, Live())
"""

from publishing.bundle import FileBundle, FileEntry, TransferUnit
from publishing.deployer import DeploymentResult, SiteDeployer
from publishing.packager import prepare
from publishing.session import ChannelTarget, DeploymentSession, Live, Preview, SessionState

__all__ = [
    "FileBundle",
    "FileEntry",
    "TransferUnit",
    "prepare",
    "SiteDeployer",
    "DeploymentResult",
    "DeploymentSession",
    "SessionState",
    "ChannelTarget",
    "Live",
    "Preview",
]
