"""fwrelease: firmware release versioning, upload and publishing pipeline.

- Version resolution from git tags (tagged / development / untagged builds)
- Categorized, length-bounded release notes from commit history
- Checksum-verified, idempotent S3 upload with compensating cleanup
- Per-controller-type publishing to the update API with bounded retries
- Cross-account credential brokering via STS
"""

__version__ = "0.2.0"

from fwrelease.cli.app import app as cli
from fwrelease.core.orchestrator import PublishOrchestrator
from fwrelease.core.uploader import ArtifactUploader
from fwrelease.core.version_resolver import VersionResolver

__all__ = ["ArtifactUploader", "PublishOrchestrator", "VersionResolver", "cli", "__version__"]
