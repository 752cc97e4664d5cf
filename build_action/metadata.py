"""Metadata generator used for label enrichment.

The generator receives the image names, the already resolved tags and the
user labels, and returns derived tags and labels. Tags are resolved before
the generator runs, so only its labels are used.

GitHubMetadataGenerator derives OCI labels from the repository's GitHub
metadata (description, license, homepage).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import requests
import structlog

from .context import BuildContext
from .errors import MetadataError
from .retry_utils import GITHUB_API_RETRY

logger = structlog.get_logger(__name__)

OCI_PREFIX = "org.opencontainers.image"
LABEL_TITLE = f"{OCI_PREFIX}.title"
LABEL_DESCRIPTION = f"{OCI_PREFIX}.description"
LABEL_CREATED = f"{OCI_PREFIX}.created"
LABEL_REVISION = f"{OCI_PREFIX}.revision"
LABEL_SOURCE = f"{OCI_PREFIX}.source"
LABEL_URL = f"{OCI_PREFIX}.url"
LABEL_VERSION = f"{OCI_PREFIX}.version"
LABEL_AUTHORS = f"{OCI_PREFIX}.authors"
LABEL_LICENSES = f"{OCI_PREFIX}.licenses"

REQUEST_TIMEOUT = 10


@dataclass
class MetadataOutput:
    """Derived tags and labels (``key=value``)."""

    tags: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)


class MetadataGenerator(Protocol):
    def generate(self, images: List[str], tags: List[str], labels: List[str]) -> MetadataOutput: ...


def tag_of(ref: str) -> str:
    """Return the tag part of an ``image:tag`` reference."""
    name, sep, tag = ref.rpartition(":")
    if sep and "/" not in tag:
        return tag
    return ""


class GitHubMetadataGenerator:
    """Generate OCI labels from GitHub repository metadata."""

    def __init__(
        self,
        context: BuildContext,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        now: Optional[datetime] = None,
    ):
        self.context = context
        self.token = token
        self.session = session or requests.Session()
        self.now = now

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @GITHUB_API_RETRY
    def _fetch_repository(self) -> Dict[str, Any]:
        url = f"{self.context.api_url.rstrip('/')}/repos/{self.context.repository}"
        response = self.session.get(url, headers=self._headers(), timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def repository_info(self) -> Dict[str, Any]:
        """Fetch repository metadata.

        Raises:
            MetadataError: If the lookup still fails after retries
        """
        if not self.context.repository:
            logger.warning("GITHUB_REPOSITORY not set, generating labels without repository metadata")
            return {}

        try:
            info = self._fetch_repository()
        except requests.exceptions.RequestException as e:
            raise MetadataError(
                f"Failed to fetch metadata for repository {self.context.repository}",
                "Pass 'github-token' or set 'metadata-labels: false' to use the fallback label set",
                str(e),
            ) from e

        logger.debug(
            "Fetched repository metadata",
            repository=self.context.repository,
            has_description=bool(info.get("description")),
            has_license=bool(info.get("license")),
        )
        return info

    def generate(self, images: List[str], tags: List[str], labels: List[str]) -> MetadataOutput:
        info = self.repository_info()
        license_info = info.get("license") or {}
        spdx_id = license_info.get("spdx_id") if isinstance(license_info, dict) else None
        if spdx_id == "NOASSERTION":
            spdx_id = None

        repository_url = info.get("html_url") or self.context.repository_url
        title = info.get("name") or (self.context.repository.rsplit("/", 1)[-1] if self.context.repository else "")
        created = (self.now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")

        candidates = {
            LABEL_TITLE: title,
            LABEL_DESCRIPTION: info.get("description") or "",
            LABEL_URL: info.get("homepage") or repository_url,
            LABEL_SOURCE: repository_url,
            LABEL_VERSION: tag_of(tags[0]) if tags else "",
            LABEL_CREATED: created,
            LABEL_REVISION: self.context.sha,
            LABEL_LICENSES: spdx_id or "",
        }
        derived = [f"{key}={value}" for key, value in candidates.items() if value]

        logger.info("Generated metadata labels", images=images, labels=len(derived))
        return MetadataOutput(tags=list(tags), labels=derived + list(labels))
