"""CI environment for tag and label generation.

All values are read-only inputs taken from the GitHub Actions runner
environment. Nothing here talks to the network.
"""

import json
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_API_URL = "https://api.github.com"

PULL_REF_RE = re.compile(r"^refs/pull/(\d+)/")
INVALID_TAG_CHARS_RE = re.compile(r"[^a-zA-Z0-9._-]")
MAX_TAG_LENGTH = 128


def sanitize_tag(value: str) -> str:
    """Make ``value`` usable as a docker tag.

    Characters outside ``[a-zA-Z0-9._-]`` become ``-``. Tags may not start
    with ``.`` or ``-`` and are capped at 128 characters.
    """
    sanitized = INVALID_TAG_CHARS_RE.sub("-", value).lstrip(".-")
    return sanitized[:MAX_TAG_LENGTH]


def read_default_branch(event_path: Optional[str]) -> Optional[str]:
    """Read ``repository.default_branch`` from the workflow event payload."""
    if not event_path:
        return None
    try:
        with open(event_path, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read event payload", event_path=event_path, error=str(e))
        return None

    repository = payload.get("repository") if isinstance(payload, dict) else None
    if isinstance(repository, dict):
        branch = repository.get("default_branch")
        if isinstance(branch, str) and branch:
            return branch
    return None


@dataclass(frozen=True)
class BuildContext:
    """Commit, ref and URLs of the running workflow.

    Attributes:
        sha: Full commit SHA
        ref: Fully-qualified ref (refs/heads/main, refs/tags/v1.0.0, refs/pull/7/merge)
        default_branch: Repository default branch, if known
        repository: owner/name
        server_url: GitHub server URL
        api_url: GitHub REST API URL
        run_id: Workflow run id
        actor: User that triggered the run
    """

    sha: str = ""
    ref: str = ""
    default_branch: Optional[str] = None
    repository: str = ""
    server_url: str = DEFAULT_SERVER_URL
    api_url: str = DEFAULT_API_URL
    run_id: str = ""
    actor: str = ""

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, default_branch: Optional[str] = None
    ) -> "BuildContext":
        """Build context from ``GITHUB_*`` variables.

        Args:
            environ: Environment mapping (default: os.environ)
            default_branch: Explicit default branch; overrides the event payload
        """
        environ = os.environ if environ is None else environ
        branch = default_branch or read_default_branch(environ.get("GITHUB_EVENT_PATH"))
        return cls(
            sha=environ.get("GITHUB_SHA", ""),
            ref=environ.get("GITHUB_REF", ""),
            default_branch=branch,
            repository=environ.get("GITHUB_REPOSITORY", ""),
            server_url=environ.get("GITHUB_SERVER_URL", "") or DEFAULT_SERVER_URL,
            api_url=environ.get("GITHUB_API_URL", "") or DEFAULT_API_URL,
            run_id=environ.get("GITHUB_RUN_ID", ""),
            actor=environ.get("GITHUB_ACTOR", ""),
        )

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def branch(self) -> Optional[str]:
        if self.ref.startswith("refs/heads/"):
            return self.ref[len("refs/heads/") :]
        return None

    @property
    def git_tag(self) -> Optional[str]:
        if self.ref.startswith("refs/tags/"):
            return self.ref[len("refs/tags/") :]
        return None

    @property
    def pr_number(self) -> Optional[str]:
        match = PULL_REF_RE.match(self.ref)
        return match.group(1) if match else None

    @property
    def is_default_branch(self) -> bool:
        return bool(self.default_branch) and self.branch == self.default_branch

    @property
    def ref_slug(self) -> Optional[str]:
        """Tag-safe name of the current ref: branch, git tag, or ``pr-<number>``."""
        if self.pr_number:
            name = f"pr-{self.pr_number}"
        else:
            name = self.branch or self.git_tag or ""
        return sanitize_tag(name) or None

    @property
    def repository_url(self) -> str:
        if not self.repository:
            return ""
        return f"{self.server_url.rstrip('/')}/{self.repository}"

    @property
    def run_url(self) -> str:
        if not self.repository or not self.run_id:
            return ""
        return f"{self.repository_url}/actions/runs/{self.run_id}"
