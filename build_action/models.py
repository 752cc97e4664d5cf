from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class BuildMode(str, Enum):
    """How the final tag list is derived."""

    EXPLICIT_TAGS = "explicit_tags"
    AUTO_GENERATED = "auto_generated"
    JSON_TARGETS = "json_targets"


@dataclass(frozen=True)
class ResolvedTarget:
    """One image reference to build and/or push."""

    repository: str
    tag: str

    @property
    def ref(self) -> str:
        return f"{self.repository}:{self.tag}"

    def __str__(self) -> str:
        return self.ref


@dataclass(frozen=True)
class TagFlags:
    """Independent switches controlling auto-generated tags."""

    tag_latest_on_default_branch: bool = False
    tag_sha: bool = False
    include_ref_tags: bool = False
    include_semver_tags: bool = False


@dataclass(frozen=True)
class BuildRequest:
    """Resolved configuration for one invocation.

    Attributes:
        mode: Tag derivation mode selected from the inputs
        repositories: Ordered registry/repository strings (auto_generated mode)
        base_tag: Tag applied to every repository (auto_generated mode)
        flags: Extra tag switches (auto_generated mode)
        push: Push the result to the registry
        load: Load the result into the local image store
        labels: User supplied ``key=value`` labels
        targets: Literal targets for explicit_tags and json_targets modes
    """

    mode: BuildMode
    repositories: Tuple[str, ...] = ()
    base_tag: Optional[str] = None
    flags: TagFlags = field(default_factory=TagFlags)
    push: bool = False
    load: bool = False
    labels: Tuple[str, ...] = ()
    targets: Tuple[ResolvedTarget, ...] = ()
