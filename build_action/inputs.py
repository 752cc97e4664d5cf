"""
Action input schema.

Composite action inputs are handed to the CLI as ``INPUT_<NAME>`` environment
variables (see ``action.yml``). This module defines the pydantic model for those
inputs with:
- Field name aliasing (action input names use hyphens)
- Boolean and list parsing matching GitHub Actions conventions
- A single conversion point from validation failures to ConfigurationError

Module: inputs
"""

import itertools
import os
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

BOOL_INPUTS = (
    "push",
    "load",
    "no_cache",
    "pull",
    "tag_latest",
    "tag_sha",
    "include_ref_tags",
    "include_semver_tags",
    "metadata_labels",
    "summary",
)

# Inputs where both newlines and commas separate entries. Everything else is
# newline-only because values such as cache specs contain commas.
COMMA_LIST_INPUTS = ("platforms", "tags", "images")
LINE_LIST_INPUTS = ("build_args", "cache_from", "cache_to", "labels")

OPTIONAL_TEXT_INPUTS = (
    "file",
    "target",
    "provenance",
    "sbom",
    "base_tag",
    "targets",
    "default_branch",
    "github_token",
)


def parse_bool(value: Any) -> bool:
    """Parse boolean from an action input (native bool or string representation).

    Args:
        value: Value to parse (bool, str, or other)

    Returns:
        Boolean value

    Raises:
        ValueError: If value cannot be parsed as boolean

    Accepts:
        - Native booleans: True, False
        - String representations: "true", "false", "True", "False", "1", "0"
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value.strip().lower() in ["true", "1"]:
            return True
        if value.strip().lower() in ["false", "0"]:
            return False
    raise ValueError(f"Invalid boolean value: {value!r}. Expected: true, false, 'true', 'false', '1', or '0'")


def split_list(value: str, commas: bool = False) -> List[str]:
    """Split a multi-line input into stripped, non-empty entries."""
    lines = value.splitlines()
    if commas:
        entries = itertools.chain.from_iterable(line.split(",") for line in lines)
    else:
        entries = iter(lines)
    return [entry.strip() for entry in entries if entry.strip()]


def input_env_names(name: str) -> List[str]:
    """Environment variable names that may carry the input ``name``."""
    upper = name.replace(" ", "_").upper()
    names = [f"INPUT_{upper}"]
    if "-" in upper:
        names.append(f"INPUT_{upper.replace('-', '_')}")
    return names


class ActionInputs(BaseModel):
    """Raw inputs of one action invocation."""

    # Build engine
    context: str = Field(".", description="Build context path")
    file: Optional[str] = Field(None, description="Path to the Dockerfile (default: <context>/Dockerfile)")
    platforms: List[str] = Field(default_factory=list, description="Target platforms, e.g. linux/amd64")
    build_args: List[str] = Field(default_factory=list, alias="build-args", description="Build-time variables")
    target: Optional[str] = Field(None, description="Target build stage")
    cache_from: List[str] = Field(default_factory=list, alias="cache-from", description="External cache sources")
    cache_to: List[str] = Field(default_factory=list, alias="cache-to", description="Cache export destinations")
    push: bool = Field(False, description="Push the image to the registry")
    load: bool = Field(False, description="Load the image into the local docker image store")
    no_cache: bool = Field(False, alias="no-cache", description="Do not use cache when building")
    pull: bool = Field(False, description="Always attempt to pull referenced images")
    provenance: Optional[str] = Field(None, description="Provenance attestation setting")
    sbom: Optional[str] = Field(None, description="SBOM attestation setting")

    # Tag modes
    tags: List[str] = Field(default_factory=list, description="Explicit image:tag references")
    images: List[str] = Field(default_factory=list, description="Repositories for generated tags")
    base_tag: Optional[str] = Field(None, alias="base-tag", description="Tag applied to every repository")
    targets: Optional[str] = Field(None, description="JSON array of {image, tag} objects")

    # Generated tag switches
    tag_latest: bool = Field(False, alias="tag-latest", description="Add latest on the default branch")
    tag_sha: bool = Field(False, alias="tag-sha", description="Add sha-<short sha>")
    include_ref_tags: bool = Field(False, alias="include-ref-tags", description="Add branch/tag/pr-N tag")
    include_semver_tags: bool = Field(
        False, alias="include-semver-tags", description="Add MAJOR and MAJOR.MINOR for semver base tags"
    )
    default_branch: Optional[str] = Field(
        None, alias="default-branch", description="Default branch name (default: from event payload)"
    )

    # Labels and reporting
    labels: List[str] = Field(default_factory=list, description="Custom key=value labels")
    metadata_labels: bool = Field(True, alias="metadata-labels", description="Generate labels from repository metadata")
    github_token: Optional[str] = Field(None, alias="github-token", description="Token for repository metadata lookups")
    summary: bool = Field(True, description="Write a job summary")

    class Config:
        populate_by_name = True
        extra = "ignore"

    @field_validator(*BOOL_INPUTS, mode="before")
    @classmethod
    def validate_bool(cls, v: Any) -> bool:
        """Parse boolean inputs"""
        return parse_bool(v)

    @field_validator(*COMMA_LIST_INPUTS, mode="before")
    @classmethod
    def validate_comma_list(cls, v: Any) -> Any:
        """Split comma or newline separated inputs"""
        if isinstance(v, str):
            return split_list(v, commas=True)
        return v

    @field_validator(*LINE_LIST_INPUTS, mode="before")
    @classmethod
    def validate_line_list(cls, v: Any) -> Any:
        """Split newline separated inputs"""
        if isinstance(v, str):
            return split_list(v)
        return v

    @field_validator(*OPTIONAL_TEXT_INPUTS, mode="before")
    @classmethod
    def validate_optional_text(cls, v: Any) -> Any:
        """Treat blank text inputs as unset"""
        if isinstance(v, str):
            return v.strip() or None
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ActionInputs":
        """Read inputs from ``INPUT_*`` environment variables.

        Blank values are treated as unset, matching how GitHub Actions passes
        optional inputs that were not provided.

        Raises:
            ConfigurationError: If any input fails validation
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, str] = {}
        for name, info in cls.model_fields.items():
            alias = info.alias or name
            for env_name in input_env_names(alias):
                value = environ.get(env_name, "")
                if value.strip():
                    data[alias] = value
                    break

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid action inputs",
                "Check the values passed to the action's 'with:' block",
                str(e),
            ) from e
