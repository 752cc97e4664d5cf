"""Tag resolution and input validation.

Turns action inputs into the ordered, de-duplicated list of ``image:tag``
references handed to the build engine.

Three mutually exclusive modes are supported:
    explicit_tags   ``tags`` lists literal image:tag references
    auto_generated  ``images`` + ``base-tag``, expanded per repository
    json_targets    ``targets`` holds a JSON array of {image, tag} objects

Auto-generated tags are emitted per repository in a fixed order:
    1. repo:<base-tag>
    2. repo:sha-<short sha>          (tag-sha)
    3. repo:latest                   (tag-latest, default branch only)
    4. repo:<branch|tag|pr-N>        (include-ref-tags)
    5. repo:MAJOR, repo:MAJOR.MINOR  (include-semver-tags, semver base tag)

Every failure here is a configuration problem and is raised immediately.
"""

import json
import re
from typing import Iterable, List, Optional

import structlog

from .context import BuildContext
from .errors import ConfigurationError, MalformedInputError
from .inputs import ActionInputs
from .models import BuildMode, BuildRequest, ResolvedTarget, TagFlags

logger = structlog.get_logger(__name__)

LATEST_TAG = "latest"
SHORT_SHA_LENGTH = 7

SEMVER_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")
SHA_RE = re.compile(r"^[0-9a-fA-F]{7,}$")

# Input names that select each mode, in the order modes are reported
MODE_INPUTS = {
    BuildMode.EXPLICIT_TAGS: ("tags",),
    BuildMode.AUTO_GENERATED: ("images", "base-tag"),
    BuildMode.JSON_TARGETS: ("targets",),
}


def validate_push_load(push: bool, load: bool) -> None:
    """Reject requests that both push and load."""
    if push and load:
        raise ConfigurationError(
            "'push' and 'load' cannot both be true",
            "Push to a registry or load into the local image store, not both",
        )


def select_mode(inputs: ActionInputs) -> BuildMode:
    """Determine which tag mode the inputs select.

    Raises:
        ConfigurationError: If no mode or more than one mode is selected
    """
    present = {
        BuildMode.EXPLICIT_TAGS: bool(inputs.tags),
        BuildMode.AUTO_GENERATED: bool(inputs.images) or bool(inputs.base_tag),
        BuildMode.JSON_TARGETS: bool(inputs.targets),
    }
    selected = [mode for mode, is_present in present.items() if is_present]

    if not selected:
        raise ConfigurationError(
            "No tag mode selected",
            "Provide exactly one of: 'tags', 'images' with 'base-tag', or 'targets'",
        )
    if len(selected) > 1:
        described = ", ".join(f"{mode.value} ({'/'.join(MODE_INPUTS[mode])})" for mode in selected)
        raise ConfigurationError(
            f"Conflicting tag modes: {described}",
            "Provide exactly one of: 'tags', 'images' with 'base-tag', or 'targets'",
        )
    return selected[0]


def parse_image_ref(value: str) -> ResolvedTarget:
    """Split a literal ``image:tag`` reference.

    The tag is whatever follows the last ``:`` after the last ``/`` so a
    registry port is never mistaken for a tag. References without a tag
    resolve to ``latest``.
    """
    if "@" in value:
        raise ConfigurationError(f"Digest references cannot be used as build tags: {value}")

    name, sep, tag = value.rpartition(":")
    if not sep or "/" in tag:
        return ResolvedTarget(repository=value, tag=LATEST_TAG)
    if not name or not tag:
        raise ConfigurationError(f"Invalid image reference: {value!r}")
    return ResolvedTarget(repository=name, tag=tag)


def validate_repository(repository: str) -> None:
    """Repositories used for generated tags must not carry a tag or digest."""
    last_segment = repository.rsplit("/", 1)[-1]
    if "@" in repository or ":" in last_segment:
        raise ConfigurationError(
            f"Repository must not include a tag or digest: {repository}",
            "Use 'base-tag' to set the tag for generated references",
        )


def parse_json_targets(raw: str) -> List[ResolvedTarget]:
    """Parse the ``targets`` input.

    Every malformed element is collected first so the error names all
    offending indices at once.

    Raises:
        MalformedInputError: If the input is not a JSON array or any element is invalid
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"'targets' is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedInputError(f"'targets' must be a JSON array, got {type(data).__name__}")

    targets: List[ResolvedTarget] = []
    indices: List[int] = []
    problems: List[str] = []

    for index, element in enumerate(data):
        if not isinstance(element, dict):
            indices.append(index)
            problems.append(f"index {index}: expected an object, got {type(element).__name__}")
            continue

        missing = [key for key in ("image", "tag") if not isinstance(element.get(key), str) or not element[key].strip()]
        if missing:
            indices.append(index)
            problems.append(f"index {index}: missing or empty {', '.join(repr(key) for key in missing)}")
            continue

        targets.append(ResolvedTarget(repository=element["image"].strip(), tag=element["tag"].strip()))

    if indices:
        raise MalformedInputError(
            f"Malformed entries in 'targets' at indices: {', '.join(str(i) for i in indices)}",
            indices=indices,
            problems=problems,
        )
    return targets


def build_request(inputs: ActionInputs) -> BuildRequest:
    """Turn raw inputs into a BuildRequest for the selected mode.

    Raises:
        ConfigurationError: On push/load conflict or invalid mode selection
        MalformedInputError: On malformed JSON targets
    """
    validate_push_load(inputs.push, inputs.load)
    mode = select_mode(inputs)

    common = dict(push=inputs.push, load=inputs.load, labels=tuple(inputs.labels))

    if mode is BuildMode.EXPLICIT_TAGS:
        targets = tuple(parse_image_ref(tag) for tag in inputs.tags)
        return BuildRequest(mode=mode, targets=targets, **common)

    if mode is BuildMode.JSON_TARGETS:
        targets = tuple(parse_json_targets(inputs.targets or ""))
        return BuildRequest(mode=mode, targets=targets, **common)

    if not inputs.images:
        raise ConfigurationError("'base-tag' requires 'images'", "List one or more repositories in 'images'")
    if not inputs.base_tag:
        raise ConfigurationError("'images' requires 'base-tag'", "Set 'base-tag' to the tag applied to every image")
    for repository in inputs.images:
        validate_repository(repository)

    flags = TagFlags(
        tag_latest_on_default_branch=inputs.tag_latest,
        tag_sha=inputs.tag_sha,
        include_ref_tags=inputs.include_ref_tags,
        include_semver_tags=inputs.include_semver_tags,
    )
    return BuildRequest(
        mode=mode,
        repositories=tuple(inputs.images),
        base_tag=inputs.base_tag,
        flags=flags,
        **common,
    )


def semver_tags(base_tag: str) -> List[str]:
    """Return ``[MAJOR, MAJOR.MINOR]`` for a semver base tag, else nothing."""
    match = SEMVER_RE.match(base_tag)
    if not match:
        return []
    major, minor, _ = match.groups()
    return [major, f"{major}.{minor}"]


def sha_tag(sha: str) -> str:
    if not sha or not SHA_RE.match(sha):
        raise ConfigurationError(
            f"'tag-sha' requires a commit SHA, got {sha!r}",
            "Run inside GitHub Actions or set GITHUB_SHA",
        )
    return f"sha-{sha[:SHORT_SHA_LENGTH].lower()}"


def generate_tags(
    repository: str, base_tag: str, flags: TagFlags, context: BuildContext
) -> List[ResolvedTarget]:
    """Generate the tags for a single repository in the fixed order."""
    tags = [base_tag]

    if flags.tag_sha:
        tags.append(sha_tag(context.sha))

    if flags.tag_latest_on_default_branch:
        if context.is_default_branch:
            tags.append(LATEST_TAG)
        elif not context.default_branch:
            logger.warning("Default branch unknown, skipping latest tag", repository=repository)

    if flags.include_ref_tags:
        slug = context.ref_slug
        if slug:
            tags.append(slug)
        else:
            logger.warning("No branch, tag or pull request ref, skipping ref tag", ref=context.ref)

    if flags.include_semver_tags:
        tags.extend(semver_tags(base_tag))

    return [ResolvedTarget(repository=repository, tag=tag) for tag in tags]


def dedupe(targets: Iterable[ResolvedTarget]) -> List[ResolvedTarget]:
    """Drop repeated targets, keeping the first occurrence of each."""
    seen = set()
    unique: List[ResolvedTarget] = []
    for target in targets:
        if target not in seen:
            seen.add(target)
            unique.append(target)
    return unique


def resolve_targets(request: BuildRequest, context: Optional[BuildContext] = None) -> List[ResolvedTarget]:
    """Resolve the final target list for a request.

    Raises:
        ConfigurationError: On push/load conflict or an empty result
    """
    validate_push_load(request.push, request.load)
    context = context or BuildContext()

    if request.mode is BuildMode.AUTO_GENERATED:
        candidates: List[ResolvedTarget] = []
        for repository in request.repositories:
            candidates.extend(generate_tags(repository, request.base_tag or "", request.flags, context))
    else:
        candidates = list(request.targets)

    targets = dedupe(candidates)
    if not targets:
        raise ConfigurationError(
            "No image tags resolved",
            "Provide at least one tag, repository or target",
        )

    dropped = len(candidates) - len(targets)
    logger.info("Resolved image tags", mode=request.mode.value, count=len(targets), duplicates_dropped=dropped)
    for target in targets:
        logger.debug("Resolved tag", ref=target.ref)
    return targets


def render_tags_list(targets: Iterable[ResolvedTarget]) -> str:
    """Render targets as a newline-delimited ``image:tag`` list."""
    return "\n".join(target.ref for target in targets)
