"""Image label assembly.

Labels either come from the metadata generator (when enabled) or from a fixed
fallback set built from the CI context. User supplied labels are merged on top
and always win on key collision.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import structlog

from .context import BuildContext
from .errors import ConfigurationError
from .metadata import (
    LABEL_AUTHORS,
    LABEL_CREATED,
    LABEL_REVISION,
    LABEL_SOURCE,
    LABEL_URL,
    LABEL_VERSION,
    MetadataGenerator,
)
from .models import BuildRequest, ResolvedTarget

logger = structlog.get_logger(__name__)


def parse_labels(lines: Iterable[str]) -> Dict[str, str]:
    """Parse ``key=value`` lines into an ordered mapping.

    Blank lines are skipped. Later keys replace earlier ones in place.

    Raises:
        ConfigurationError: If any line lacks ``=`` or has an empty key
    """
    labels: Dict[str, str] = {}
    bad_lines: List[str] = []

    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            bad_lines.append(f"line {number}: {line!r}")
            continue
        labels[key] = value.strip()

    if bad_lines:
        raise ConfigurationError(
            "Invalid labels, expected key=value",
            details="\n".join(bad_lines),
        )
    return labels


def format_labels(labels: Dict[str, str]) -> List[str]:
    return [f"{key}={value}" for key, value in labels.items()]


def merge_labels(generated: Dict[str, str], user: Dict[str, str]) -> Dict[str, str]:
    """Overlay user labels on generated ones, keeping generated key order."""
    merged = dict(generated)
    overridden = [key for key in user if key in generated and generated[key] != user[key]]
    if overridden:
        logger.debug("User labels override generated labels", keys=overridden)
    merged.update(user)
    return merged


def label_version(request: BuildRequest, targets: List[ResolvedTarget]) -> str:
    if request.base_tag:
        return request.base_tag
    return targets[0].tag if targets else ""


def fallback_labels(context: BuildContext, version: str, now: Optional[datetime] = None) -> Dict[str, str]:
    """Fixed label set used when metadata generation is disabled.

    Empty values are left out rather than written as blank labels.
    """
    created = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    candidates = {
        LABEL_CREATED: created,
        LABEL_REVISION: context.sha,
        LABEL_SOURCE: context.repository_url,
        LABEL_URL: context.run_url,
        LABEL_VERSION: version,
        LABEL_AUTHORS: context.actor,
    }
    return {key: value for key, value in candidates.items() if value}


def assemble_labels(
    request: BuildRequest,
    targets: List[ResolvedTarget],
    context: BuildContext,
    generator: Optional[MetadataGenerator] = None,
    now: Optional[datetime] = None,
) -> List[str]:
    """Build the final ``key=value`` label list for the build engine.

    Args:
        request: Resolved build request (carries user labels)
        targets: Resolved targets, already de-duplicated
        context: CI context for the fallback label set
        generator: Metadata generator; None selects the fallback label set
        now: Creation timestamp override

    Raises:
        ConfigurationError: If user labels are malformed
        MetadataError: If the metadata generator fails
    """
    user = parse_labels(request.labels)

    if generator is not None:
        images = list(dict.fromkeys(target.repository for target in targets))
        output = generator.generate(images, [target.ref for target in targets], format_labels(user))
        generated = parse_labels(output.labels)
        source = "metadata"
    else:
        generated = fallback_labels(context, label_version(request, targets), now=now)
        source = "fallback"

    labels = merge_labels(generated, user)
    logger.info("Assembled labels", source=source, count=len(labels), user_labels=len(user))
    return format_labels(labels)
