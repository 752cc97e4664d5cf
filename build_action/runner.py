"""Orchestrates one action invocation.

resolve tags -> assemble labels -> build -> publish outputs and summary
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import structlog

from .context import BuildContext
from .engine import BuildEngine, BuildOptions, BuildResult, BuildxEngine
from .inputs import ActionInputs
from .labels import assemble_labels
from .metadata import GitHubMetadataGenerator, MetadataGenerator
from .models import BuildRequest, ResolvedTarget
from .outputs import OutputValue, render_summary, set_outputs, write_summary
from .tags import build_request, render_tags_list, resolve_targets

logger = structlog.get_logger(__name__)


@dataclass
class ActionResult:
    request: BuildRequest
    targets: List[ResolvedTarget]
    labels: List[str]
    build: BuildResult = field(default_factory=BuildResult)

    @property
    def tags_list(self) -> str:
        return render_tags_list(self.targets)

    def outputs(self) -> Dict[str, OutputValue]:
        return {
            "tags_list": self.tags_list,
            "labels": self.labels,
            "imageid": self.build.imageid,
            "digest": self.build.digest,
            "metadata": self.build.metadata,
        }


def resolve(inputs: ActionInputs, context: BuildContext) -> Tuple[BuildRequest, List[ResolvedTarget]]:
    """Validate inputs and resolve the target list."""
    request = build_request(inputs)
    return request, resolve_targets(request, context)


def metadata_generator_for(inputs: ActionInputs, context: BuildContext) -> Optional[MetadataGenerator]:
    if not inputs.metadata_labels:
        return None
    return GitHubMetadataGenerator(context, token=inputs.github_token)


def run_action(
    inputs: ActionInputs,
    context: BuildContext,
    engine: Optional[BuildEngine] = None,
    generator: Optional[MetadataGenerator] = None,
    environ: Optional[Mapping[str, str]] = None,
    dry_run: bool = False,
) -> ActionResult:
    """Run a full invocation.

    Args:
        inputs: Parsed action inputs
        context: CI context
        engine: Build engine (default: docker buildx)
        generator: Metadata generator; ignored when metadata labels are disabled
        environ: Environment used for outputs and summary (default: os.environ)
        dry_run: Resolve everything but do not invoke the build engine

    Raises:
        ConfigurationError: Invalid input combination
        MalformedInputError: Malformed JSON targets
        MetadataError: Metadata generator failure
        BuildEngineError: Build failure
    """
    environ = os.environ if environ is None else environ

    request, targets = resolve(inputs, context)

    if inputs.metadata_labels:
        generator = generator or metadata_generator_for(inputs, context)
    else:
        generator = None
    labels = assemble_labels(request, targets, context, generator=generator)

    engine = engine or BuildxEngine(dry_run=dry_run)
    options = BuildOptions.from_inputs(inputs, [target.ref for target in targets], labels)
    build = engine.build(options)

    result = ActionResult(request=request, targets=targets, labels=labels, build=build)
    set_outputs(result.outputs(), environ=environ)

    if inputs.summary:
        markdown = render_summary(request, targets, labels, build, platforms=inputs.platforms, dry_run=dry_run)
        write_summary(markdown, environ=environ)

    logger.info(
        "Build action completed",
        mode=request.mode.value,
        tags=len(targets),
        push=request.push,
        load=request.load,
        digest=build.digest or None,
    )
    return result
