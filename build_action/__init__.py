"""Container image build action: tag resolution, labels and buildx delegation."""

from .errors import ActionError, BuildEngineError, ConfigurationError, MalformedInputError, MetadataError
from .models import BuildMode, BuildRequest, ResolvedTarget, TagFlags
from .tags import build_request, render_tags_list, resolve_targets

__all__ = [
    "ActionError",
    "BuildEngineError",
    "BuildMode",
    "BuildRequest",
    "ConfigurationError",
    "MalformedInputError",
    "MetadataError",
    "ResolvedTarget",
    "TagFlags",
    "build_request",
    "render_tags_list",
    "resolve_targets",
]
