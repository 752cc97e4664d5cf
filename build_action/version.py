"""Version of the installed build-action distribution."""

import os
from importlib import metadata

DISTRIBUTION_NAME = "build-action"


def get_version() -> str:
    """
    Read version from BUILD_ACTION_VERSION or the installed distribution.

    Priority:
    1. BUILD_ACTION_VERSION environment variable (set by the action from its ref)
    2. Version recorded in the installed distribution's metadata
    3. "unknown" when the package is imported without being installed

    Returns:
        str: Version string (e.g., "1.0.0")
    """
    if build_version := os.getenv("BUILD_ACTION_VERSION"):
        return build_version

    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = get_version()
