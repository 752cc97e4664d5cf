"""Error taxonomy for build-action.

Configuration problems are terminal: they fail the invocation immediately and
the caller fixes the inputs and re-runs. Collaborator failures (metadata
generator, build engine) are reported with the same shape.
"""

from typing import Sequence


class ActionError(Exception):
    """Base class for all build-action failures."""

    title = "Build action error"

    def __init__(self, message: str, suggestion: str = "", details: str = ""):
        full_message = message
        if suggestion:
            full_message += f"\n\n{suggestion}"
        if details:
            full_message += f"\n\n{details}"
        super().__init__(full_message)
        self.message = message
        self.suggestion = suggestion
        self.details = details

    def format(self) -> str:
        """Format error for console output with suggestions."""
        output = f"❌ {self.title}: {self.message}"
        if self.suggestion:
            output += f"\n   💡 {self.suggestion}"
        if self.details:
            output += f"\n   ℹ️  {self.details}"
        return output


class ConfigurationError(ActionError):
    """Raised for invalid input combinations or missing required inputs."""

    title = "Configuration error"


class MalformedInputError(ActionError):
    """Raised when JSON target entries are malformed.

    All offending entries are collected before raising so a single error
    reports every index that needs fixing.
    """

    title = "Malformed input"

    def __init__(self, message: str, indices: Sequence[int] = (), problems: Sequence[str] = ()):
        details = "\n".join(problems)
        super().__init__(message, "Each target must be an object with non-empty 'image' and 'tag'", details)
        self.indices = list(indices)
        self.problems = list(problems)


class MetadataError(ActionError):
    """Raised when the metadata generator cannot produce labels."""

    title = "Metadata error"


class BuildEngineError(ActionError):
    """Raised when the build engine exits unsuccessfully."""

    title = "Build failed"

    #: Number of trailing stderr lines shown in the formatted error
    STDERR_TAIL_LINES = 20

    def __init__(self, message: str, returncode: int = 1, stderr: str = ""):
        tail = "\n".join(stderr.strip().splitlines()[-self.STDERR_TAIL_LINES :])
        super().__init__(message, details=tail)
        self.returncode = returncode
        self.stderr = stderr
