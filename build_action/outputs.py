"""Step outputs and job summary.

Outputs are appended to the ``GITHUB_OUTPUT`` file using the multi-line
``name<<delimiter`` form. Outside GitHub Actions they are printed instead.
"""

import os
import uuid
from typing import Dict, List, Mapping, Optional, TextIO, Union

import structlog

from .engine import BuildResult
from .models import BuildRequest, ResolvedTarget

logger = structlog.get_logger(__name__)

OutputValue = Union[str, bool, List[str]]


def format_output(value: OutputValue) -> str:
    if isinstance(value, list):
        return "\n".join(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def output_entry(name: str, value: OutputValue, multiline_only: bool = False) -> str:
    """Render one output in the GITHUB_OUTPUT file format.

    With ``multiline_only`` single-line values use the plain ``name=value`` form.
    """
    text = format_output(value)
    if multiline_only and "\n" not in text:
        return f"{name}={text}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{text}\n{delimiter}\n"


def set_outputs(
    outputs: Dict[str, OutputValue],
    environ: Optional[Mapping[str, str]] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Publish step outputs.

    Args:
        outputs: Output name to value
        environ: Environment mapping (default: os.environ)
        stream: Where to print outputs when GITHUB_OUTPUT is not set
    """
    environ = os.environ if environ is None else environ
    output_path = environ.get("GITHUB_OUTPUT")

    if not output_path:
        for name, value in outputs.items():
            print(output_entry(name, value, multiline_only=True), end="", file=stream)
        return

    with open(output_path, mode="a", encoding="utf-8") as f:
        for name, value in outputs.items():
            f.write(output_entry(name, value))
    logger.debug("Wrote step outputs", names=list(outputs))


def escape_cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def render_summary(
    request: BuildRequest,
    targets: List[ResolvedTarget],
    labels: List[str],
    result: Optional[BuildResult] = None,
    platforms: Optional[List[str]] = None,
    dry_run: bool = False,
) -> str:
    """Render a markdown job summary for one invocation."""
    if request.push:
        action = "build and push"
    elif request.load:
        action = "build and load"
    else:
        action = "build only"
    if dry_run:
        action += " (dry run)"

    lines = [
        "## Container image build",
        "",
        f"- **Mode:** `{request.mode.value}`",
        f"- **Action:** {action}",
        f"- **Platforms:** {', '.join(platforms) if platforms else 'default'}",
    ]
    if result and result.digest:
        lines.append(f"- **Digest:** `{result.digest}`")
    if result and result.imageid:
        lines.append(f"- **Image ID:** `{result.imageid}`")

    lines += ["", "### Tags", "", "| Image | Tag |", "| --- | --- |"]
    lines += [f"| `{escape_cell(t.repository)}` | `{escape_cell(t.tag)}` |" for t in targets]

    if labels:
        lines += ["", "### Labels", "", "| Key | Value |", "| --- | --- |"]
        for label in labels:
            key, _, value = label.partition("=")
            lines.append(f"| `{escape_cell(key)}` | {escape_cell(value)} |")

    return "\n".join(lines) + "\n"


def write_summary(markdown: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    """Append ``markdown`` to the job summary file, if the runner provides one."""
    environ = os.environ if environ is None else environ
    summary_path = environ.get("GITHUB_STEP_SUMMARY")
    if not summary_path:
        logger.debug("GITHUB_STEP_SUMMARY not set, skipping job summary")
        return False

    with open(summary_path, mode="a", encoding="utf-8") as f:
        f.write(markdown)
    return True
