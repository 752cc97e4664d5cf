"""Build engine invocation.

The build itself (layers, cache, multi-arch emulation, push) is performed by
``docker buildx build``. This module only translates resolved options into a
command line and reads back the image id, digest and metadata it reports.
"""

import json
import shlex
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

import structlog

from .errors import BuildEngineError
from .inputs import ActionInputs

logger = structlog.get_logger(__name__)

DIGEST_KEY = "containerimage.digest"


@dataclass
class BuildOptions:
    """Everything the build engine needs for one build."""

    context: str = "."
    file: Optional[str] = None
    platforms: List[str] = field(default_factory=list)
    build_args: List[str] = field(default_factory=list)
    target: Optional[str] = None
    cache_from: List[str] = field(default_factory=list)
    cache_to: List[str] = field(default_factory=list)
    push: bool = False
    load: bool = False
    no_cache: bool = False
    pull: bool = False
    provenance: Optional[str] = None
    sbom: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)

    @classmethod
    def from_inputs(cls, inputs: ActionInputs, tags: List[str], labels: List[str]) -> "BuildOptions":
        return cls(
            context=inputs.context,
            file=inputs.file,
            platforms=list(inputs.platforms),
            build_args=list(inputs.build_args),
            target=inputs.target,
            cache_from=list(inputs.cache_from),
            cache_to=list(inputs.cache_to),
            push=inputs.push,
            load=inputs.load,
            no_cache=inputs.no_cache,
            pull=inputs.pull,
            provenance=inputs.provenance,
            sbom=inputs.sbom,
            tags=list(tags),
            labels=list(labels),
        )


@dataclass
class BuildResult:
    """Build engine outputs, passed through unchanged."""

    imageid: str = ""
    digest: str = ""
    metadata: str = ""


class BuildEngine(Protocol):
    def build(self, options: BuildOptions) -> BuildResult: ...


class BuildxEngine:
    """Runs ``docker buildx build``."""

    def __init__(self, dry_run: bool = False, docker: str = "docker"):
        self.dry_run = dry_run
        self.docker = docker

    def command(self, options: BuildOptions, iidfile: Path, metadata_file: Path) -> List[str]:
        """Assemble the buildx command line for ``options``."""
        cmd = [self.docker, "buildx", "build"]

        if options.file:
            cmd += ["--file", options.file]
        if options.platforms:
            cmd += ["--platform", ",".join(options.platforms)]
        for build_arg in options.build_args:
            cmd += ["--build-arg", build_arg]
        if options.target:
            cmd += ["--target", options.target]
        for cache_from in options.cache_from:
            cmd += ["--cache-from", cache_from]
        for cache_to in options.cache_to:
            cmd += ["--cache-to", cache_to]
        for tag in options.tags:
            cmd += ["--tag", tag]
        for label in options.labels:
            cmd += ["--label", label]
        if options.push:
            cmd.append("--push")
        if options.load:
            cmd.append("--load")
        if options.no_cache:
            cmd.append("--no-cache")
        if options.pull:
            cmd.append("--pull")
        if options.provenance:
            cmd.append(f"--provenance={options.provenance}")
        if options.sbom:
            cmd.append(f"--sbom={options.sbom}")

        cmd += ["--iidfile", str(iidfile), "--metadata-file", str(metadata_file)]
        cmd.append(options.context)
        return cmd

    def _run_command(self, cmd: List[str]) -> subprocess.CompletedProcess:
        """Execute a command with its stdout sent to stderr.

        stderr is captured for error reporting and echoed once the command exits.
        """
        logger.info("Executing build engine", command=shlex.join(cmd))
        try:
            result = subprocess.run(cmd, check=False, stdout=sys.stderr, stderr=subprocess.PIPE, text=True)
        except FileNotFoundError as e:
            raise BuildEngineError(f"{self.docker} is not installed or not in PATH") from e

        if result.stderr:
            sys.stderr.write(result.stderr)
            sys.stderr.flush()
        return result

    def build(self, options: BuildOptions) -> BuildResult:
        """Build (and optionally push or load) the image.

        Raises:
            BuildEngineError: If the build engine exits unsuccessfully
        """
        with tempfile.TemporaryDirectory(prefix="build-action-") as tmp:
            iidfile = Path(tmp) / "iidfile"
            metadata_file = Path(tmp) / "metadata.json"
            cmd = self.command(options, iidfile, metadata_file)

            if self.dry_run:
                logger.info("DRY RUN: build engine not invoked", command=shlex.join(cmd))
                return BuildResult()

            result = self._run_command(cmd)
            if result.returncode != 0:
                raise BuildEngineError(
                    f"docker buildx build exited with status {result.returncode}",
                    returncode=result.returncode,
                    stderr=result.stderr or "",
                )

            return read_build_result(iidfile, metadata_file)


def read_build_result(iidfile: Path, metadata_file: Path) -> BuildResult:
    """Read image id, digest and raw metadata written by buildx."""
    imageid = iidfile.read_text().strip() if iidfile.exists() else ""
    metadata = metadata_file.read_text().strip() if metadata_file.exists() else ""

    digest = ""
    if metadata:
        try:
            parsed = json.loads(metadata)
        except json.JSONDecodeError:
            logger.warning("Build metadata is not valid JSON", path=str(metadata_file))
        else:
            if isinstance(parsed, dict):
                digest = parsed.get(DIGEST_KEY, "") or ""

    logger.info("Build completed", imageid=imageid, digest=digest)
    return BuildResult(imageid=imageid, digest=digest, metadata=metadata)
