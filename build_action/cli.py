#!/usr/bin/env python3
"""
Build Action CLI

Command-line interface used by the composite action (see action.yml).
All action inputs are read from INPUT_* environment variables and the CI
context from GITHUB_* variables.

Commands:
    resolve     Resolve and print the final image:tag list
    labels      Resolve and print the image labels
    build       Resolve tags and labels, run the build, publish outputs

Usage:
    python -m build_action resolve [--output text|json]
    python -m build_action labels
    python -m build_action build [--dry-run]

Module: cli
"""

import json
import os
import sys

import click
from dotenv import load_dotenv

from .context import BuildContext
from .errors import ActionError
from .inputs import ActionInputs
from .labels import assemble_labels
from .log_config import configure_logging
from .outputs import set_outputs
from .runner import metadata_generator_for, resolve, run_action
from .tags import render_tags_list
from .version import __version__


def format_json(data, pretty: bool = True) -> str:
    """Format data as JSON string"""
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, ensure_ascii=False)


def escape_annotation(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def handle_error(error: Exception, verbose: bool = False) -> None:
    """Handle and format errors"""
    if isinstance(error, ActionError):
        click.echo(error.format(), err=True)
        if os.getenv("GITHUB_ACTIONS") == "true":
            click.echo(f"::error title={error.title}::{escape_annotation(str(error))}")
    else:
        click.echo(f"Error: {error}", err=True)
    if verbose:
        import traceback

        traceback.print_exc()
    sys.exit(1)


def load_inputs() -> tuple:
    inputs = ActionInputs.from_env()
    context = BuildContext.from_env(default_branch=inputs.default_branch)
    return inputs, context


@click.group()
@click.version_option(version=__version__, prog_name="build-action")
def cli():
    """
    Container image build action

    Resolves image tags and labels from action inputs and delegates the
    build to docker buildx.
    """
    load_dotenv()
    configure_logging()


@cli.command(name="resolve")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format",
    show_default=True,
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose error output")
def resolve_command(output: str, verbose: bool):
    """
    Resolve the final image:tag list

    Examples:
        INPUT_TAGS=ghcr.io/org/app:1.0 build-action resolve
        INPUT_IMAGES=ghcr.io/org/app INPUT_BASE_TAG=v1.2.3 build-action resolve -o json
    """
    try:
        inputs, context = load_inputs()
        request, targets = resolve(inputs, context)

        if output == "json":
            payload = {
                "mode": request.mode.value,
                "tags": [target.ref for target in targets],
                "targets": [{"image": target.repository, "tag": target.tag} for target in targets],
            }
            click.echo(format_json(payload))
        else:
            click.echo(render_tags_list(targets))

        if os.getenv("GITHUB_OUTPUT"):
            set_outputs({"tags_list": render_tags_list(targets)})

    except Exception as e:
        handle_error(e, verbose)


@cli.command(name="labels")
@click.option("--verbose", "-v", is_flag=True, help="Verbose error output")
def labels_command(verbose: bool):
    """
    Print the labels that would be applied to the image

    Examples:
        INPUT_TAGS=app:dev INPUT_METADATA_LABELS=false build-action labels
    """
    try:
        inputs, context = load_inputs()
        request, targets = resolve(inputs, context)
        labels = assemble_labels(request, targets, context, generator=metadata_generator_for(inputs, context))
        for label in labels:
            click.echo(label)

    except Exception as e:
        handle_error(e, verbose)


@cli.command(name="build")
@click.option("--dry-run", is_flag=True, help="Resolve everything but do not run the build engine")
@click.option("--verbose", "-v", is_flag=True, help="Verbose error output")
def build_command(dry_run: bool, verbose: bool):
    """
    Resolve tags and labels, build the image and publish step outputs

    Examples:
        build-action build
        build-action build --dry-run
    """
    try:
        inputs, context = load_inputs()
        result = run_action(inputs, context, dry_run=dry_run)
        click.echo(result.tags_list)

    except Exception as e:
        handle_error(e, verbose)


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
