"""Reporting results back to the CI host."""

from __future__ import annotations

import logging
import os
from typing import Mapping

import click

from buildpush.models import BuildResult

logger = logging.getLogger(__name__)


def write_github_output(name: str, value: str, environ: Mapping[str, str] | None = None) -> bool:
    """Append ``name=value`` to the file named by ``$GITHUB_OUTPUT``.

    Returns:
        True if an output file was configured and written.
    """
    environ = os.environ if environ is None else environ
    output_file = environ.get("GITHUB_OUTPUT")
    if not output_file:
        return False
    with open(output_file, "a") as f:
        f.write(f"{name}={value}\n")
    return True


def write_outputs(result: BuildResult, environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Publish *result* as step outputs and echo them to stdout."""
    outputs = result.as_outputs()
    for name, value in outputs.items():
        write_github_output(name, value, environ)
        click.echo(f"{name}={value}")
    return outputs


def report_failure(message: str, environ: Mapping[str, str] | None = None) -> None:
    """Log a run failure; under GitHub Actions also annotate the workflow."""
    environ = os.environ if environ is None else environ
    logger.error("Action failed: %s", message)
    if environ.get("GITHUB_ACTIONS") == "true":
        # workflow commands need newlines escaped to stay on one line
        escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        click.echo(f"::error::Action failed: {escaped}")
