"""buildpush check command."""

from __future__ import annotations

import os
import sys

import click

from buildpush.config import lookup_input
from buildpush.orchestrator import check_only
from buildpush.outputs import report_failure, write_outputs
from ._common import _collect_params, _make_engine, _resolve_or_exit, engine_options, image_options


@click.command()
@image_options
@engine_options
def check(project_path, image_name, version, registry_url, registry_username,
          engine, timeout, config_path):
    """Check whether the image already exists, without building.

    Writes the same outputs as ``run``; ``skipped=true`` means the image
    is already in the registry and a build job can be skipped.
    """
    params = _collect_params(
        project_path=project_path,
        image_name=image_name,
        version=version,
        registry_url=registry_url,
        registry_username=registry_username,
    )
    # nothing is built, so the build context only has to be non-empty
    params["project-path"] = lookup_input("project-path", params, os.environ) or "."
    request, options = _resolve_or_exit(params, config_path, engine=engine, timeout=timeout)

    outcome = check_only(request, _make_engine(options))
    if not outcome.succeeded:
        report_failure(str(outcome.failure))
        sys.exit(1)

    write_outputs(outcome.result)
