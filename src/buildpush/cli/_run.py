"""buildpush run command."""

from __future__ import annotations

import logging
import sys

import click

from buildpush.orchestrator import run_pipeline
from buildpush.outputs import report_failure, write_outputs
from ._common import (
    STRATEGY_CHOICE,
    _collect_params,
    _make_engine,
    _resolve_or_exit,
    engine_options,
    image_options,
)

logger = logging.getLogger(__name__)


@click.command()
@image_options
@click.option("--dockerfile-name", default=None, help="Dockerfile name inside the project path")
@click.option("--args", "build_args", default=None, help="Extra build arguments, whitespace separated")
@click.option("--env", "build_env", default=None, help="KEY=VALUE lines (or a YAML mapping) for the build environment")
@click.option("--pull-latest/--no-pull-latest", default=None, help="Pull registry/name:latest as build cache first")
@click.option("--strategy", type=STRATEGY_CHOICE, default=None,
              help="tag-push: build then tag and push; build-push: push as part of the build")
@click.option("--publish-latest/--no-publish-latest", default=None, help="Also publish registry/name:latest")
@engine_options
def run(
        project_path, image_name, version, registry_url, registry_username,
        dockerfile_name, build_args, build_env, pull_latest, strategy, publish_latest,
        engine, timeout, config_path,
):
    """Build and push an image unless the registry already has it.

    Every input can also come from the environment as INPUT_<NAME>
    (e.g. INPUT_IMAGE_NAME), the way CI actions receive them.

    Examples:

      buildpush run --project-path . --image-name app --tag v1 \\
          --registry-url ghcr.io/acme --registry-username bot

      INPUT_REGISTRY_PASSWORD=... buildpush run --strategy build-push --args "--build-arg X=1"
    """
    params = _collect_params(
        project_path=project_path,
        image_name=image_name,
        version=version,
        registry_url=registry_url,
        registry_username=registry_username,
        dockerfile_name=dockerfile_name,
        args=build_args,
        env=build_env,
        pull_latest=pull_latest,
    )
    request, options = _resolve_or_exit(
        params, config_path,
        engine=engine, strategy=strategy, publish_latest=publish_latest, timeout=timeout,
    )

    outcome = run_pipeline(
        request,
        _make_engine(options),
        strategy=options.strategy,
        publish_latest=options.publish_latest,
    )
    if not outcome.succeeded:
        report_failure(str(outcome.failure))
        sys.exit(1)

    write_outputs(outcome.result)
