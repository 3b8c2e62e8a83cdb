"""Shared CLI infrastructure: logging setup, option decorators, input plumbing."""

from __future__ import annotations

import logging
import sys

import click

from buildpush.builder import PushStrategy
from buildpush.config import BuildpushConfig, RunOptions, resolve_request, resolve_run_options
from buildpush.engine import Engine
from buildpush.errors import InputValidationError
from buildpush.models import BuildRequest
from buildpush.outputs import report_failure

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool):
    """Configure logging based on verbosity.

    Uses explicit handler setup instead of ``logging.basicConfig`` which
    is silently a no-op when the root logger already has handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    fmt = ("%(asctime)s [%(levelname)s] %(name)s: %(message)s" if verbose
           else "%(message)s")

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
    root.addHandler(handler)


def image_options(f):
    """Inputs shared by every command: what to look for and where.

    There is no password option; the password is read from
    INPUT_REGISTRY-PASSWORD or INPUT_REGISTRY_PASSWORD so it never shows
    up in the process argv.
    """
    f = click.option("--registry-username", default=None, help="Registry username")(f)
    f = click.option("--registry-url", default=None, help="Registry host, e.g. ghcr.io")(f)
    f = click.option("--tag", "--image-version", "version", default=None, help="Image version tag")(f)
    f = click.option("--image-name", default=None, help="Image name without registry or tag")(f)
    f = click.option("--project-path", default=None, help="Build context directory")(f)
    return f


def engine_options(f):
    """Options controlling how the container engine is driven."""
    f = click.option("--config", "config_path", default=None, help="Path to config file")(f)
    f = click.option("--timeout", type=float, default=None,
                     help="Overall time budget in seconds for all engine calls")(f)
    f = click.option("--engine", default=None, help="Container engine binary (default: docker)")(f)
    return f


def _collect_params(**kwargs) -> dict:
    """Map click parameter names back to input names (``project_path`` -> ``project-path``)."""
    return {key.replace("_", "-"): value for key, value in kwargs.items() if value is not None}


def _resolve_or_exit(
        params: dict,
        config_path: str | None,
        engine: str | None = None,
        strategy: str | None = None,
        publish_latest: bool | None = None,
        timeout: float | None = None,
) -> tuple[BuildRequest, RunOptions]:
    """Resolve request and run options; report and exit on invalid inputs."""
    try:
        config = BuildpushConfig.discover(config_path)
        request = resolve_request(params, config=config)
        options = resolve_run_options(
            engine=engine,
            strategy=strategy,
            publish_latest=publish_latest,
            timeout=timeout,
            config=config,
        )
    except InputValidationError as e:
        report_failure(str(e))
        sys.exit(1)
    logger.debug("Run options: %s", options)
    return request, options


def _make_engine(options: RunOptions) -> Engine:
    return Engine(options.engine, timeout=options.timeout)


STRATEGY_CHOICE = click.Choice([s.value for s in PushStrategy])
