"""Image build step.

Two strategies are supported and selected once per run:

- ``tag-push``: build ``name:tag`` locally; the publisher then tags it
  with the registry address and pushes.
- ``build-push``: build straight to ``registry/name:tag`` with ``--push``
  so the engine uploads as part of the build.
"""

from __future__ import annotations

import logging
import re
from enum import Enum

import yaml

from buildpush.engine import Engine, failed_step
from buildpush.errors import FailureKind, InputValidationError, StepResult
from buildpush.models import LATEST_TAG, BuildRequest
from buildpush.registry import pull_image

logger = logging.getLogger(__name__)

_KEY_VALUE_LINE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")


class PushStrategy(Enum):
    TAG_AND_PUSH = "tag-push"
    PUSH_ON_BUILD = "build-push"

    @classmethod
    def parse(cls, value: str | PushStrategy | None) -> PushStrategy:
        if value is None or value == "":
            return cls.TAG_AND_PUSH
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise InputValidationError(["strategy must be one of %s, got %r" % (choices, value)])


def split_build_args(raw: str | None) -> list[str]:
    """Split the free-form ``args`` input on whitespace."""
    return raw.split() if raw else []


def parse_env_mapping(text: str | None) -> dict[str, str]:
    """Parse the ``env`` input into a variable mapping.

    Accepts either ``KEY=VALUE`` lines (blank lines and ``#`` comments
    ignored)::

        NODE_ENV=production
        API_URL=https://example.com

    or, when no line is in that form, a YAML mapping::

        NODE_ENV: production
        API_URL: https://example.com

    Values are kept exactly as written; YAML scalars are not converted to
    numbers or booleans.

    Raises:
        InputValidationError: If a line is not ``KEY=VALUE``, a YAML value
            is not a scalar, or a key contains ``=``.
    """
    if not text or not text.strip():
        return {}

    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]

    if not any(_KEY_VALUE_LINE.match(line) for line in lines):
        try:
            data = yaml.load(text, Loader=yaml.BaseLoader)
        except yaml.YAMLError:
            data = None
        if isinstance(data, dict):
            return _env_from_yaml(data)

    env: dict[str, str] = {}
    for line in lines:
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            raise InputValidationError(["env entries must be KEY=VALUE, got: %s" % line])
        env[key] = value.strip()
    return env


def _env_from_yaml(data: dict) -> dict[str, str]:
    env: dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(key, str) or "=" in key:
            raise InputValidationError(["env names must not contain '=', got: %s" % key])
        if not isinstance(value, str):
            raise InputValidationError(["env value for %s must be a single string" % key])
        env[key] = value
    return env


def build_command(
        request: BuildRequest,
        strategy: PushStrategy = PushStrategy.TAG_AND_PUSH,
        publish_latest: bool = False,
) -> list[str]:
    """Assemble the engine ``build`` arguments for *request*.

    Returns:
        Argument list (without the engine binary).
    """
    reference = request.reference
    if strategy is PushStrategy.PUSH_ON_BUILD:
        tags = [reference.qualified]
        if publish_latest and reference.tag != LATEST_TAG:
            tags.append(reference.with_tag(LATEST_TAG).qualified)
    else:
        tags = [reference.local]

    parts = ["build"]
    for tag in tags:
        parts.extend(["-t", tag])
    parts.extend(["-f", str(request.dockerfile_path)])
    parts.extend(split_build_args(request.args))
    parts.append(str(request.project_path))
    if strategy is PushStrategy.PUSH_ON_BUILD:
        parts.append("--push")
    return parts


def build(
        engine: Engine,
        request: BuildRequest,
        strategy: PushStrategy = PushStrategy.TAG_AND_PUSH,
        publish_latest: bool = False,
) -> StepResult:
    """Build the image described by *request*.

    The Dockerfile is checked before anything runs.  When
    ``request.pull_latest`` is set, ``registry/name:latest`` is pulled
    first as a layer cache; a failed pull only logs a warning.

    Args:
        engine: Engine to build with.
        request: The run's inputs.
        strategy: Whether the build also pushes.
        publish_latest: With ``build-push``, also tag and push ``latest``.

    Returns:
        StepResult; ``DOCKERFILE_MISSING`` or ``BUILD_FAILURE`` on failure.
    """
    dockerfile = request.dockerfile_path
    if not dockerfile.is_file():
        return StepResult.fail(FailureKind.DOCKERFILE_MISSING, "Dockerfile not found at: %s" % dockerfile)

    if request.pull_latest:
        cache_image = request.reference.with_tag(LATEST_TAG).qualified
        pulled = pull_image(engine, cache_image)
        if not pulled.success:
            logger.warning("Could not pull %s, building without cache: %s", cache_image, pulled.error_text)

    target = request.reference.qualified if strategy is PushStrategy.PUSH_ON_BUILD else request.reference.local
    logger.info("Building %s from %s", target, dockerfile)
    result = engine.run(build_command(request, strategy, publish_latest), env=request.env or None, stream=True)
    if not result.success:
        return failed_step(result, FailureKind.BUILD_FAILURE, target)

    logger.info("Successfully built: %s", target)
    return StepResult.ok()
