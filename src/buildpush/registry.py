"""Container image registry operations.

Login, existence probe, pull and push, all through the engine CLI.
"""

from __future__ import annotations

import logging

from buildpush.engine import CommandResult, Engine, failed_step
from buildpush.errors import FailureKind, StepResult
from buildpush.models import LATEST_TAG, ImageReference

logger = logging.getLogger(__name__)


def login(engine: Engine, registry_url: str, username: str, password: str) -> StepResult:
    """Log into a registry.

    The password goes to the engine on stdin (``--password-stdin``) so it
    never shows up in a process listing or in the command logged at debug.

    Args:
        engine: Engine to run the login with.
        registry_url: Registry host (e.g. ``ghcr.io``).
        username: Registry username.
        password: Registry password or token.

    Returns:
        StepResult; ``AUTH_FAILURE`` if the engine rejects the login.
    """
    result = engine.run(
        ["login", registry_url, "-u", username, "--password-stdin"],
        input=password,
    )
    if not result.success:
        return failed_step(result, FailureKind.AUTH_FAILURE, registry_url)
    logger.info("Logged into registry: %s", registry_url)
    return StepResult.ok()


def image_exists(engine: Engine, reference: ImageReference) -> bool:
    """Check if an image is already present in its registry.

    Uses ``manifest inspect`` so nothing is downloaded.  Any failure,
    including a probe that could not run at all, is reported as "does not
    exist" so the caller goes on to build; the log line tells the two
    cases apart.

    Args:
        engine: Engine to run the probe with.
        reference: Image to look for (its qualified form is used).

    Returns:
        True only when the engine confirmed the manifest exists.
    """
    image = reference.qualified
    result = engine.run(["manifest", "inspect", image])
    if result.success:
        logger.info("Image %s exists", image)
        return True
    if result.spawn_failed:
        logger.warning(
            "Could not check image %s (%s); assuming it does not exist",
            image, result.error_text,
        )
    else:
        logger.info("Image %s does not exist", image)
        logger.debug("manifest inspect rc=%d: %s", result.returncode, result.error_text)
    return False


def pull_image(engine: Engine, image: str) -> CommandResult:
    """Pull an image; the caller decides whether failure matters.

    Args:
        engine: Engine to pull with.
        image: Image reference to pull.

    Returns:
        The engine's CommandResult.
    """
    logger.info("Pulling image: %s...", image)
    result = engine.run(["pull", image], stream=True)
    if result.success:
        logger.info("Pulled image: %s", image)
    return result


def _tag_and_push(engine: Engine, source: str, target: str) -> StepResult:
    result = engine.run(["tag", source, target])
    if not result.success:
        return failed_step(result, FailureKind.PUSH_FAILURE, "tag %s as %s" % (source, target))
    result = engine.run(["push", target], stream=True)
    if not result.success:
        return failed_step(result, FailureKind.PUSH_FAILURE, target)
    logger.info("Pushed: %s", target)
    return StepResult.ok()


def push_image(engine: Engine, reference: ImageReference, publish_latest: bool = False) -> StepResult:
    """Tag the locally built image with its registry address and push it.

    With *publish_latest*, ``registry/name:latest`` is tagged and pushed
    too, and must succeed as well.

    Args:
        engine: Engine to tag and push with.
        reference: Reference whose local form (``name:tag``) was built.
        publish_latest: Also publish the floating ``latest`` tag.

    Returns:
        StepResult; ``PUSH_FAILURE`` naming the reference that failed.
    """
    targets = [reference.qualified]
    if publish_latest and reference.tag != LATEST_TAG:
        targets.append(reference.with_tag(LATEST_TAG).qualified)

    for target in targets:
        step = _tag_and_push(engine, reference.local, target)
        if not step.success:
            return step
    return StepResult.ok()
