"""Build-and-publish run sequencing.

A run moves through::

    INIT -> ENGINE_CHECKED -> AUTHENTICATED -> PROBED -> SKIPPED -> DONE
                                                      -> BUILT -> PUSHED -> DONE

and lands in FAILED from any step that fails.  This module is the only
place that decides between skipping and building.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from buildpush.builder import PushStrategy, build
from buildpush.engine import Engine, ensure_engine_available
from buildpush.errors import PipelineError, StepFailure, StepResult
from buildpush.models import BuildRequest, BuildResult
from buildpush.registry import image_exists, login, push_image

logger = logging.getLogger(__name__)


class Stage(Enum):
    INIT = "init"
    ENGINE_CHECKED = "engine-checked"
    AUTHENTICATED = "authenticated"
    PROBED = "probed"
    SKIPPED = "skipped"
    BUILT = "built"
    PUSHED = "pushed"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineOutcome:
    """Terminal state of a run plus the stages it went through."""

    stage: Stage = Stage.INIT
    result: BuildResult | None = None
    failure: StepFailure | None = None
    history: list[Stage] = field(default_factory=lambda: [Stage.INIT])

    @property
    def succeeded(self) -> bool:
        return self.stage is Stage.DONE

    def advance(self, stage: Stage) -> None:
        logger.debug("Stage: %s -> %s", self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)

    def fail(self, failure: StepFailure) -> PipelineOutcome:
        logger.debug("Stage: %s -> failed (%s)", self.stage.value, failure.kind.value)
        self.failure = failure
        self.stage = Stage.FAILED
        self.history.append(Stage.FAILED)
        return self

    def finish(self, result: BuildResult) -> PipelineOutcome:
        self.result = result
        self.advance(Stage.DONE)
        return self

    def unwrap(self) -> BuildResult:
        """Return the result, raising :class:`PipelineError` if the run failed."""
        if self.failure is not None:
            raise PipelineError(self.failure)
        if self.result is None:
            raise RuntimeError("pipeline has not finished (stage=%s)" % self.stage.value)
        return self.result


def _authenticate(outcome: PipelineOutcome, request: BuildRequest, engine: Engine) -> StepResult:
    step = ensure_engine_available(engine)
    if not step.success:
        return step
    outcome.advance(Stage.ENGINE_CHECKED)

    step = login(engine, request.registry_url, request.registry_username, request.registry_password)
    if not step.success:
        return step
    outcome.advance(Stage.AUTHENTICATED)
    return step


def run_pipeline(
        request: BuildRequest,
        engine: Engine,
        strategy: PushStrategy = PushStrategy.TAG_AND_PUSH,
        publish_latest: bool = False,
) -> PipelineOutcome:
    """Build and publish *request*'s image unless the registry already has it.

    Args:
        request: Validated run inputs.
        engine: Engine used for every step.
        strategy: ``TAG_AND_PUSH`` runs a separate publish step after the
            build; ``PUSH_ON_BUILD`` lets the build push and skips it.
        publish_latest: Also publish ``registry/name:latest``.

    Returns:
        PipelineOutcome in stage DONE (with a result) or FAILED.
    """
    outcome = PipelineOutcome()
    reference = request.reference

    step = _authenticate(outcome, request, engine)
    if not step.success:
        return outcome.fail(step.failure)

    exists = image_exists(engine, reference)
    outcome.advance(Stage.PROBED)

    if exists:
        logger.info("Image already exists, skipping build and push")
        outcome.advance(Stage.SKIPPED)
        return outcome.finish(BuildResult.for_reference(reference, skipped=True))

    step = build(engine, request, strategy=strategy, publish_latest=publish_latest)
    if not step.success:
        return outcome.fail(step.failure)
    outcome.advance(Stage.BUILT)

    if strategy is PushStrategy.TAG_AND_PUSH:
        step = push_image(engine, reference, publish_latest=publish_latest)
        if not step.success:
            return outcome.fail(step.failure)
    outcome.advance(Stage.PUSHED)

    logger.info("Build and push completed: %s", reference.qualified)
    return outcome.finish(BuildResult.for_reference(reference, skipped=False))


def check_only(request: BuildRequest, engine: Engine) -> PipelineOutcome:
    """Check engine, login and probe; never build.

    The result's ``skipped`` flag is True when the image already exists,
    i.e. when a separate build job can be skipped.
    """
    outcome = PipelineOutcome()
    step = _authenticate(outcome, request, engine)
    if not step.success:
        return outcome.fail(step.failure)

    exists = image_exists(engine, request.reference)
    outcome.advance(Stage.PROBED)
    return outcome.finish(BuildResult.for_reference(request.reference, skipped=exists))
