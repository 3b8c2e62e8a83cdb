"""Failure taxonomy for the build-and-publish pipeline.

Pipeline steps never raise for engine failures.  Each step returns a
:class:`StepResult` whose :class:`StepFailure` names one member of the
closed :class:`FailureKind` enumeration.  Only request construction raises
(:class:`InputValidationError`), because it happens before any engine
command runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(Enum):
    """Every way a run can fail."""

    INPUT_VALIDATION = "input-validation"
    ENGINE_UNAVAILABLE = "engine-unavailable"
    AUTH_FAILURE = "auth-failure"
    BUILD_FAILURE = "build-failure"
    DOCKERFILE_MISSING = "dockerfile-missing"
    PUSH_FAILURE = "push-failure"
    TIMEOUT = "timeout"

    @property
    def prefix(self) -> str:
        """Human-readable phase prefix used when reporting the failure."""
        return _PREFIXES[self]

    @property
    def is_build_failure(self) -> bool:
        return self in (FailureKind.BUILD_FAILURE, FailureKind.DOCKERFILE_MISSING)


_PREFIXES = {
    FailureKind.INPUT_VALIDATION: "Invalid inputs",
    FailureKind.ENGINE_UNAVAILABLE: "Container engine is not available",
    FailureKind.AUTH_FAILURE: "Failed to login to registry",
    FailureKind.BUILD_FAILURE: "Failed to build",
    FailureKind.DOCKERFILE_MISSING: "Failed to build",
    FailureKind.PUSH_FAILURE: "Failed to push",
    FailureKind.TIMEOUT: "Timed out",
}


@dataclass(frozen=True)
class StepFailure:
    """A fatal step failure.

    Attributes:
        kind: Which phase failed.
        message: Short description of what was being attempted.
        detail: Underlying error text (engine stderr, spawn error, ...).
    """

    kind: FailureKind
    message: str
    detail: str = ""

    def __str__(self) -> str:
        text = "%s: %s" % (self.kind.prefix, self.message)
        if self.detail:
            text += ": %s" % self.detail
        return text


@dataclass(frozen=True)
class StepResult:
    """Outcome of a single pipeline step."""

    failure: StepFailure | None = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls) -> StepResult:
        return cls()

    @classmethod
    def fail(cls, kind: FailureKind, message: str, detail: str = "") -> StepResult:
        return cls(failure=StepFailure(kind=kind, message=message, detail=detail))


class InputValidationError(Exception):
    """Required inputs are missing or malformed."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))

    def as_failure(self) -> StepFailure:
        return StepFailure(FailureKind.INPUT_VALIDATION, "; ".join(self.problems))


class PipelineError(Exception):
    """Raised by :meth:`PipelineOutcome.unwrap` when a run failed."""

    def __init__(self, failure: StepFailure):
        self.failure = failure
        super().__init__(str(failure))
