"""Container engine CLI execution.

Every registry and build operation is a call to the engine binary
(``docker`` by default) through :class:`Engine`.  Calls never raise:
spawn errors and timeouts come back as a :class:`CommandResult` with a
negative return code and the error text in ``stderr``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping

from buildpush.errors import FailureKind, StepResult

logger = logging.getLogger(__name__)

DEFAULT_ENGINE = "docker"

RC_SPAWN_ERROR = -1
RC_TIMEOUT = -2


@dataclass
class CommandResult:
    """Result of one engine invocation."""

    args: list[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def timed_out(self) -> bool:
        return self.returncode == RC_TIMEOUT

    @property
    def spawn_failed(self) -> bool:
        """True when the engine never produced an exit code of its own."""
        return self.returncode < 0

    @property
    def error_text(self) -> str:
        """Best available description of a failure, for error messages."""
        text = self.stderr.strip() or self.stdout.strip()
        if text:
            return text[-500:]
        if self.streamed:
            return "exit code %d (engine output above)" % self.returncode
        return "exit code %d" % self.returncode


class Engine:
    """Runs engine subcommands for a single pipeline run.

    Args:
        binary: Engine executable name or path.
        timeout: Overall wall-clock budget in seconds for all calls made
            through this instance.  Each call gets the remaining budget.
    """

    def __init__(self, binary: str = DEFAULT_ENGINE, timeout: float | None = None):
        self.binary = binary or DEFAULT_ENGINE
        self.timeout = timeout
        self._deadline = time.monotonic() + timeout if timeout else None

    def remaining(self) -> float | None:
        """Seconds left in the overall budget, or None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def run(
            self,
            args: list[str],
            input: str | None = None,
            env: Mapping[str, str] | None = None,
            stream: bool = False,
    ) -> CommandResult:
        """Execute ``<binary> <args...>``.

        Args:
            args: Engine subcommand and arguments.
            input: Text piped to stdin (e.g. a password).  Never logged.
            env: Variables merged over the caller's environment.
            stream: Let the engine write to our stdout/stderr instead of
                capturing, so long builds show progress in the CI log.

        Returns:
            CommandResult with the engine's exit status and output.
        """
        cmd = [self.binary, *args]
        timeout = self.remaining()
        if timeout is not None and timeout <= 0:
            logger.error("Time budget exhausted before: %s", " ".join(cmd))
            return CommandResult(cmd, RC_TIMEOUT, "", "Execution timed out (budget of %ss exhausted)" % self.timeout)

        proc_env = None
        if env:
            proc_env = dict(os.environ)
            proc_env.update(env)
            logger.debug("Engine env overrides (%d vars): %s", len(env), ", ".join(sorted(env)))

        logger.debug("Engine command: %s%s", " ".join(cmd), f" [timeout={timeout:.0f}s]" if timeout else "")

        t0 = time.monotonic()
        try:
            proc = subprocess.run(
                cmd,
                input=input,
                capture_output=not stream,
                text=True,
                env=proc_env,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            elapsed = time.monotonic() - t0
            logger.error("Engine command timed out after %.0fs: %s", elapsed, " ".join(cmd))
            return CommandResult(cmd, RC_TIMEOUT, "", "Execution timed out after %.0fs" % elapsed)
        except OSError as e:
            logger.debug("Engine command could not start: %s", e)
            return CommandResult(cmd, RC_SPAWN_ERROR, "", str(e))

        elapsed = time.monotonic() - t0
        logger.debug("Engine command rc=%d (%.1fs): %s", proc.returncode, elapsed, cmd[1] if len(cmd) > 1 else cmd[0])
        return CommandResult(cmd, proc.returncode, proc.stdout or "", proc.stderr or "", streamed=stream)


def failed_step(result: CommandResult, kind: FailureKind, message: str) -> StepResult:
    """Turn a failed engine call into a step failure of *kind*.

    A call that ran out of time budget is reported as a timeout regardless
    of which step made it.
    """
    if result.timed_out:
        return StepResult.fail(FailureKind.TIMEOUT, message, result.error_text)
    return StepResult.fail(kind, message, result.error_text)


def ensure_engine_available(engine: Engine) -> StepResult:
    """Check that the engine binary is installed and answers ``--version``."""
    result = engine.run(["--version"])
    if not result.success:
        return failed_step(
            result,
            FailureKind.ENGINE_UNAVAILABLE,
            "ensure %s is installed and running" % engine.binary,
        )
    lines = result.stdout.strip().splitlines()
    logger.info("Container engine available: %s", lines[0] if lines else engine.binary)
    return StepResult.ok()
