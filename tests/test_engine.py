"""Tests for buildpush.engine (subprocess execution and availability check)."""

from __future__ import annotations

import subprocess
from unittest import mock

from buildpush.engine import (
    RC_SPAWN_ERROR,
    RC_TIMEOUT,
    CommandResult,
    Engine,
    ensure_engine_available,
)
from buildpush.errors import FailureKind

from conftest import FakeEngine


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


# ---------------------------------------------------------------------------
# Engine.run
# ---------------------------------------------------------------------------

@mock.patch("buildpush.engine.subprocess.run")
def test_run_prefixes_binary(mock_run):
    mock_run.return_value = _completed(stdout="ok\n")

    result = Engine("podman").run(["image", "ls"])

    assert result.success
    assert result.args == ["podman", "image", "ls"]
    assert mock_run.call_args.args[0] == ["podman", "image", "ls"]
    assert mock_run.call_args.kwargs["capture_output"] is True


@mock.patch("buildpush.engine.subprocess.run")
def test_run_passes_input_on_stdin(mock_run):
    mock_run.return_value = _completed()

    Engine().run(["login", "reg.example", "-u", "bot", "--password-stdin"], input="hunter2")

    _, kwargs = mock_run.call_args
    assert kwargs["input"] == "hunter2"
    assert "hunter2" not in mock_run.call_args.args[0]


@mock.patch("buildpush.engine.subprocess.run")
def test_run_without_env_inherits(mock_run):
    mock_run.return_value = _completed()

    Engine().run(["--version"])

    assert mock_run.call_args.kwargs["env"] is None


@mock.patch("buildpush.engine.subprocess.run")
def test_run_env_overrides_merge_over_environment(mock_run, monkeypatch):
    monkeypatch.setenv("KEEP_ME", "inherited")
    monkeypatch.setenv("OVERRIDE_ME", "old")
    mock_run.return_value = _completed()

    Engine().run(["build", "."], env={"OVERRIDE_ME": "new", "ADDED": "1"})

    env = mock_run.call_args.kwargs["env"]
    assert env["KEEP_ME"] == "inherited"
    assert env["OVERRIDE_ME"] == "new"
    assert env["ADDED"] == "1"


@mock.patch("buildpush.engine.subprocess.run")
def test_run_stream_does_not_capture(mock_run):
    mock_run.return_value = _completed()

    result = Engine().run(["build", "."], stream=True)

    assert mock_run.call_args.kwargs["capture_output"] is False
    assert result.stdout == ""
    assert result.stderr == ""


@mock.patch("buildpush.engine.subprocess.run")
def test_run_nonzero_exit(mock_run):
    mock_run.return_value = _completed(returncode=1, stderr="manifest unknown\n")

    result = Engine().run(["manifest", "inspect", "reg.example/app:v1"])

    assert not result.success
    assert not result.spawn_failed
    assert result.error_text == "manifest unknown"


@mock.patch("buildpush.engine.subprocess.run")
def test_run_missing_binary_does_not_raise(mock_run):
    mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "docker")

    result = Engine().run(["--version"])

    assert result.returncode == RC_SPAWN_ERROR
    assert result.spawn_failed
    assert "No such file or directory" in result.stderr


@mock.patch("buildpush.engine.subprocess.run")
def test_run_timeout_does_not_raise(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="docker", timeout=5)

    result = Engine(timeout=5).run(["build", "."])

    assert result.returncode == RC_TIMEOUT
    assert result.timed_out
    assert "timed out" in result.stderr


@mock.patch("buildpush.engine.subprocess.run")
def test_run_passes_remaining_budget_as_timeout(mock_run):
    mock_run.return_value = _completed()

    Engine(timeout=600).run(["pull", "reg.example/app:latest"])

    timeout = mock_run.call_args.kwargs["timeout"]
    assert 0 < timeout <= 600


@mock.patch("buildpush.engine.subprocess.run")
def test_run_unbounded_has_no_timeout(mock_run):
    mock_run.return_value = _completed()

    Engine().run(["--version"])

    assert mock_run.call_args.kwargs["timeout"] is None


@mock.patch("buildpush.engine.subprocess.run")
def test_run_exhausted_budget_does_not_spawn(mock_run):
    engine = Engine(timeout=30)
    with mock.patch.object(engine, "remaining", return_value=0.0):
        result = engine.run(["build", "."])

    mock_run.assert_not_called()
    assert result.timed_out


def test_error_text_falls_back_to_exit_code():
    result = CommandResult(["docker", "push", "x"], 3, "", "")
    assert result.error_text == "exit code 3"


@mock.patch("buildpush.engine.subprocess.run")
def test_streamed_failure_points_at_engine_output(mock_run):
    mock_run.return_value = _completed(returncode=1, stdout=None, stderr=None)

    result = Engine().run(["build", "."], stream=True)

    assert mock_run.call_args.kwargs["capture_output"] is False
    assert result.streamed
    assert result.error_text == "exit code 1 (engine output above)"


# ---------------------------------------------------------------------------
# ensure_engine_available
# ---------------------------------------------------------------------------

def test_engine_available():
    engine = FakeEngine()

    step = ensure_engine_available(engine)

    assert step.success
    assert engine.calls[0].args == ["docker", "--version"]


def test_engine_unavailable_nonzero():
    engine = FakeEngine({"--version": 1})

    step = ensure_engine_available(engine)

    assert not step.success
    assert step.failure.kind is FailureKind.ENGINE_UNAVAILABLE
    assert "--version failed" in step.failure.detail


@mock.patch("buildpush.engine.subprocess.run")
def test_engine_unavailable_binary_missing(mock_run):
    mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "docker")

    step = ensure_engine_available(Engine())

    assert step.failure.kind is FailureKind.ENGINE_UNAVAILABLE
    assert "No such file or directory" in str(step.failure)


def test_engine_check_timeout_reported_as_timeout():
    engine = FakeEngine({"--version": RC_TIMEOUT})

    step = ensure_engine_available(engine)

    assert step.failure.kind is FailureKind.TIMEOUT
