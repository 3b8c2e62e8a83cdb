"""Shared pytest fixtures for buildpush tests."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import pytest

from buildpush.engine import CommandResult, Engine
from buildpush.models import BuildRequest

PASSWORD = "s3cr3t-registry-token"


@dataclass
class EngineCall:
    """One recorded engine invocation."""

    args: list[str]
    input: str | None
    env: dict[str, str] | None
    stream: bool

    @property
    def subcommand(self) -> str:
        return self.args[1]


class FakeEngine(Engine):
    """Engine that records calls instead of spawning processes.

    *returncodes* maps a key to the exit code to return.  Keys are tried
    from most to least specific: the full argument string, the first two
    arguments, then the subcommand alone.  Anything unmatched exits 0.
    """

    def __init__(self, returncodes: dict[str, int] | None = None, binary: str = "docker"):
        super().__init__(binary)
        self.returncodes = dict(returncodes or {})
        self.calls: list[EngineCall] = []

    def _returncode(self, args: list[str]) -> int:
        for key in (" ".join(args), " ".join(args[:2]), args[0]):
            if key in self.returncodes:
                return self.returncodes[key]
        return 0

    def run(self, args, input=None, env=None, stream=False) -> CommandResult:
        cmd = [self.binary, *args]
        self.calls.append(EngineCall(cmd, input, dict(env) if env else None, stream))
        rc = self._returncode(args)
        stdout = "Docker version 27.0.1, build fake\n" if args == ["--version"] and rc == 0 else ""
        stderr = "" if rc == 0 else "%s failed" % args[0]
        return CommandResult(cmd, rc, stdout, stderr)

    @property
    def subcommands(self) -> list[str]:
        return [c.subcommand for c in self.calls]

    def calls_for(self, subcommand: str) -> list[EngineCall]:
        return [c for c in self.calls if c.subcommand == subcommand]


class FakeRegistryEngine(FakeEngine):
    """FakeEngine backed by an in-memory registry.

    ``push`` (and ``build --push``) record the pushed references, and
    ``manifest inspect`` succeeds only for references pushed earlier.
    """

    def __init__(self, pushed: set[str] | None = None, **kwargs):
        super().__init__(**kwargs)
        self.pushed: set[str] = pushed if pushed is not None else set()

    def run(self, args, input=None, env=None, stream=False) -> CommandResult:
        result = super().run(args, input=input, env=env, stream=stream)
        if args[0] == "manifest":
            rc = 0 if args[-1] in self.pushed else 1
            return CommandResult(result.args, rc, "", "" if rc == 0 else "no such manifest")
        if result.success and args[0] == "push":
            self.pushed.add(args[1])
        if result.success and args[0] == "build" and "--push" in args:
            self.pushed.update(args[i + 1] for i, a in enumerate(args) if a == "-t")
        return result


@pytest.fixture(autouse=True)
def isolate_environment(tmp_path: Path, monkeypatch):
    """Keep the host's CI variables and user config out of tests."""
    for name in list(os.environ):
        if name.startswith(("INPUT_", "BUILDPUSH_")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    monkeypatch.setenv("BUILDPUSH_CONFIG", str(tmp_path / "no-such-config.yaml"))


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def engine() -> FakeEngine:
    """Engine where the image is not in the registry and everything else succeeds."""
    return FakeEngine({"manifest": 1})


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A build context containing a Dockerfile."""
    d = tmp_path / "project"
    d.mkdir()
    (d / "Dockerfile").write_text("FROM alpine:3.20\n")
    return d


@pytest.fixture
def make_request(project_dir: Path):
    """Factory for valid requests; keyword arguments override fields."""

    def _make(**overrides) -> BuildRequest:
        fields = dict(
            project_path=str(project_dir),
            image_name="app",
            version="v1",
            registry_url="reg.example",
            registry_username="bot",
            registry_password=PASSWORD,
        )
        fields.update(overrides)
        return BuildRequest.create(**fields)

    return _make
