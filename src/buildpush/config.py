"""Input resolution and user configuration for buildpush.

Each input is looked up, first non-empty wins, in:

1. the explicit parameter (CLI option),
2. the CI environment (``INPUT_PROJECT-PATH`` as set by the Actions
   runner, then ``INPUT_PROJECT_PATH``),
3. the YAML config file,
4. the built-in default.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from scitrera_app_framework import ext_parse_bool

from buildpush.builder import PushStrategy, parse_env_mapping
from buildpush.engine import DEFAULT_ENGINE
from buildpush.errors import InputValidationError
from buildpush.models import DEFAULT_DOCKERFILE, BuildRequest

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "buildpush"
CONFIG_ENV_VAR = "BUILDPUSH_CONFIG"


class BuildpushConfig:
    """Manages buildpush user configuration."""

    def __init__(self, config_path: Path | str | None = None):
        self.config_path = Path(config_path) if config_path else (DEFAULT_CONFIG_DIR / "config.yaml")
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def discover(cls, config_path: str | None = None, environ: Mapping[str, str] | None = None) -> BuildpushConfig:
        """Load from *config_path*, ``$BUILDPUSH_CONFIG`` or the default location."""
        environ = os.environ if environ is None else environ
        return cls(config_path or environ.get(CONFIG_ENV_VAR) or None)

    def _load(self):
        if self.config_path.exists():
            try:
                with open(self.config_path) as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise InputValidationError(["Could not read config file %s: %s" % (self.config_path, e)])
            self._data = data if isinstance(data, dict) else {}
            logger.debug("Loaded config from %s", self.config_path)
        else:
            self._data = {}

    @property
    def engine(self) -> str:
        return self._data.get("engine") or DEFAULT_ENGINE

    @property
    def strategy(self) -> str:
        return self._data.get("strategy") or PushStrategy.TAG_AND_PUSH.value

    @property
    def publish_latest(self) -> bool:
        return _parse_bool(self._data.get("publish_latest", False), "publish_latest")

    @property
    def timeout(self) -> float | None:
        value = self._data.get("timeout")
        if not value:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise InputValidationError([
                "timeout in %s must be a number of seconds, got %r" % (self.config_path, value),
            ])

    @property
    def defaults(self) -> dict[str, Any]:
        return self._data.get("defaults", {}) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        current = self._data
        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current


# ---------------------------------------------------------------------------
# Input lookup
# ---------------------------------------------------------------------------

def input_env_names(name: str) -> list[str]:
    """Environment variable names that may carry input *name*.

    The Actions runner keeps dashes (``INPUT_PROJECT-PATH``); shells cannot
    set those, so the underscore form is accepted as well.
    """
    upper = name.upper().replace(" ", "_")
    names = ["INPUT_%s" % upper]
    if "-" in upper:
        names.append("INPUT_%s" % upper.replace("-", "_"))
    return names


def lookup_input(
        name: str,
        params: Mapping[str, Any],
        environ: Mapping[str, str],
        default: Any = "",
) -> Any:
    """Return the first non-empty value for input *name*."""
    value = params.get(name)
    if value is not None and value != "":
        return value
    for env_name in input_env_names(name):
        value = environ.get(env_name)
        if value:
            return value
    return default


_BOOL_WORDS = ("true", "false", "yes", "no", "1", "0")


def _parse_bool(value: Any, name: str) -> bool:
    """Parse a boolean input, accepting only the words in ``_BOOL_WORDS``."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text not in _BOOL_WORDS:
        raise InputValidationError(["%s must be true or false, got %r" % (name, value)])
    return ext_parse_bool(text)


def resolve_request(
        params: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
        config: BuildpushConfig | None = None,
) -> BuildRequest:
    """Build a validated :class:`BuildRequest` from all input sources.

    Args:
        params: Explicit values keyed by input name (``"project-path"``...).
        environ: Environment to read ``INPUT_*`` variables from.
        config: Config file supplying defaults for optional inputs.

    Raises:
        InputValidationError: If a required input is empty, ``env`` is
            malformed or ``pull-latest`` is not a boolean word.
    """
    params = params or {}
    environ = os.environ if environ is None else environ
    defaults = config.defaults if config is not None else {}

    def get(name: str, default: Any = "") -> Any:
        return lookup_input(name, params, environ, default)

    env_value = get("env", defaults.get("env", ""))
    if isinstance(env_value, Mapping):
        env = {str(k): str(v) for k, v in env_value.items()}
    else:
        env = parse_env_mapping(str(env_value))

    return BuildRequest.create(
        project_path=str(get("project-path")),
        image_name=str(get("image-name")),
        version=str(get("version")),
        registry_url=str(get("registry-url")),
        registry_username=str(get("registry-username")),
        registry_password=str(get("registry-password")),
        dockerfile_name=str(get("dockerfile-name", defaults.get("dockerfile_name") or DEFAULT_DOCKERFILE)),
        args=str(get("args", defaults.get("args", ""))),
        env=env,
        pull_latest=_parse_bool(get("pull-latest", defaults.get("pull_latest", True)), "pull-latest"),
    )


# ---------------------------------------------------------------------------
# Run options
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RunOptions:
    """How a run talks to the engine, as opposed to what it builds."""

    engine: str = DEFAULT_ENGINE
    strategy: PushStrategy = PushStrategy.TAG_AND_PUSH
    publish_latest: bool = False
    timeout: float | None = None


def resolve_run_options(
        engine: str | None = None,
        strategy: str | None = None,
        publish_latest: bool | None = None,
        timeout: float | None = None,
        environ: Mapping[str, str] | None = None,
        config: BuildpushConfig | None = None,
) -> RunOptions:
    """Resolve run options: explicit value > ``BUILDPUSH_*`` env > config file > default."""
    environ = os.environ if environ is None else environ
    config = config or BuildpushConfig.discover(environ=environ)

    engine = engine or environ.get("BUILDPUSH_ENGINE") or config.engine
    strategy = strategy or environ.get("BUILDPUSH_STRATEGY") or config.strategy

    if publish_latest is None:
        raw = environ.get("BUILDPUSH_PUBLISH_LATEST")
        publish_latest = _parse_bool(raw, "BUILDPUSH_PUBLISH_LATEST") if raw else config.publish_latest

    if timeout is None:
        raw = environ.get("BUILDPUSH_TIMEOUT")
        if raw:
            try:
                timeout = float(raw)
            except ValueError:
                raise InputValidationError(["BUILDPUSH_TIMEOUT must be a number of seconds, got %r" % raw])
        else:
            timeout = config.timeout

    return RunOptions(
        engine=engine,
        strategy=PushStrategy.parse(strategy),
        publish_latest=bool(publish_latest),
        timeout=timeout or None,
    )
