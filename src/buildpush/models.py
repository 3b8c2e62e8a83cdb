"""Request and result records for a build-and-publish run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from buildpush.errors import InputValidationError

DEFAULT_DOCKERFILE = "Dockerfile"
LATEST_TAG = "latest"

# (attribute, input name) for every input that must be non-empty
REQUIRED_FIELDS = (
    ("project_path", "project-path"),
    ("image_name", "image-name"),
    ("version", "version"),
    ("registry_url", "registry-url"),
    ("registry_username", "registry-username"),
    ("registry_password", "registry-password"),
)


@dataclass(frozen=True)
class ImageReference:
    """An image name and tag, optionally qualified by a registry."""

    registry_url: str
    name: str
    tag: str

    @property
    def local(self) -> str:
        """``name:tag`` as it appears in the local image store."""
        return f"{self.name}:{self.tag}"

    @property
    def qualified(self) -> str:
        """``registry/name:tag``, the address used for push, pull and probe."""
        return f"{self.registry_url.rstrip('/')}/{self.name}:{self.tag}"

    def with_tag(self, tag: str) -> ImageReference:
        return ImageReference(self.registry_url, self.name, tag)

    def __str__(self) -> str:
        return self.qualified


@dataclass(frozen=True)
class BuildRequest:
    """Immutable inputs for a single run.

    Construct with :meth:`create` to get validation; the plain constructor
    does not check required fields so tests can build partial requests.
    """

    project_path: str
    image_name: str
    version: str
    registry_url: str
    registry_username: str
    registry_password: str = field(repr=False)
    dockerfile_name: str = DEFAULT_DOCKERFILE
    args: str = ""
    env: Mapping[str, str] = field(default_factory=dict)
    pull_latest: bool = True

    @classmethod
    def create(cls, **kwargs) -> BuildRequest:
        """Build a request and raise :class:`InputValidationError` if it is incomplete."""
        request = cls(**kwargs)
        missing = request.validate()
        if missing:
            raise InputValidationError(["%s is required" % name for name in missing])
        return request

    def validate(self) -> list[str]:
        """Return the input names of required fields that are empty."""
        return [name for attr, name in REQUIRED_FIELDS if not getattr(self, attr)]

    @property
    def dockerfile_path(self) -> Path:
        return Path(self.project_path) / (self.dockerfile_name or DEFAULT_DOCKERFILE)

    @property
    def reference(self) -> ImageReference:
        return ImageReference(self.registry_url, self.image_name, self.version)


@dataclass(frozen=True)
class BuildResult:
    """What a successful run reports back to the caller."""

    image: str
    tag: str
    href: str
    skipped: bool

    @classmethod
    def for_reference(cls, reference: ImageReference, skipped: bool) -> BuildResult:
        return cls(image=reference.name, tag=reference.tag, href=reference.qualified, skipped=skipped)

    def as_outputs(self) -> dict[str, str]:
        """String-typed key/value pairs for the CI output channel."""
        return {
            "image": self.image,
            "tag": self.tag,
            "href": self.href,
            "skipped": "true" if self.skipped else "false",
        }
