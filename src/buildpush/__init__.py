"""buildpush -- build and publish a container image unless the registry already has it."""

__version__ = "0.3.0"
