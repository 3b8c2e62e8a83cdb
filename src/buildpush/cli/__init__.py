"""buildpush CLI -- build and publish container images only when needed."""

from __future__ import annotations

import click

from buildpush import __version__
from ._check import check
from ._common import _setup_logging
from ._run import run


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose/debug output")
@click.version_option(__version__, prog_name="buildpush")
@click.pass_context
def main(ctx, verbose):
    """buildpush -- skip the image build when the registry already has the tag."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


main.add_command(run)
main.add_command(check)
