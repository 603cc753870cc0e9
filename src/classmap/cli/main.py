"""ClassMap CLI - classmap command."""

import click

from classmap.cli.build import build_command
from classmap.cli.clear import clear_command
from classmap.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="classmap")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """ClassMap - fault-tolerant class index builder."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(build_command, name="build")
cli.add_command(clear_command, name="clear")


if __name__ == "__main__":
    cli()
