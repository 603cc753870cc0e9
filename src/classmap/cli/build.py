"""classmap build command - regenerate the class index."""

from pathlib import Path

import click

from classmap.cli.utils import find_project_root
from classmap.config.loader import load_config
from classmap.config.models import LoggingConfig
from classmap.core.errors import ClassMapError
from classmap.core.logging import configure_logging
from classmap.core.progress import get_console, pluralize, spinner, status
from classmap.index.models import BuildReport
from classmap.index.pipeline import IndexPipeline, RunContext


def _first_line(detail: str) -> str:
    for line in detail.splitlines():
        if line.strip():
            return line.strip()
    return ""


def _logging_config(config: LoggingConfig, *, debug: bool) -> LoggingConfig:
    """Project logging config, with the global -v lowering the default level to DEBUG."""
    if not debug:
        return config
    return config.model_copy(update={"level": "DEBUG"})


def _print_report(report: BuildReport, *, verbose: bool) -> None:
    status(f"{pluralize(report.validated, 'class', 'classes')} validated", style="success")

    if report.new_exclusions:
        status(
            f"{pluralize(len(report.new_exclusions), 'class', 'classes')} newly excluded",
            style="warning",
        )
    if report.excluded:
        status(f"{report.excluded} excluded in total", style="info")
    if report.warnings:
        status(
            f"{pluralize(len(report.warnings), 'class', 'classes')} printed output while loading",
            style="info",
        )

    if verbose:
        for symbol, detail in sorted(report.errors.items()):
            status(f"{symbol}: {_first_line(detail)}", style="info", indent=2)
        for symbol, output in sorted(report.warnings.items()):
            status(f"{symbol} printed: {_first_line(output)}", style="info", indent=2)
        for root in report.skipped_roots:
            status(f"Skipped root {root.path}: {root.reason}", style="warning")
        for collision in report.collisions:
            status(
                f"{collision.symbol}: kept {collision.kept_path}, dropped {collision.dropped_path}",
                style="info",
                indent=2,
            )


def _print_failure(error: ClassMapError) -> None:
    console = get_console()
    stage = error.stage or "setup"
    status(f"Index build failed during {stage}: {error.message}", style="error")
    raw = error.details.get("output") or error.details.get("stderr")
    if raw:
        console.print(raw, markup=False, highlight=False)


@click.command()
@click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project directory (default: auto-detect from the current directory)",
)
@click.option(
    "--scope",
    type=click.Choice(["all", "application", "dependencies"]),
    default="all",
    show_default=True,
    help="Which source roots to index",
)
@click.option(
    "--no-cache", is_flag=True, help="Re-parse every file instead of reusing the scan cache"
)
@click.option("-v", "--verbose", is_flag=True, help="List excluded classes and collisions")
@click.pass_context
def build_command(
    ctx: click.Context, project_root: Path | None, scope: str, no_cache: bool, verbose: bool
) -> None:
    """Scan, validate and index every class in the project.

    Classes that fail to load in an isolated interpreter are excluded from
    the class map and reported with the output they produced.
    """
    debug = bool(ctx.obj and ctx.obj.get("verbose"))
    verbose = verbose or debug
    root = find_project_root(project_root)
    context = RunContext(use_cache=not no_cache, scope=scope)  # type: ignore[arg-type]

    try:
        config = load_config(root)
        configure_logging(config=_logging_config(config.logging, debug=debug))
        with spinner("Building class index"):
            report = IndexPipeline(config, root).run(context)
    except ClassMapError as e:
        _print_failure(e)
        ctx.exit(1)

    _print_report(report, verbose=verbose)
