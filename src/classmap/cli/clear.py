"""classmap clear command - remove generated artifacts."""

from pathlib import Path

import click

from classmap.cli.utils import find_project_root
from classmap.config.loader import get_artifact_paths, load_config
from classmap.core.errors import ClassMapError
from classmap.core.progress import status


def clear_artifacts(project_root: Path) -> list[Path]:
    """Remove the class map, hierarchy and scan cache of a project.

    Returns the paths that were removed. The index directory itself is
    removed too when it is left empty.
    """
    config = load_config(project_root)
    paths = get_artifact_paths(project_root, config)
    removed: list[Path] = []
    for path in paths:
        if path.is_file():
            path.unlink()
            removed.append(path)

    index_dir = paths[0].parent
    if index_dir.is_dir() and not any(index_dir.iterdir()):
        index_dir.rmdir()
    return removed


@click.command()
@click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project directory (default: auto-detect from the current directory)",
)
def clear_command(project_root: Path | None) -> None:
    """Remove the generated class map, hierarchy index and scan cache."""
    root = find_project_root(project_root)
    try:
        removed = clear_artifacts(root)
    except (OSError, ClassMapError) as e:
        raise click.ClickException(f"Failed to clear artifacts: {e}") from e

    if not removed:
        status("Nothing to clear", style="warning")
        return
    for path in removed:
        status(f"Removed {path}", style="success")
