"""CLI utilities."""

from pathlib import Path

from classmap.config.constants import PROJECT_CONFIG_FILE


def find_project_root(start_path: Path | None = None) -> Path:
    """Find the project root from the given path.

    Walks up the directory tree looking for classmap.yaml, then for a .git
    directory. Falls back to ``start_path`` itself.
    """
    if start_path is None:
        start_path = Path.cwd()
    start = start_path.resolve()

    for marker in (PROJECT_CONFIG_FILE, ".git"):
        current = start
        while True:
            if (current / marker).exists():
                return current
            if current == current.parent:
                break
            current = current.parent
    return start
