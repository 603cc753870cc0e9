"""Scripts executed outside the classmap process."""

from pathlib import Path


def get_probe_script_path() -> Path:
    """Path of the worker script, passed to the project's interpreter."""
    return Path(__file__).parent / "probe_script.py"


def get_probe_script() -> str:
    """Return the worker script source."""
    return get_probe_script_path().read_text(encoding="utf-8")


__all__ = ["get_probe_script", "get_probe_script_path"]
