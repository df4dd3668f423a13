"""Version detection for installed and source-tree builds."""

from __future__ import annotations

import subprocess
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

DISTRIBUTION_NAME = "dcim-sort"
_FALLBACK_VERSION = "0.0.0"


def _git_short_sha() -> str | None:
    """Return the short commit SHA when running from a Git checkout."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
            cwd=Path(__file__).parent,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    sha = result.stdout.strip()
    return sha if result.returncode == 0 and sha else None


def get_version() -> str:
    """Return the installed distribution version.

    Source trees that were never installed report ``0.0.0`` plus the Git SHA
    as a local version label when one is available.
    """
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        sha = _git_short_sha()
        return f"{_FALLBACK_VERSION}+{sha}" if sha else _FALLBACK_VERSION


__version__ = get_version()

__all__ = ["__version__", "get_version"]
