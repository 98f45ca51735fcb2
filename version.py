"""
Version management for the KOTH event server.

The host sends its version in HELLO; the server only talks to hosts built
against the same VERSION.
"""
from pathlib import Path


def _get_version_file_path() -> Path:
    """Get the path to the VERSION file in the project root."""
    return Path(__file__).parent / "VERSION"


def get_version() -> str:
    """Read and return the version string from VERSION file.

    Returns:
        Version string (e.g., "1.0.5"), or "unknown" if the file is missing
    """
    try:
        return _get_version_file_path().read_text().strip()
    except OSError:
        return "unknown"


# Expose VERSION constant at module level
VERSION = get_version()
