"""Version helpers.

Parses daemon version strings such as ``"4.0.6 (38c164933e)"``,
``"v5.0.0"`` or an RPC semver like ``"5.3.0"``.
"""

from __future__ import annotations

import importlib.metadata
import re
from typing import Final

DEFAULT_VERSION: Final[tuple[int, int, int]] = (4, 0, 0)

_SEMVER = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


def get_version() -> str:
    """Get the installed package version."""
    try:
        return importlib.metadata.version("unitorrent")
    except importlib.metadata.PackageNotFoundError:
        import unitorrent

        return unitorrent.__version__


def parse_semver(version: str | None) -> tuple[int, int, int] | None:
    """Parse ``MAJOR.MINOR[.PATCH]`` out of a version string.

    Args:
        version: Version text, possibly with a ``v`` prefix, build metadata
            or a trailing commit hash

    Returns:
        Tuple of (major, minor, patch), or None when nothing parses

    """
    if not version:
        return None
    match = _SEMVER.search(str(version))
    if match is None:
        return None
    major, minor, patch = match.groups()
    return (int(major), int(minor), int(patch or 0))


def parse_version(version: str | None) -> tuple[int, int, int]:
    """Like :func:`parse_semver`, but fall back to :data:`DEFAULT_VERSION`."""
    return parse_semver(version) or DEFAULT_VERSION
