"""Semantic version parsing and ordering for plugin versions."""

import re
from typing import Iterable, List, Tuple

# Accepts an optional "v" prefix and tolerates a missing minor/patch ("v1.2" == "v1.2.0").
SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"(?:\.(?P<minor>0|[1-9]\d*))?"
    r"(?:\.(?P<patch>0|[1-9]\d*))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


class InvalidVersionError(ValueError):
    """Raised when a version string is not a semantic version."""

    pass


def version_key(version: str) -> Tuple:
    """
    Get a sort key for a semantic version string.

    Pre-release versions sort before the corresponding release, numeric
    pre-release identifiers sort before alphanumeric ones and build
    metadata is ignored.

    Args:
        version: Version string, e.g. "v1.2.3" or "1.2.3-rc.1"

    Returns:
        Tuple usable as a sort key

    Raises:
        InvalidVersionError: If the string is not a semantic version
    """
    match = SEMVER_RE.match(version.strip()) if version else None
    if not match:
        raise InvalidVersionError(f"Invalid semantic version: '{version}'")

    core = (
        int(match.group("major")),
        int(match.group("minor") or 0),
        int(match.group("patch") or 0),
    )

    prerelease = match.group("prerelease")
    if not prerelease:
        return core + (1, ())

    identifiers = []
    for part in prerelease.split("."):
        if part.isdigit():
            identifiers.append((0, int(part), ""))
        else:
            identifiers.append((1, 0, part))
    return core + (0, tuple(identifiers))


def is_valid_version(version: str) -> bool:
    """Check if a string is a valid semantic version."""
    try:
        version_key(version)
        return True
    except InvalidVersionError:
        return False


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Sort version strings in ascending semantic version order."""
    return sorted(versions, key=version_key)


def max_version(versions: Iterable[str]) -> str:
    """Get the highest version, or an empty string if there are none."""
    ordered = sort_versions(versions)
    return ordered[-1] if ordered else ""
