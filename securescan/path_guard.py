"""
Path Guard - validation for every filesystem path derived from user or tool input.

Scans run against third-party repositories, so file names reported by tools
are attacker-influenced. Every path is re-validated at the point of use:
- Names are reduced to a safe character set before becoming directory names
- Paths are resolved (symlinks included) and must stay under their base
- Temporary directory names carry 128 bits of randomness
- Scan identifiers must be canonical UUIDs
"""
import os
import re
import secrets
from typing import Any, Optional

SAFE_NAME_FILLER = "_"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_LEADING_TRAVERSAL = re.compile(r"^(?:\.{1,2}/|/)+")
_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


class PathGuardError(ValueError):
    """Base class for rejected names and paths."""


class InvalidNameError(PathGuardError):
    """Raised when a name cannot be made safe."""


class PathTraversalError(PathGuardError):
    """Raised when a path resolves outside its base directory."""


class InvalidScanIdError(PathGuardError):
    """Raised when a scan identifier is not a canonical UUID."""


def sanitize_name(raw: Any) -> str:
    """
    Reduce a repository or directory name to ``[A-Za-z0-9._-]``.

    Leading ``../``, ``./`` and ``/`` segments are stripped; any other ``..``
    is rejected. The result never starts with ``-`` or ``.`` so it can't be
    read as a CLI flag or a hidden file. Calling this on its own output
    returns the same value.

    Raises:
        InvalidNameError: For non-string, empty, control-character or
            traversal input, or when nothing usable remains.
    """
    if not isinstance(raw, str) or not raw:
        raise InvalidNameError("Invalid name")
    if _CONTROL_CHARS.search(raw):
        raise InvalidNameError("Name contains control characters")

    name = raw.replace("\\", "/")
    name = _LEADING_TRAVERSAL.sub("", name)
    if ".." in name:
        raise InvalidNameError("Name contains a parent directory reference")

    name = _UNSAFE_NAME_CHARS.sub(SAFE_NAME_FILLER, name)
    if not name.strip(SAFE_NAME_FILLER + "."):
        raise InvalidNameError("Name contains no valid characters")
    if name[0] in "-.":
        name = SAFE_NAME_FILLER + name
    return name


def _resolve(path: str) -> str:
    return os.path.realpath(os.path.abspath(path))


def validate_within(base: str, candidate: str) -> str:
    """
    Resolve ``candidate`` and ensure it is ``base`` or a descendant of it.

    Relative candidates are taken relative to ``base``. Both sides are fully
    resolved, so symlinks inside a cloned repository can't point outside it.
    The comparison is made on path components, so ``/base2`` is not inside
    ``/base``.

    Returns:
        The resolved absolute path.

    Raises:
        PathTraversalError: If the resolved path escapes ``base``.
    """
    if not base or not candidate or not isinstance(base, str) or not isinstance(candidate, str):
        raise PathTraversalError("Invalid path parameters")
    if "\0" in base or "\0" in candidate:
        raise PathTraversalError("Invalid path parameters")

    resolved_base = _resolve(base)
    if os.path.isabs(candidate):
        resolved = _resolve(candidate)
    else:
        resolved = _resolve(os.path.join(resolved_base, candidate))

    if resolved != resolved_base and os.path.commonpath([resolved_base, resolved]) != resolved_base:
        raise PathTraversalError("Path traversal attempt detected")
    return resolved


def relative_to_base(base: str, candidate: str) -> str:
    """Validate ``candidate`` and return it relative to ``base`` in POSIX form."""
    resolved = validate_within(base, candidate)
    relative = os.path.relpath(resolved, _resolve(base))
    return relative.replace(os.sep, "/")


def generate_temp_dir_name(prefix: str, suffix: Optional[str] = None) -> str:
    """Build an unguessable, separator-free directory name."""
    name = f"{sanitize_name(prefix)}-{secrets.token_hex(16)}"
    if suffix:
        name = f"{name}-{sanitize_name(suffix)}"
    return name


def validate_scan_id(raw: Any) -> str:
    """Return ``raw`` if it is a canonical UUID string."""
    if not isinstance(raw, str) or not raw:
        raise InvalidScanIdError("Invalid scan ID")
    if not _UUID_PATTERN.match(raw):
        raise InvalidScanIdError("Invalid scan ID format")
    return raw
