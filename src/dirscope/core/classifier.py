"""Classification of filesystem access failures.

Access failures at locations the host OS routinely protects are expected and
only produce debug-level diagnostics. Everything else is surfaced as a
warning. Classification never changes a size outcome: a failure is always
``Failed(PERMISSION_DENIED)`` regardless of what this module decides.
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from dirscope.utils.logging import log_with_context

logger = logging.getLogger(__name__)

# Trees where permission failures are routine: virtual and mounted-volume
# roots, OS-internal directories, vendor application support and large
# developer toolchains installed as applications.
EXPECTED_PATH_PREFIXES: Final[tuple[str, ...]] = (
    "/Volumes",
    "/dev",
    "/proc",
    "/sys",
    "/run",
    "/Library/Application Support/Apple",
    "/Library/Application Support/com.apple",
    "/System/Library",
    "/Applications/flutter",
    "/Applications/Xcode",
    "/private",
    "/usr",
    "/bin",
    "/sbin",
    "/var",
    "/tmp",
    "/etc",
    "/root",
    "/lost+found",
)

# Path fragments of user-private folders guarded by privacy controls
USER_PROTECTED_FRAGMENTS: Final[tuple[str, ...]] = (
    "/Users/",
    "/home/",
    "Desktop/",
    "Documents/",
    "Downloads/",
    "Pictures/",
    "Movies/",
    "Music/",
    "Library/",
    ".Trash/",
)

# Fragments identifying content inside opaque application or framework bundles
BUNDLE_FRAGMENTS: Final[tuple[str, ...]] = (
    ".app/",
    ".framework/",
    ".xcframework/",
)

PERMISSION_PHRASES: Final[tuple[str, ...]] = (
    "Permission denied",
    "Operation not permitted",
    "Not a directory",
    "Directory listing failed",
    "Access is denied",
)

# Roots that usually need elevated access even for administrators
SYSTEM_PROTECTED_PREFIXES: Final[tuple[str, ...]] = (
    "/System",
    "/private",
    "/usr",
    "/bin",
    "/sbin",
    "/var",
    "/etc",
    "/dev",
    "/proc",
    "/sys",
    "/Library/Application Support",
    "/Library/Caches",
    "/Library/Logs",
)


def _path_text(path: Path | str) -> str:
    return str(path)


def _has_prefix(path: str, prefixes: Sequence[str]) -> bool:
    """Return True when path equals a prefix or lies beneath it."""
    return any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in prefixes)


def is_expected_location(path: Path | str) -> bool:
    """Check whether a path lies in a location routinely protected by the OS.

    Args:
        path: Absolute path of the item that failed

    Returns:
        True for OS-internal trees, mounted volumes, user-private folders and
        bundle contents

    Examples:
        >>> is_expected_location("/System/Library/Caches")
        True
        >>> is_expected_location("/Users/alex/Documents/report.pdf")
        True
        >>> is_expected_location("/opt/project/build")
        False
    """
    text = _path_text(path)
    if _has_prefix(text, EXPECTED_PATH_PREFIXES):
        return True
    # Trailing separator lets a folder match its own fragment ("~/Library")
    probe = text if text.endswith("/") else text + "/"
    if any(fragment in probe for fragment in USER_PROTECTED_FRAGMENTS):
        return True
    return any(fragment in probe for fragment in BUNDLE_FRAGMENTS)


def is_permission_message(raw_message: str) -> bool:
    """Check whether raw error text is a known permission-denial phrasing."""
    return any(phrase in raw_message for phrase in PERMISSION_PHRASES)


def is_expected(path: Path | str, raw_message: str) -> bool:
    """Decide whether an access failure should be suppressed from diagnostics.

    Both conditions must hold: the path is a routinely protected location and
    the error text is a permission denial. A missing file inside /usr, for
    instance, is still surfaced.

    Args:
        path: Path whose access failed
        raw_message: Raw error text, typically ``str(OSError)``

    Returns:
        True if the failure is expected and should only be logged at debug level

    Examples:
        >>> is_expected("/private/var/db", "[Errno 13] Permission denied: '/private/var/db'")
        True
        >>> is_expected("/private/var/db", "[Errno 2] No such file or directory")
        False
        >>> is_expected("/opt/data", "[Errno 13] Permission denied")
        False
    """
    return is_expected_location(path) and is_permission_message(raw_message)


def is_system_protected(path: Path | str) -> bool:
    """Check whether a path sits under a root that usually needs elevated access.

    Computed sizes of such directories are likely to exclude unreadable
    content and are flagged as possibly partial.
    """
    return _has_prefix(_path_text(path), SYSTEM_PROTECTED_PREFIXES)


def permission_category(path: Path | str) -> str:
    """Name the kind of access a path most likely requires.

    Used to label list failures so a presentation layer can render guidance.

    Examples:
        >>> permission_category("/Users/alex/Desktop/")
        'Desktop Access'
        >>> permission_category("/System/Volumes")
        'Full Disk Access'
        >>> permission_category("/srv/share")
        'File Access'
    """
    text = _path_text(path)
    probe = text if text.endswith("/") else text + "/"
    if "/Desktop/" in probe:
        return "Desktop Access"
    if "/Documents/" in probe:
        return "Documents Access"
    if "/Downloads/" in probe:
        return "Downloads Access"
    if "/Pictures/" in probe:
        return "Photos Access"
    if "/Movies/" in probe or "/Music/" in probe:
        return "Media Access"
    if "/Library/" in probe:
        return "Library Access"
    if _has_prefix(text, ("/System", "/usr", "/private")):
        return "Full Disk Access"
    return "File Access"


def report_access_failure(path: Path | str, raw_message: str, *, action: str) -> bool:
    """Log an access failure at the level its classification calls for.

    Args:
        path: Path whose access failed
        raw_message: Raw error text
        action: Short description of what was attempted (e.g. "size file")

    Returns:
        Whether the failure was classified as expected
    """
    expected = is_expected(path, raw_message)
    log_with_context(
        logger,
        logging.DEBUG if expected else logging.WARNING,
        f"Cannot {action}",
        extra={"path": str(path), "error": raw_message, "expected": expected},
    )
    return expected
