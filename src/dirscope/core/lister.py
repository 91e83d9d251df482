"""Listing of a directory's immediate children.

The lister produces the entries of a scan session in their seed order:
directories first, then by path case-insensitively. Listing the filesystem
root hides well-known OS-internal trees unless the caller opts in.
"""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Final

from dirscope.core.errors import ListError
from dirscope.core.filesystem import LocalFilesystem
from dirscope.types.models import AccessProbe, Entry
from dirscope.types.protocols import Filesystem

logger = logging.getLogger(__name__)

ROOT_PATH: Final[Path] = Path("/")

# Virtual or OS-internal trees that are hidden unless include_protected is set
PROTECTED_ROOTS: Final[frozenset[Path]] = frozenset(
    Path(p)
    for p in (
        "/proc",
        "/sys",
        "/dev",
        "/run",
        "/System",
        "/private",
        "/cores",
        "/.Spotlight-V100",
        "/.fseventsd",
        "/.vol",
    )
)


def resolve_target(path: Path | str | None) -> Path:
    """Return the absolute directory a session should list.

    Args:
        path: Requested directory; None selects the filesystem root

    Returns:
        Absolute path with ``~`` expanded. Symbolic links are not resolved.

    Examples:
        >>> resolve_target(None)
        PosixPath('/')
        >>> resolve_target("/var/log")
        PosixPath('/var/log')
    """
    if path is None:
        return ROOT_PATH
    return Path(path).expanduser().absolute()


def seed_order(entries: Iterable[Entry]) -> list[Entry]:
    """Order freshly listed entries: directories first, then by path.

    Paths compare case-insensitively, with the exact spelling as tie-break.
    """
    return sorted(
        entries,
        key=lambda entry: (not entry.is_directory, str(entry.path).lower(), str(entry.path)),
    )


def is_protected_root(path: Path) -> bool:
    """Check whether a path is one of the hidden OS-internal roots."""
    return path in PROTECTED_ROOTS


class EntryLister:
    """Produce the entries of a directory for a scan session."""

    def __init__(self, *, filesystem: Filesystem | None = None, include_protected: bool = False) -> None:
        self.filesystem: Filesystem = filesystem if filesystem is not None else LocalFilesystem()
        self.include_protected: bool = include_protected

    async def list_entries(self, path: Path | str | None) -> list[Entry]:
        """List the immediate children of a directory.

        Args:
            path: Directory to list; None lists the filesystem root

        Returns:
            Entries in seed order

        Raises:
            ListError: If the directory's own children cannot be enumerated
        """
        target = resolve_target(path)
        try:
            entries = await asyncio.to_thread(self.filesystem.list_dir, target)
        except OSError as exc:
            raise ListError(target, str(exc)) from exc

        if not self.include_protected:
            hidden = [entry for entry in entries if is_protected_root(entry.path)]
            if hidden:
                logger.debug(
                    "Hiding protected system roots",
                    extra={"path": str(target), "hidden": [str(entry.path) for entry in hidden]},
                )
                entries = [entry for entry in entries if not is_protected_root(entry.path)]

        return seed_order(entries)

    async def probe_access(self, path: Path | str | None) -> AccessProbe:
        """Re-check whether a directory can be listed now.

        Used after the user has changed OS permissions following a list
        failure. Nothing is cached by a probe.

        Args:
            path: Directory to probe; None probes the filesystem root

        Returns:
            AccessProbe with the outcome and the raw error text on failure
        """
        target = resolve_target(path)
        try:
            _ = await asyncio.to_thread(self.filesystem.list_dir, target)
        except OSError as exc:
            logger.info(
                "Directory still not accessible",
                extra={"path": str(target), "error": str(exc)},
            )
            return AccessProbe(path=target, accessible=False, message=str(exc))

        logger.info("Directory is accessible", extra={"path": str(target)})
        return AccessProbe(path=target, accessible=True, message=None)
