"""Process-wide cache of resolved sizes.

The cache maps absolute paths to final outcomes (``Computed`` or ``Failed``)
and outlives scan sessions, so navigating back to a directory reuses every
size already known. It is a pure side table: it never starts computation, it
only lets callers skip it. Entries are written once per path in practice;
a path is recomputed only after an explicit ``clear()``.
"""

import logging
import threading
from pathlib import Path

from dirscope.types.models import CacheStats, Computed, EntryKind, Failed, SizeOutcome

logger = logging.getLogger(__name__)


class SizeCache:
    """Thread-safe mapping from path to final size outcome.

    Reads and writes are linearizable per key; concurrent writers for the
    same path resolve last-writer-wins.
    """

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._outcomes: dict[Path, Computed | Failed] = {}
        self._kinds: dict[Path, EntryKind] = {}

    def get(self, path: Path) -> Computed | Failed | None:
        """Return the cached outcome for a path, or None if absent."""
        with self._lock:
            return self._outcomes.get(path)

    def put(self, path: Path, outcome: SizeOutcome, *, kind: EntryKind = EntryKind.FILE) -> None:
        """Store a final outcome for a path.

        Storing the same outcome again is a no-op.

        Args:
            path: Absolute path the outcome belongs to
            outcome: Computed or Failed outcome
            kind: Kind of the entry, used for statistics

        Raises:
            ValueError: If outcome is Pending
        """
        if not isinstance(outcome, Computed | Failed):
            msg = "Pending outcomes cannot be cached"
            raise ValueError(msg)

        with self._lock:
            self._outcomes[path] = outcome
            self._kinds[path] = kind

    def clear(self) -> None:
        """Drop every cached outcome."""
        with self._lock:
            count = len(self._outcomes)
            self._outcomes.clear()
            self._kinds.clear()
        logger.info("Size cache cleared", extra={"dropped_entries": count})

    def stats(self) -> CacheStats:
        """Return counts of cached directories, files and errors.

        Failed outcomes are counted in ``errors`` as well as in the count of
        their entry kind.
        """
        with self._lock:
            directories = sum(1 for kind in self._kinds.values() if kind is EntryKind.DIRECTORY)
            errors = sum(1 for outcome in self._outcomes.values() if isinstance(outcome, Failed))
            return CacheStats(
                directories=directories,
                files=len(self._kinds) - directories,
                errors=errors,
            )

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._outcomes

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)
