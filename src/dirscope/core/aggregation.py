"""Pure aggregation and ordering functions for scan sessions.

This module provides stateless, side-effect-free functions for:
- Resolving the size used for an entry at a given moment
- Combining final outcomes and live partial totals into a grand total
- Ordering entries by size with stable, idempotent tie-break rules

Inputs are plain mappings keyed by path, so the same functions serve every
refresh tick, the completion pass, and property-based tests.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from dirscope.types.aliases import CalculatingMap, OutcomeMap, PartialMap
from dirscope.types.models import PENDING, Computed, Entry, Failed, Pending, SizeOutcome


@dataclass(slots=True, frozen=True)
class Aggregate:
    """Grand total and session-wide flags at one instant."""

    total_bytes: int
    any_calculating: bool
    has_errors: bool


def resolved_size(entry: Entry, outcome: SizeOutcome, partials: PartialMap) -> int:
    """Return the byte count an entry contributes right now.

    Args:
        entry: Entry being resolved
        outcome: Current outcome of the entry
        partials: Live running totals of directory walks

    Returns:
        The computed size for final outcomes, 0 for failures, the live partial
        total for a pending directory, and 0 otherwise

    Examples:
        >>> from pathlib import Path
        >>> from dirscope.types.models import EntryKind
        >>> d = Entry(Path("/data/photos"), EntryKind.DIRECTORY)
        >>> resolved_size(d, Computed(2048), {d.path: 512})
        2048
        >>> resolved_size(d, PENDING, {d.path: 512})
        512
        >>> resolved_size(d, Failed(), {})
        0
    """
    match outcome:
        case Computed(bytes=size):
            return size
        case Failed():
            return 0
        case Pending():
            if entry.is_directory:
                return partials.get(entry.path, 0)
            return 0


def aggregate(
    entries: Sequence[Entry],
    outcomes: OutcomeMap,
    calculating: CalculatingMap,
    partials: PartialMap,
) -> Aggregate:
    """Combine outcomes and partial totals into one consistent grand total.

    Each entry contributes exactly once: a final outcome always wins over a
    partial total for the same path, so nothing is double counted when a
    walk finishes between two ticks.

    Args:
        entries: Entries of the session
        outcomes: Current outcome per entry path (missing means Pending)
        calculating: Calculating flag per entry path (missing means False)
        partials: Live running totals of directory walks

    Returns:
        Aggregate with the grand total, whether anything is still calculating,
        and whether any entry failed
    """
    total = 0
    any_calculating = False
    has_errors = False

    for entry in entries:
        outcome = outcomes.get(entry.path, PENDING)
        total += resolved_size(entry, outcome, partials)
        if isinstance(outcome, Failed):
            has_errors = True
        if calculating.get(entry.path, False):
            any_calculating = True

    return Aggregate(total_bytes=total, any_calculating=any_calculating, has_errors=has_errors)


def _path_key(entry: Entry) -> tuple[str, str]:
    # Case-insensitive first, exact spelling to break "Foo" vs "foo"
    text = str(entry.path)
    return (text.lower(), text)


type _SortKey = tuple[int, int, int, int, tuple[str, str]]


def _sort_key(
    entry: Entry,
    position: int,
    outcomes: OutcomeMap,
    calculating: CalculatingMap,
    partials: PartialMap,
) -> _SortKey:
    outcome = outcomes.get(entry.path, PENDING)
    if isinstance(outcome, Failed):
        # Failures last, by path
        return (1, 0, 0, 0, _path_key(entry))

    size = resolved_size(entry, outcome, partials)
    if size == 0 and calculating.get(entry.path, False):
        # No signal yet: keep the current relative order
        return (0, 0, 0, position, ("", ""))

    return (0, -size, 1, 0, _path_key(entry))


def sort_entries(
    entries: Sequence[Entry],
    outcomes: OutcomeMap,
    calculating: CalculatingMap,
    partials: PartialMap,
) -> list[Entry]:
    """Order entries by resolved size, largest first.

    Rules, applied in order:
    1. Failed entries come after every entry that is not failed.
    2. Failed entries are ordered by path, case-insensitively.
    3. Entries that are calculating and still resolve to 0 keep their current
       relative order. They come before finished zero-byte entries.
    4. Otherwise larger resolved size first; a directory still being walked
       resolves to its partial total.
    5. Equal sizes are ordered by path, case-insensitively.

    The ordering is a total order derived from a sort key, so the result is
    deterministic, and sorting an already sorted list returns it unchanged.

    Args:
        entries: Entries in their current order
        outcomes: Current outcome per entry path (missing means Pending)
        calculating: Calculating flag per entry path (missing means False)
        partials: Live running totals of directory walks

    Returns:
        New list with the entries in display order
    """
    keyed = [
        (_sort_key(entry, position, outcomes, calculating, partials), entry)
        for position, entry in enumerate(entries)
    ]
    keyed.sort(key=lambda pair: pair[0])
    return [entry for _, entry in keyed]
