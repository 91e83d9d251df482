"""Type aliases using modern PEP 695 syntax."""

from collections.abc import Mapping
from pathlib import Path

from dirscope.types.models import SizeOutcome

# Session-local outcome table keyed by entry path
type OutcomeMap = Mapping[Path, SizeOutcome]

# Per-entry "still calculating" flags keyed by entry path
type CalculatingMap = Mapping[Path, bool]

# Live running totals of directory walks keyed by directory path
type PartialMap = Mapping[Path, int]
