"""Opaque-bundle recognition and shortcut sizing.

Application and framework bundles are directories the host OS presents as a
single unit. They often contain many small files, so the directory sizer
first asks a ``BundleSizer`` for a whole-bundle figure and only walks the
bundle when no usable value comes back.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Final, override

from dirscope.core.config import DEFAULT_BUNDLE_SUFFIXES
from dirscope.types.protocols import BundleSizer

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS: Final[float] = 60.0


def is_opaque_bundle(path: Path, suffixes: Iterable[str] = DEFAULT_BUNDLE_SUFFIXES) -> bool:
    """Check whether a directory name marks an opaque bundle.

    Args:
        path: Directory path
        suffixes: Lower-case suffixes (with leading dot) that identify bundles

    Returns:
        True if the final path component ends with a bundle suffix

    Examples:
        >>> is_opaque_bundle(Path("/Applications/Safari.app"))
        True
        >>> is_opaque_bundle(Path("/Library/Frameworks/Python.framework"))
        True
        >>> is_opaque_bundle(Path("/home/alex/app"))
        False
    """
    name = path.name.lower()
    return any(name.endswith(suffix) and len(name) > len(suffix) for suffix in suffixes)


def parse_du_output(output: str, *, unit: int = 1024) -> int | None:
    """Parse the first field of ``du -s`` style output into bytes.

    Args:
        output: Command standard output, e.g. ``"2048\\t/Applications/Foo.app"``
        unit: Bytes per reported unit

    Returns:
        Size in bytes, or None when the output holds no positive integer

    Examples:
        >>> parse_du_output("12\\t/Applications/Foo.app\\n")
        12288
        >>> parse_du_output("du: cannot access", unit=1024) is None
        True
    """
    fields = output.split()
    if not fields:
        return None
    try:
        value = int(fields[0])
    except ValueError:
        return None
    if value <= 0:
        return None
    return value * unit


class NullBundleSizer(BundleSizer):
    """Bundle sizer that never produces a value, forcing a full walk."""

    @override
    async def size_of(self, path: Path) -> int | None:
        return None


class DiskUsageBundleSizer(BundleSizer):
    """Bundle sizer that runs a ``du``-style command in a subprocess.

    The command runs with the bundle path appended as its last argument. A
    missing executable, a timeout or output without a positive leading
    integer yields None.
    """

    def __init__(
        self,
        command: Sequence[str] = ("du", "-sk"),
        *,
        unit: int = 1024,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not command:
            msg = "command must not be empty"
            raise ValueError(msg)
        self.command: tuple[str, ...] = tuple(command)
        self.unit: int = unit
        self.timeout: float = timeout

    @override
    async def size_of(self, path: Path) -> int | None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                str(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.debug(
                "Bundle size command unavailable",
                extra={"command": self.command[0], "error": str(exc)},
            )
            return None

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            process.kill()
            _ = await process.wait()
            logger.debug(
                "Bundle size command timed out",
                extra={"path": str(path), "timeout": self.timeout},
            )
            return None

        # du exits non-zero when part of the tree is unreadable but still
        # prints a total for what it could read
        size = parse_du_output(stdout.decode(errors="replace"), unit=self.unit)
        if process.returncode != 0:
            logger.debug(
                "Bundle size command exited with errors",
                extra={"path": str(path), "returncode": process.returncode, "parsed": size},
            )
        return size
