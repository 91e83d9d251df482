"""Blocking filesystem access for listing and sizing.

This is the only module that touches the operating system directly. Every
method is synchronous and meant to be offloaded with ``asyncio.to_thread``.
Symbolic links are never followed: a link is reported as OTHER and its
target is never sized.
"""

import os
import stat as statmod
from pathlib import Path

from dirscope.types.models import Entry, EntryKind, ScannedItem


def _kind_of(entry: os.DirEntry[str]) -> EntryKind:
    """Classify a directory entry without following symlinks.

    Raises:
        OSError: If the entry type cannot be determined
    """
    if entry.is_symlink():
        return EntryKind.OTHER
    if entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    if entry.is_file(follow_symlinks=False):
        return EntryKind.FILE
    return EntryKind.OTHER


class LocalFilesystem:
    """Filesystem implementation backed by ``os.scandir`` and ``os.lstat``."""

    def list_dir(self, path: Path) -> list[Entry]:
        """List immediate children of a directory.

        Children whose type cannot be determined are reported as OTHER rather
        than failing the whole listing.

        Raises:
            OSError: If the directory cannot be opened or enumerated
        """
        entries: list[Entry] = []
        with os.scandir(path) as it:
            for child in it:
                try:
                    kind = _kind_of(child)
                except OSError:
                    kind = EntryKind.OTHER
                entries.append(Entry(path=Path(child.path), kind=kind))
        return entries

    def scan_dir(self, path: Path) -> list[ScannedItem]:
        """List a directory and read the length of each regular file.

        Raises:
            OSError: If the directory cannot be opened or enumerated
        """
        items: list[ScannedItem] = []
        with os.scandir(path) as it:
            for child in it:
                child_path = Path(child.path)
                try:
                    kind = _kind_of(child)
                except OSError as exc:
                    items.append(ScannedItem(path=child_path, kind=EntryKind.OTHER, error=str(exc)))
                    continue

                if kind is not EntryKind.FILE:
                    items.append(ScannedItem(path=child_path, kind=kind))
                    continue

                try:
                    size = child.stat(follow_symlinks=False).st_size
                except OSError as exc:
                    items.append(ScannedItem(path=child_path, kind=kind, error=str(exc)))
                else:
                    items.append(ScannedItem(path=child_path, kind=kind, size=size))
        return items

    def file_size(self, path: Path) -> int:
        """Return the length of a file without following symlinks.

        Raises:
            OSError: If the file cannot be stat'ed
        """
        st = os.lstat(path)
        if statmod.S_ISDIR(st.st_mode):
            msg = "Is a directory"
            raise IsADirectoryError(msg)
        return st.st_size
