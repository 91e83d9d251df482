"""dirscope - incremental, cached, concurrent directory sizing.

This package lists a directory, sizes every immediate child concurrently
(subdirectories recursively), streams partial progress to an observer, and
keeps children ordered by size while results arrive. Sizes are cached for the
lifetime of the process so revisiting a directory is instant.
"""

from dirscope.__main__ import main

__version__ = "0.1.0"

__all__ = ["__version__", "main"]
