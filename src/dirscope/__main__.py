"""Application entry point for ``python -m dirscope``.

Runs the same click command as the ``dirscope`` console script.
"""

from dirscope.app.cli import cli

__all__ = ["main"]


def main() -> None:
    """Run the dirscope command-line interface."""
    cli(prog_name="dirscope")


if __name__ == "__main__":
    main()
