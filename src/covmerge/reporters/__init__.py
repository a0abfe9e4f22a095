"""Output reporters for covmerge."""

from covmerge.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "reporter"]
