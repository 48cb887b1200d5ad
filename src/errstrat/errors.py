"""Exception types raised by errstrat.

Configuration problems are detected before any locus is read; input problems
abort as soon as they are found. Both derive from ``ValueError`` so callers that
only care about "bad input" can catch that.
"""

from __future__ import annotations


class ErrStratError(Exception):
    """Base exception for errstrat errors."""


class ConfigurationError(ErrStratError, ValueError):
    """Raised when options or directives are invalid."""


class DirectiveError(ConfigurationError):
    """Raised when a directive string is malformed."""


class UnknownNameError(DirectiveError):
    """Raised when a directive names an unknown error type or stratifier."""

    def __init__(self, kind: str, name: str, valid: list[str]) -> None:
        super().__init__(
            f"Unknown {kind} '{name}'. Valid values: {', '.join(valid)}"
        )
        self.kind = kind
        self.name = name


class TooManyTermsError(DirectiveError):
    """Raised when a directive holds more terms than there are stratifier kinds plus one."""


class DuplicateSuffixError(ConfigurationError):
    """Raised when two directives in one run produce the same output suffix."""


class InputConsistencyError(ErrStratError, ValueError):
    """Raised when input files are unusable together (unsorted, unindexed, mismatched)."""
