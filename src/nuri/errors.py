"""Exceptions raised by nuri.

Each one also derives from the builtin exception urllib.parse would raise in
the same situation, so callers that catch ValueError/TypeError keep working.
"""


class NuriError(Exception):
    """Base class for every error raised by this package."""


class InvalidStructure(NuriError, ValueError):
    """A query tree that bracket notation cannot express."""


class TypeConflict(NuriError, TypeError):
    """A query token wants a List or Map where another kind is already stored."""

    def __init__(self, expected: str, actual: str, key: str) -> None:
        super().__init__(f"expected {expected} (got {actual}) for param {key!r}")
        self.expected = expected
        self.actual = actual
        self.key = key


class InvalidField(NuriError, ValueError):
    """An unknown field name, or a value a field setter refuses."""


class FormattingError(NuriError, ValueError):
    """Components that cannot be assembled into a URI string."""
