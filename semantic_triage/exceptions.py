"""Errors raised by the semantic triage engine."""


class TriageEngineError(Exception):
    """Base class for engine errors."""


class DimensionMismatch(TriageEngineError, ValueError):
    """Two vectors (or a vector and its model) disagree on length."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension mismatch: {expected} vs {actual}")


class CorruptData(TriageEngineError, ValueError):
    """Stored embedding bytes cannot be decoded."""


class UnknownModel(TriageEngineError, KeyError):
    """Model identifier is not registered."""

    def __str__(self):
        return f"Unknown embedding model: {self.args[0]!r}"


class ModelConflict(TriageEngineError):
    """Model name already registered with a different dimension."""
