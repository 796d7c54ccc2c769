"""
Exception types raised by the attribution engine.

The resolver itself never raises for missing or ambiguous signal; it degrades
to a lower tier. These exceptions cover the two places where failing fast is
correct: bad caller input and a malformed rule store.
"""


class AttributionEngineError(Exception):
    """Base class for all engine errors."""


class InvalidAnalysisParameters(AttributionEngineError, ValueError):
    """
    Caller supplied an invalid date range or threshold.

    Raised before any computation begins so no partial result is produced.
    """


class RuleStoreError(AttributionEngineError):
    """
    The rule store violates one of its invariants.

    Raised for a duplicate (pattern, pattern_kind) inside one scope or for a
    regex rule whose pattern does not compile.
    """
