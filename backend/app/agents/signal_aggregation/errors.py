"""Errors raised by the signal aggregation layer.

Per-source failures are never raised: they become ``unavailable`` results.
These exceptions cover caller mistakes only.
"""


class AggregationError(Exception):
    """Base class for aggregation errors."""


class IdeaValidationError(AggregationError, ValueError):
    """The idea text is empty or not a string.  Raised before any network call."""


class UnknownSourceError(AggregationError, KeyError):
    """A source identifier that maps to no known source."""

    def __init__(self, source: object):
        super().__init__(source)
        self.source = source

    def __str__(self) -> str:
        return f"Unknown source identifier: {self.source!r}"


class OrchestratorError(AggregationError):
    """The orchestrator was asked to do something its state does not allow."""
