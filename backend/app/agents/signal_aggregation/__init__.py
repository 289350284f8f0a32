# Signal aggregation package
from .errors import AggregationError, IdeaValidationError, OrchestratorError, UnknownSourceError
from .http_client import BackendClient, InvokeResult
from .orchestrator import (
    AggregationComplete,
    SourceOrchestrator,
    SourceStatusEvent,
    resolve_source,
    resolve_sources,
    validate_idea,
)

__all__ = [
    "AggregationError",
    "IdeaValidationError",
    "OrchestratorError",
    "UnknownSourceError",
    "BackendClient",
    "InvokeResult",
    "AggregationComplete",
    "SourceOrchestrator",
    "SourceStatusEvent",
    "resolve_source",
    "resolve_sources",
    "validate_idea",
]
