# Schemas package
from .source_schema import Citation, SourceId, SourceMetrics, SourceQuery, SourceResult, SourceStatus
from .payload_schema import SourceRawPayload
from .score_schema import AdjustedSubScores, CompositeScore, SubScores
from .refinement_schema import RefinementParameters
from .improvement_schema import Experiment, Improvement
from .analysis_schema import AnalysisReport, AnalyzeRequest, RescoreRequest, SessionSnapshot

__all__ = [
    "Citation",
    "SourceId",
    "SourceMetrics",
    "SourceQuery",
    "SourceResult",
    "SourceStatus",
    "SourceRawPayload",
    "AdjustedSubScores",
    "CompositeScore",
    "SubScores",
    "RefinementParameters",
    "Experiment",
    "Improvement",
    "AnalysisReport",
    "AnalyzeRequest",
    "RescoreRequest",
    "SessionSnapshot",
]
