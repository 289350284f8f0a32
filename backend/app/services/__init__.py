from .normalization_engine import derive_sub_scores, normalize, parse_payload
from .scoring_engine import apply_refinements, compute_composite
from .improvement_engine import recommend_improvements
from .session_store import AnalysisSession, InMemorySessionStore, SessionStore, SqlSessionStore

__all__ = [
    "derive_sub_scores",
    "normalize",
    "parse_payload",
    "apply_refinements",
    "compute_composite",
    "recommend_improvements",
    "AnalysisSession",
    "InMemorySessionStore",
    "SessionStore",
    "SqlSessionStore",
]
