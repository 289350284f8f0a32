"""Request / response bodies for the analysis routes."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .improvement_schema import Improvement
from .refinement_schema import RefinementParameters
from .score_schema import CompositeScore
from .source_schema import Citation, SourceResult


class AnalyzeRequest(BaseModel):
    """Request body for ``POST /analysis``."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "idea": "A meal-planning app for busy parents that builds a weekly grocery list",
                "sources": ["search", "trends", "reddit"],
            }
        }
    )

    idea: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The startup idea to analyze",
    )
    sources: Optional[List[str]] = Field(
        default=None,
        description="Source identifiers (aliases accepted); defaults to every source",
    )
    assumptions: Dict[str, Any] = Field(default_factory=dict)
    refinements: Optional[RefinementParameters] = None


class RescoreRequest(BaseModel):
    refinements: RefinementParameters


class AnalysisReport(BaseModel):
    """Everything a dashboard view needs to render one analysis."""

    idea: str
    sources: Dict[str, SourceResult] = Field(
        ...,
        description="One terminal result per requested source",
    )
    source_status: Dict[str, str] = Field(
        ...,
        description="source -> ok | degraded | unavailable",
    )
    composite: CompositeScore
    improvements: List[Improvement] = Field(default_factory=list)
    citations: Dict[str, List[Citation]] = Field(
        default_factory=dict,
        description="Citations grouped by sub-score factor",
    )
    refinements: RefinementParameters
    low_confidence: bool = Field(
        default=False,
        description="True when no source produced usable data",
    )
    stale: bool = Field(
        default=False,
        description="Superseded by a newer analysis before it finished; not remembered",
    )
    timings_ms: Dict[str, float] = Field(
        default_factory=dict,
        description="Per-step pipeline durations",
    )


class SessionSnapshot(BaseModel):
    """Last analyzed idea as remembered by the session store."""

    idea: Optional[str] = None
    pm_fit_score: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    refinements: Optional[RefinementParameters] = None
