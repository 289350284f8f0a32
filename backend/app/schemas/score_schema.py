from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SubScores(BaseModel):
    """The five canonical sub-scores as derived from source results.

    ``None`` means no usable source populated the factor.  The scoring
    engine substitutes a neutral default for those; a measured zero is kept.
    """

    demand: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Search interest, from the trends source",
    )
    pain_intensity: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Pain density in forum discussions",
    )
    competition_gap: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="100 - competitor strength (search + commerce)",
    )
    differentiation: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Benchmarkable differentiation claims found in search",
    )
    distribution: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=100.0,
        description="Mean reachable volume across social channels",
    )


class AdjustedSubScores(BaseModel):
    """Sub-scores after neutral defaults and refinement multipliers.

    Not clamped above: a boosted factor may exceed 100.  Only the composite
    is bounded.
    """

    demand: float = Field(..., ge=0.0)
    pain_intensity: float = Field(..., ge=0.0)
    competition_gap: float = Field(..., ge=0.0)
    differentiation: float = Field(..., ge=0.0)
    distribution: float = Field(..., ge=0.0)


class CompositeScore(BaseModel):
    """Blended PM-Fit score.

    Produced by the Scoring Engine.  Never persisted as authoritative:
    always derivable from ``sub_scores`` plus the refinements applied.
    """

    sub_scores: SubScores = Field(
        ...,
        description="Input sub-scores as derived from sources (None = absent)",
    )
    adjusted: AdjustedSubScores = Field(
        ...,
        description="Post-multiplier breakdown actually used in the weighted sum",
    )
    pm_fit_score: int = Field(
        ...,
        ge=0,
        le=100,
        description="Weighted composite: 0.25*D + 0.20*P + 0.20*G + 0.20*X + 0.15*R",
    )
    weights: Dict[str, float] = Field(
        ...,
        description="Weights used for the composite",
    )
    defaulted: List[str] = Field(
        default_factory=list,
        description="Sub-scores that fell back to the neutral default",
    )
