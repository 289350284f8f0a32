from typing import List, Literal

from pydantic import BaseModel, Field

from .source_schema import Citation

Factor = Literal["demand", "pain_intensity", "competition_gap", "differentiation", "distribution"]
Confidence = Literal["low", "med", "high"]


class Experiment(BaseModel):
    """A small, measurable test that validates an improvement."""

    hypothesis: str
    metric: Literal["CTR", "CR", "ARPU", "Waitlist", "ReplyRate", "ARR"]
    design: List[str] = Field(default_factory=list)
    cost_band: Literal["$", "$$", "$$$"]
    time_to_impact_days: int = Field(..., ge=1)


class Improvement(BaseModel):
    """A suggested action to raise one sub-score.

    Generated by the Improvement Engine, never stored.
    """

    factor: Factor
    title: str
    why: str = Field(..., description="Rationale shown to the user")
    how_to: List[str] = Field(..., description="Ordered implementation steps")
    experiment: Experiment
    est_delta: int = Field(
        ...,
        ge=1,
        description="Estimated sub-score points gained",
    )
    confidence: Confidence
    citations: List[Citation] = Field(default_factory=list)
