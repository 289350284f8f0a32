"""Source-level data model: queries, per-source results and citations.

A ``SourceResult`` is created in ``fetching`` state when a query is issued
and replaced exactly once by a terminal result.  Results are frozen; a
refresh produces a new instance rather than mutating the old one.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SourceId(str, Enum):
    """Canonical external data sources."""

    SEARCH = "search"
    TRENDS = "trends"
    REDDIT = "reddit"
    YOUTUBE = "youtube"
    TWITTER = "twitter"
    TIKTOK = "tiktok"
    COMMERCE = "commerce"


class SourceStatus(str, Enum):
    FETCHING = "fetching"
    OK = "ok"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"

    @property
    def is_terminal(self) -> bool:
        return self is not SourceStatus.FETCHING

    @property
    def is_usable(self) -> bool:
        """True when the result may contribute to scoring."""
        return self in (SourceStatus.OK, SourceStatus.DEGRADED)


class Citation(BaseModel):
    """Provenance record.  Serialised as ``{source, url, fetchedAtISO}``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: str = Field(..., description="Human-readable provider name")
    url: str = Field(..., description="Link to the underlying evidence")
    fetched_at_iso: str = Field(
        ...,
        alias="fetchedAtISO",
        description="ISO-8601 fetch timestamp",
    )
    notes: Optional[str] = Field(default=None)


class SourceQuery(BaseModel):
    """One query against one source for one idea.  Immutable once issued."""

    model_config = ConfigDict(frozen=True)

    source: SourceId
    idea: str = Field(..., min_length=1)
    assumptions: Dict[str, Any] = Field(default_factory=dict)


class SourceMetrics(BaseModel):
    """Normalized sub-metrics.

    Only the fields a source is authoritative for are populated; everything
    else stays ``None`` so that "not measured" is never confused with a
    measured zero.
    """

    model_config = ConfigDict(frozen=True)

    interest_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    velocity: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    pain_density: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    competitor_strength: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    differentiation_signal: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    distribution_volume: Optional[float] = Field(default=None, ge=0.0, le=100.0)

    pain_mentions: Optional[int] = Field(default=None, ge=0)
    top_pain_phrases: Optional[List[str]] = None
    related_queries: Optional[List[str]] = None
    regions: Optional[List[str]] = None
    hashtags: Optional[List[str]] = None

    def populated(self) -> Dict[str, Any]:
        """Return only the fields that carry a value."""
        return self.model_dump(exclude_none=True)


class SourceResult(BaseModel):
    """Outcome of querying one source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: SourceId
    idea: str
    status: SourceStatus
    raw: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Source-specific payload, opaque to the aggregator",
    )
    metrics: SourceMetrics = Field(default_factory=SourceMetrics)
    citations: List[Citation] = Field(default_factory=list)
    fetched_at_iso: Optional[str] = Field(default=None, alias="fetchedAtISO")
    reason: Optional[str] = Field(
        default=None,
        description="Why the source is degraded or unavailable",
    )
