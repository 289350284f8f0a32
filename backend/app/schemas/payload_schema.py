"""Raw backend payloads, one variant per source.

Every backend function answers with a different JSON shape.  Each shape is
modelled as its own variant carrying a ``source`` tag, and the variants are
combined into the discriminated union ``SourceRawPayload`` so the
normalizer can dispatch on the tag instead of probing for fields.

Numeric fields are deliberately unbounded here: upstream values outside
[0, 100] are accepted and clamped by the normalizer, never rejected.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _PayloadBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class SearchPayload(_PayloadBase):
    """Web search over the idea's market, competitors and pricing."""

    source: Literal["search"] = "search"
    competitor_strength: Optional[float] = Field(default=None, alias="competitorStrength")
    differentiation_signals: Optional[float] = Field(default=None, alias="differentiationSignals")
    related_queries: List[str] = Field(default_factory=list, alias="relatedQueries")


class TrendsPayload(_PayloadBase):
    """Search-interest time series."""

    source: Literal["trends"] = "trends"
    interest_score: Optional[float] = Field(default=None, alias="interestScore")
    velocity: Optional[float] = None
    interest_over_time: List[float] = Field(default_factory=list, alias="interestOverTime")
    regions: List[str] = Field(default_factory=list)
    related_queries: List[str] = Field(default_factory=list, alias="relatedQueries")


class RedditPayload(_PayloadBase):
    """Forum discussions and the pain expressed in them."""

    source: Literal["reddit"] = "reddit"
    pain_density: Optional[float] = Field(default=None, alias="painDensity")
    pain_mentions: Optional[int] = Field(default=None, alias="painMentions")
    top_pain_phrases: List[str] = Field(default_factory=list, alias="topPainPhrases")
    sentiment: Optional[float] = None
    threads: List[Dict[str, Any]] = Field(default_factory=list)


class YouTubePayload(_PayloadBase):
    source: Literal["youtube"] = "youtube"
    volume: Optional[float] = None
    sentiment: Optional[float] = None


class TwitterPayload(_PayloadBase):
    source: Literal["twitter"] = "twitter"
    volume: Optional[float] = None
    sentiment: Optional[float] = None


class TikTokPayload(_PayloadBase):
    source: Literal["tiktok"] = "tiktok"
    volume: Optional[float] = None
    hashtags: List[str] = Field(default_factory=list)


class CommercePayload(_PayloadBase):
    """Marketplace listings for the idea's product category."""

    source: Literal["commerce"] = "commerce"
    market_saturation: Optional[float] = Field(default=None, alias="marketSaturation")
    avg_price: Optional[float] = Field(default=None, alias="avgPrice")
    top_listings: List[Dict[str, Any]] = Field(default_factory=list, alias="topListings")


SourceRawPayload = Annotated[
    Union[
        SearchPayload,
        TrendsPayload,
        RedditPayload,
        YouTubePayload,
        TwitterPayload,
        TikTokPayload,
        CommercePayload,
    ],
    Field(discriminator="source"),
]
