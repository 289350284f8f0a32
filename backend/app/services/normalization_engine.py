"""Signal Normalization Engine.

Converts heterogeneous per-source payloads into the fixed sub-metric
vocabulary on a common 0-100 scale, and folds a set of source results into
the five canonical sub-scores.

Rules
-----
- NO API calls
- NO DB writes
- NO scoring or weighting
- Pure math + clamping
- Fully deterministic
"""

from __future__ import annotations

import logging
import math
import statistics
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import TypeAdapter

from ..constants import SOCIAL_SOURCES
from ..schemas.payload_schema import (
    CommercePayload,
    RedditPayload,
    SearchPayload,
    SourceRawPayload,
    TikTokPayload,
    TrendsPayload,
    TwitterPayload,
    YouTubePayload,
)
from ..schemas.score_schema import SubScores
from ..schemas.source_schema import SourceId, SourceMetrics, SourceResult

logger = logging.getLogger(__name__)

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(SourceRawPayload)

_MAX_PHRASES = 5


def _clamp(value: Optional[float], lo: float = 0.0, hi: float = 100.0) -> Optional[float]:
    """Clamp *value* to [lo, hi].  ``None``, NaN and infinities are not measured."""
    if value is None or not math.isfinite(value):
        return None
    return round(max(lo, min(hi, float(value))), 2)


def _velocity_from_series(series: List[float]) -> Optional[float]:
    """Recent-vs-earlier interest ratio on a 0-100 scale, 50 = flat.

    Compares the mean of the last third of the series with the first third.
    Needs at least 6 points.
    """
    if len(series) < 6:
        return None
    third = len(series) // 3
    earlier = statistics.fmean(series[:third])
    recent = statistics.fmean(series[-third:])
    if earlier <= 0:
        return 100.0 if recent > 0 else 50.0
    change = (recent - earlier) / earlier  # -1 .. +inf
    return _clamp(50.0 + change * 50.0)


# ===================================================================== #
#  Payload parsing                                                        #
# ===================================================================== #

def parse_payload(source: SourceId, body: Mapping[str, Any]) -> SourceRawPayload:
    """Build the tagged payload for *source* from a backend response body.

    Backend functions answer ``{status, raw, normalized, citations, ...}``.
    The ``normalized`` block wins over ``raw`` when both carry a key.
    """
    fields: Dict[str, Any] = {}
    fields.update(body.get("raw") or {})
    fields.update(body.get("normalized") or {})
    fields["source"] = source.value
    return _PAYLOAD_ADAPTER.validate_python(fields)


# ===================================================================== #
#  Per-source normalizers                                                 #
# ===================================================================== #

def _normalize_search(payload: SearchPayload) -> SourceMetrics:
    return SourceMetrics(
        competitor_strength=_clamp(payload.competitor_strength),
        differentiation_signal=_clamp(payload.differentiation_signals),
        related_queries=list(payload.related_queries) or None,
    )


def _normalize_trends(payload: TrendsPayload) -> SourceMetrics:
    interest = payload.interest_score
    if interest is None and payload.interest_over_time:
        interest = statistics.fmean(payload.interest_over_time)

    velocity = payload.velocity
    if velocity is None:
        velocity = _velocity_from_series(list(payload.interest_over_time))

    return SourceMetrics(
        interest_score=_clamp(interest),
        velocity=_clamp(velocity),
        regions=list(payload.regions) or None,
        related_queries=list(payload.related_queries) or None,
    )


def _normalize_reddit(payload: RedditPayload) -> SourceMetrics:
    mentions = payload.pain_mentions
    if mentions is None and payload.threads:
        mentions = len(payload.threads)
    return SourceMetrics(
        pain_density=_clamp(payload.pain_density),
        pain_mentions=max(0, mentions) if mentions is not None else None,
        top_pain_phrases=list(payload.top_pain_phrases[:_MAX_PHRASES]) or None,
    )


def _normalize_social(payload: YouTubePayload | TwitterPayload) -> SourceMetrics:
    return SourceMetrics(distribution_volume=_clamp(payload.volume))


def _normalize_tiktok(payload: TikTokPayload) -> SourceMetrics:
    return SourceMetrics(
        distribution_volume=_clamp(payload.volume),
        hashtags=list(payload.hashtags) or None,
    )


def _normalize_commerce(payload: CommercePayload) -> SourceMetrics:
    # Saturated marketplaces mean strong incumbents
    return SourceMetrics(competitor_strength=_clamp(payload.market_saturation))


_NORMALIZERS: Dict[str, Callable[[Any], SourceMetrics]] = {
    "search": _normalize_search,
    "trends": _normalize_trends,
    "reddit": _normalize_reddit,
    "youtube": _normalize_social,
    "twitter": _normalize_social,
    "tiktok": _normalize_tiktok,
    "commerce": _normalize_commerce,
}


def normalize(payload: SourceRawPayload) -> SourceMetrics:
    """Map one raw payload to the sub-metrics its source is authoritative for.

    Dispatches on the payload's ``source`` tag.  Pure function: the same
    payload always yields the same metrics.
    """
    normalizer = _NORMALIZERS.get(payload.source)
    if normalizer is None:
        raise TypeError(f"Unsupported payload source: {payload.source!r}")
    return normalizer(payload)


def has_scoring_metrics(metrics: SourceMetrics) -> bool:
    """True if *metrics* carries at least one numeric 0-100 sub-metric."""
    return any(
        value is not None
        for value in (
            metrics.interest_score,
            metrics.pain_density,
            metrics.competitor_strength,
            metrics.differentiation_signal,
            metrics.distribution_volume,
        )
    )


# ===================================================================== #
#  Sub-score derivation                                                   #
# ===================================================================== #

def _usable(results: Mapping[SourceId, SourceResult], source: SourceId) -> Optional[SourceMetrics]:
    result = results.get(source)
    if result is None or not result.status.is_usable:
        return None
    return result.metrics


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round(statistics.fmean(present), 2)


def derive_sub_scores(results: Mapping[SourceId, SourceResult]) -> SubScores:
    """Fold source results into the five canonical sub-scores.

    Only ``ok`` and ``degraded`` sources contribute.  A factor with no
    contributing metric stays ``None`` so the scorer can apply its neutral
    default.
    """
    search = _usable(results, SourceId.SEARCH)
    trends = _usable(results, SourceId.TRENDS)
    reddit = _usable(results, SourceId.REDDIT)
    commerce = _usable(results, SourceId.COMMERCE)
    socials = [_usable(results, SourceId(name)) for name in SOCIAL_SOURCES]

    demand = trends.interest_score if trends else None
    pain = reddit.pain_density if reddit else None

    strength = _mean([
        search.competitor_strength if search else None,
        commerce.competitor_strength if commerce else None,
    ])
    gap = _clamp(100.0 - strength) if strength is not None else None

    differentiation = search.differentiation_signal if search else None
    distribution = _mean(m.distribution_volume if m else None for m in socials)

    sub_scores = SubScores(
        demand=demand,
        pain_intensity=pain,
        competition_gap=gap,
        differentiation=differentiation,
        distribution=distribution,
    )
    print(f"📊 [Normalization] Sub-scores: {sub_scores.model_dump()}")
    logger.debug("Derived sub-scores %s", sub_scores.model_dump())
    return sub_scores
