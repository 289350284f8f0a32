"""Improvement Recommender.

Turns a composite score and the source results behind it into a ranked
list of concrete experiments, one or more per weak sub-score.

Rules
-----
- NO API calls
- NO LLMs
- Deterministic: same scores + same results → same list, same order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from ..constants import (
    B2B_DISTRIBUTION_THRESHOLD,
    CONFIDENCE_ORDER,
    FACTOR_SOURCES,
    IMPROVEMENT_CAPTURE_RATE,
    IMPROVEMENT_TARGET,
    IMPROVEMENT_THRESHOLD,
    SUB_SCORES,
)
from ..schemas.improvement_schema import Experiment, Improvement
from ..schemas.refinement_schema import RefinementParameters
from ..schemas.score_schema import CompositeScore
from ..schemas.source_schema import Citation, SourceId, SourceResult, SourceStatus

logger = logging.getLogger(__name__)

# Evidence strength multiplier per confidence level
_CONFIDENCE_WEIGHT: Dict[str, float] = {"high": 1.0, "med": 0.75, "low": 0.5}


@dataclass(frozen=True)
class _Template:
    factor: str
    title: str
    why: str
    how_to: List[str]
    experiment: Experiment
    lift: float = 1.0  # relative impact of this play versus a baseline experiment
    threshold: float = IMPROVEMENT_THRESHOLD


_TEMPLATES: Dict[str, _Template] = {
    "demand": _Template(
        factor="demand",
        title="Intercept rising intents via SEO + short-form video",
        why="Search/social velocity below benchmark; adjacent queries can expand reach.",
        how_to=[
            "Ship 3-5 SEO pages for rising queries; link from hero.",
            "Run a $200 Spark Ads test targeting those intents.",
            "Add schema markup and FAQ to rank faster.",
            'Create comparison pages for "vs competitor" queries.',
        ],
        experiment=Experiment(
            hypothesis="Adjacent intents increase qualified visits 20% and signups 10%.",
            metric="CR",
            design=[
                "A/B landing page: current vs +adjacent intents",
                "Hold geo constant for clean comparison",
                "14-day run with daily monitoring",
            ],
            cost_band="$",
            time_to_impact_days=14,
        ),
        lift=1.0,
    ),
    "pain_intensity": _Template(
        factor="pain_intensity",
        title="Narrow ICP and rewrite hero problem-first",
        why="Community complaints are diffuse; a sharper ICP will boost resonance.",
        how_to=[
            "Pick 1 subsegment with frequent pain mentions from forums.",
            'Rewrite hero: "{pain statement} -> in {time} with {mechanism}".',
            "Add 3 proof bullets (before/after, time saved, money saved).",
            "Include customer quotes that echo the exact pain language.",
        ],
        experiment=Experiment(
            hypothesis="Pain-first hero for a narrower ICP lifts LP->signup by 25%.",
            metric="CR",
            design=[
                "Multivariate test: current vs pain-first copy",
                "Record session replays",
                "1-question exit survey for 50 visitors",
            ],
            cost_band="$",
            time_to_impact_days=7,
        ),
        lift=1.3,
    ),
    "competition_gap": _Template(
        factor="competition_gap",
        title="Launch wedge feature + switching guide",
        why="Incumbents own broad use cases; win via an underserved workflow.",
        how_to=[
            "Identify a neglected workflow from competitor reviews.",
            "Ship a micro-feature that is 10x better for that workflow.",
            'Publish a "Switch in 15 minutes" guide with an import tool.',
            "Offer a switching incentive (e.g. 3 months free for switchers).",
        ],
        experiment=Experiment(
            hypothesis="Wedge feature + import raises win-rate 15% on competitive deals.",
            metric="ARR",
            design=[
                'Tag all "switch" deals in CRM',
                "Compare close-rate pre/post feature launch",
                "Track time-to-close for the switcher cohort",
            ],
            cost_band="$$",
            time_to_impact_days=21,
        ),
        lift=1.15,
    ),
    "differentiation": _Template(
        factor="differentiation",
        title="Make the 10x moment legible with benchmark + demo",
        why="Users cannot articulate why you are uniquely better.",
        how_to=[
            "Benchmark 3 core tasks vs top alternatives (time, cost, quality).",
            "Add an interactive demo/sandbox that proves the benchmark.",
            "Secure 2 creator reviews that replicate benchmark results.",
            "Build an ROI calculator showing concrete savings.",
        ],
        experiment=Experiment(
            hypothesis="Visible 10x proof increases demo->close by 20%.",
            metric="CR",
            design=[
                "Prospect flow A/B: with vs without benchmark section",
                "Track engagement with interactive elements",
                "Survey closed-won deals on decision factors",
            ],
            cost_band="$$",
            time_to_impact_days=10,
        ),
        lift=1.0,
    ),
    "distribution": _Template(
        factor="distribution",
        title="Concentrate on {channel} with 2 repeatable formats",
        why="A broad-but-shallow channel mix dilutes learning and CAC improvements.",
        how_to=[
            "Pick 2 repeatable formats for {channel} (e.g. myth-busters, POV demo).",
            "Post 5x per week for 3 weeks to build momentum.",
            "Partner with 3 micro-creators (10-50k followers) for seeded UGC.",
            "Retarget site visitors with 2 pain-based hooks.",
        ],
        experiment=Experiment(
            hypothesis="Channel focus improves CAC by 20% and signups by 15%.",
            metric="CTR",
            design=[
                "Hold budget constant; reallocate 80% to one channel",
                "Compare CAC on a 2-week rolling basis",
                "Track virality metrics (shares, saves, comments)",
            ],
            cost_band="$$",
            time_to_impact_days=14,
        ),
        lift=0.85,
    ),
}

_B2B_OUTBOUND = _Template(
    factor="distribution",
    title="B2B outbound engine: LinkedIn + cold email sequence",
    why="B2B requires direct outreach to decision makers.",
    how_to=[
        "Build a list of 500 ICP companies.",
        "Create a 3-touch email sequence focused on ROI.",
        "Run LinkedIn ads to warm up prospects before outreach.",
    ],
    experiment=Experiment(
        hypothesis="Outbound + LinkedIn generates 20 qualified demos in 30 days.",
        metric="ReplyRate",
        design=["Track reply rate, demo book rate, close rate", "A/B subject lines"],
        cost_band="$$",
        time_to_impact_days=30,
    ),
    lift=1.5,
    threshold=B2B_DISTRIBUTION_THRESHOLD,
)


# ===================================================================== #
#  Evidence helpers                                                       #
# ===================================================================== #

def _factor_results(
    factor: str, results: Mapping[SourceId, SourceResult]
) -> List[SourceResult]:
    return [
        results[SourceId(name)]
        for name in FACTOR_SOURCES[factor]
        if SourceId(name) in results
    ]


def factor_confidence(factor: str, results: Mapping[SourceId, SourceResult]) -> str:
    """Confidence in advice for *factor* given the sources behind it.

    high — a contributing source is ``ok`` and has citations
    med  — a contributing source is ``ok`` (sparse citations) or ``degraded``
    low  — every contributing source is unavailable or was not queried
    """
    contributing = _factor_results(factor, results)
    if any(r.status is SourceStatus.OK and r.citations for r in contributing):
        return "high"
    if any(r.status.is_usable for r in contributing):
        return "med"
    return "low"


def factor_citations(factor: str, results: Mapping[SourceId, SourceResult]) -> List[Citation]:
    citations: List[Citation] = []
    for result in _factor_results(factor, results):
        if result.status.is_usable:
            citations.extend(result.citations)
    return citations


def _estimate_delta(score: float, template: _Template, confidence: str, n_citations: int) -> int:
    """Points an experiment is expected to add to its sub-score.

    Proportional to the distance below target and to evidence strength.
    """
    gap = max(0.0, IMPROVEMENT_TARGET - score)
    evidence = _CONFIDENCE_WEIGHT[confidence] * min(1.0, 0.7 + 0.1 * n_citations)
    return max(1, int(round(gap * IMPROVEMENT_CAPTURE_RATE * template.lift * evidence)))


def _render(template: _Template, channel: str) -> Dict[str, object]:
    return {
        "title": template.title.format(channel=channel),
        "how_to": [step.replace("{channel}", channel) for step in template.how_to],
    }


def _build(
    template: _Template,
    score: float,
    results: Mapping[SourceId, SourceResult],
    channel: str,
) -> Improvement:
    confidence = factor_confidence(template.factor, results)
    citations = factor_citations(template.factor, results)
    rendered = _render(template, channel)
    return Improvement(
        factor=template.factor,
        title=rendered["title"],
        why=template.why,
        how_to=rendered["how_to"],
        experiment=template.experiment,
        est_delta=_estimate_delta(score, template, confidence, len(citations)),
        confidence=confidence,
        citations=citations,
    )


# ===================================================================== #
#  Public API                                                             #
# ===================================================================== #

def sort_improvements(improvements: List[Improvement]) -> List[Improvement]:
    """Highest estimated delta first; ties go high → med → low confidence."""
    return sorted(
        improvements,
        key=lambda imp: (-imp.est_delta, CONFIDENCE_ORDER[imp.confidence]),
    )


def recommend_improvements(
    composite: CompositeScore,
    results: Mapping[SourceId, SourceResult],
    refinements: Optional[RefinementParameters] = None,
) -> List[Improvement]:
    """Produce ranked improvements for every sub-score below threshold.

    Scores are read from the post-multiplier breakdown so suggestions track
    what the user currently sees.
    """
    channel = refinements.dominant_channel if refinements is not None else "tiktok"
    improvements: List[Improvement] = []

    for factor in SUB_SCORES:
        score = getattr(composite.adjusted, factor)
        template = _TEMPLATES[factor]
        if score < template.threshold:
            improvements.append(_build(template, score, results, channel))

    distribution = composite.adjusted.distribution
    if refinements is not None and refinements.b2b and distribution < _B2B_OUTBOUND.threshold:
        improvements.append(_build(_B2B_OUTBOUND, distribution, results, channel))

    ranked = sort_improvements(improvements)
    logger.info(
        "Recommended %d improvements (%s)",
        len(ranked),
        ", ".join(f"{imp.factor}+{imp.est_delta}" for imp in ranked) or "none",
    )
    return ranked
