"""Deterministic Scoring Engine.

Combines the five canonical sub-scores into one PM-Fit score using fixed
weights, after applying user refinement multipliers.

Rules
-----
- NO API calls
- NO DB writes
- NO randomness, NO hidden state
- Multipliers first, then the weighted sum, then clamp + round half up
- Only the composite is clamped; adjusted sub-scores may exceed 100
- Pure deterministic math
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional

from ..constants import NEUTRAL_SUB_SCORE, REFINEMENT_MULTIPLIERS, SCORE_WEIGHTS, SUB_SCORES
from ..schemas.refinement_schema import RefinementParameters
from ..schemas.score_schema import AdjustedSubScores, CompositeScore, SubScores

logger = logging.getLogger(__name__)


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    """Clamp *value* to [lo, hi]."""
    return max(lo, min(hi, value))


def refinement_multipliers(refinements: Optional[RefinementParameters]) -> Dict[str, float]:
    """Per-sub-score multiplier implied by the refinement toggles.

    ``None`` means no refinements: every multiplier is 1.0.
    """
    multipliers = {name: 1.0 for name in SUB_SCORES}
    if refinements is None:
        return multipliers
    for flag, (target, when_set, when_clear) in REFINEMENT_MULTIPLIERS.items():
        multipliers[target] *= when_set if getattr(refinements, flag) else when_clear
    return multipliers


def _post_multiplier(
    sub_scores: SubScores,
    refinements: Optional[RefinementParameters],
) -> Dict[str, float]:
    multipliers = refinement_multipliers(refinements)
    values: Dict[str, float] = {}
    for name in SUB_SCORES:
        value = getattr(sub_scores, name)
        base = NEUTRAL_SUB_SCORE if value is None else value
        values[name] = base * multipliers[name]
    return values


def _round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (``round`` would go to even)."""
    # 6-decimal pre-round absorbs float noise such as 50.49999999999999
    return int(math.floor(round(value, 6) + 0.5))


def apply_refinements(
    sub_scores: SubScores,
    refinements: Optional[RefinementParameters] = None,
) -> AdjustedSubScores:
    """Fill absent sub-scores with the neutral default and apply multipliers.

    Values are not clamped: a boosted factor may exceed 100, only the
    composite is bounded.
    """
    values = _post_multiplier(sub_scores, refinements)
    return AdjustedSubScores(**{name: round(value, 2) for name, value in values.items()})


def compute_composite(
    sub_scores: SubScores,
    refinements: Optional[RefinementParameters] = None,
) -> CompositeScore:
    """Compute the PM-Fit composite from sub-scores and refinements.

    Parameters
    ----------
    sub_scores : SubScores
        Derived sub-scores; ``None`` fields use the neutral default.
    refinements : RefinementParameters, optional
        Current user refinements.  ``None`` applies no multipliers.

    Returns
    -------
    CompositeScore
        Integer ``pm_fit_score`` in [0, 100] plus the post-multiplier
        breakdown.
    """
    values = _post_multiplier(sub_scores, refinements)
    adjusted = apply_refinements(sub_scores, refinements)
    defaulted = [name for name in SUB_SCORES if getattr(sub_scores, name) is None]

    # Multipliers, then weighted sum, then clamp + round
    weighted = sum(SCORE_WEIGHTS[name] * values[name] for name in SUB_SCORES)
    pm_fit_score = _round_half_up(_clamp(weighted))

    if defaulted:
        logger.info("Neutral default applied for %s", ", ".join(defaulted))
    if refinements is not None:
        print(f"🎛️  [Scoring] Refinements active: {refinements.active_flags() or 'none'}")
    print(f"📊 [Scoring] PM-Fit score: {pm_fit_score} (weighted={weighted:.2f})")

    return CompositeScore(
        sub_scores=sub_scores,
        adjusted=adjusted,
        pm_fit_score=pm_fit_score,
        weights=dict(SCORE_WEIGHTS),
        defaulted=defaulted,
    )
