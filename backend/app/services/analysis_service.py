"""Analysis pipeline.

Orchestrates aggregation, normalization, scoring and recommendations and
returns one ``AnalysisReport``.  This is the only place the composite is
assembled; routes and views never recompute scores on their own.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..agents.signal_aggregation.orchestrator import SourceOrchestrator
from ..agents.signal_aggregation.errors import OrchestratorError
from ..agents.signal_aggregation.timing import StepTimer
from ..constants import SUB_SCORES
from ..schemas.analysis_schema import AnalysisReport
from ..schemas.refinement_schema import RefinementParameters
from ..schemas.source_schema import Citation, SourceId, SourceResult
from .improvement_engine import factor_citations, recommend_improvements
from .normalization_engine import derive_sub_scores
from .scoring_engine import compute_composite

logger = logging.getLogger(__name__)


def _group_citations(results: Mapping[SourceId, SourceResult]) -> Dict[str, List[Citation]]:
    return {factor: factor_citations(factor, results) for factor in SUB_SCORES}


def build_report(
    idea: str,
    results: Mapping[SourceId, SourceResult],
    refinements: Optional[RefinementParameters] = None,
    timer: Optional[StepTimer] = None,
    stale: bool = False,
) -> AnalysisReport:
    """Score *results* and package everything a dashboard needs.

    Works for any mix of statuses, including every source unavailable:
    the composite then rests on neutral defaults and the report is flagged
    ``low_confidence``.  *stale* marks a report whose fetch session was
    superseded by a newer analysis.
    """
    refinements = refinements or RefinementParameters()
    timer = timer or StepTimer("analysis")

    with timer.step("normalize"):
        sub_scores = derive_sub_scores(results)
    with timer.step("score"):
        composite = compute_composite(sub_scores, refinements)
    with timer.step("recommend"):
        improvements = recommend_improvements(composite, results, refinements)

    low_confidence = not any(result.status.is_usable for result in results.values())
    if low_confidence:
        logger.warning("No usable sources for idea %r; score rests on neutral defaults", idea[:60])

    return AnalysisReport(
        idea=idea,
        sources={source.value: result for source, result in results.items()},
        source_status={source.value: result.status.value for source, result in results.items()},
        composite=composite,
        improvements=improvements,
        citations=_group_citations(results),
        refinements=refinements,
        low_confidence=low_confidence,
        stale=stale,
        timings_ms=timer.summary(),
    )


async def analyze_idea(
    orchestrator: SourceOrchestrator,
    idea: str,
    sources: Optional[Iterable[Union[str, SourceId]]] = None,
    assumptions: Optional[Mapping[str, Any]] = None,
    refinements: Optional[RefinementParameters] = None,
) -> AnalysisReport:
    """Run every source for *idea* and return the scored report.

    If another analysis starts before this one finishes, the report comes
    back with ``stale=True``.
    """
    timer = StepTimer("analysis")
    print("➡️  [ANALYSIS] Pipeline START")
    async with timer.async_step("aggregate"):
        complete = await orchestrator.collect(idea, sources, assumptions)
    stale = not orchestrator.is_current(complete.session)
    if stale:
        logger.info("Session %d superseded while fetching; report marked stale", complete.session)
    report = build_report(complete.idea, complete.results, refinements, timer, stale=stale)
    print(f"✅ [ANALYSIS] Pipeline END — PM-Fit {report.composite.pm_fit_score}")
    return report


async def refresh_source(
    orchestrator: SourceOrchestrator,
    source: Union[str, SourceId],
    refinements: Optional[RefinementParameters] = None,
) -> AnalysisReport:
    """Re-fetch one source and re-score the current result set."""
    timer = StepTimer("refresh")
    async with timer.async_step("aggregate"):
        await orchestrator.refresh(source)
    return build_report(orchestrator.current_idea, orchestrator.results, refinements, timer)


def rescore(
    orchestrator: SourceOrchestrator,
    refinements: RefinementParameters,
) -> AnalysisReport:
    """Recompute score and improvements for new refinements.  No network."""
    if orchestrator.current_idea is None:
        raise OrchestratorError("No idea has been analyzed yet; nothing to rescore")
    return build_report(orchestrator.current_idea, orchestrator.results, refinements)
