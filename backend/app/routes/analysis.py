"""PM-Fit Analysis Routes.

Thin HTTP layer over the analysis pipeline.  All scoring happens in
``services.analysis_service``; these handlers only validate input, map
errors onto status codes and remember the outcome in the session store.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..agents.signal_aggregation.errors import (
    IdeaValidationError,
    OrchestratorError,
    UnknownSourceError,
)
from ..agents.signal_aggregation.http_client import BackendClient
from ..agents.signal_aggregation.orchestrator import (
    AggregationComplete,
    SourceOrchestrator,
    resolve_source,
    resolve_sources,
    validate_idea,
)
from ..database import get_db
from ..schemas.analysis_schema import (
    AnalysisReport,
    AnalyzeRequest,
    RescoreRequest,
    SessionSnapshot,
)
from ..schemas.source_schema import SourceId
from ..services.analysis_service import analyze_idea, build_report, refresh_source, rescore
from ..services.session_store import AnalysisSession, SqlSessionStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analysis",
    tags=["Analysis"],
)


# ===================================================================== #
#  Dependencies                                                           #
# ===================================================================== #

def get_orchestrator(request: Request) -> SourceOrchestrator:
    """One orchestrator per application (single-user session model)."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = SourceOrchestrator(BackendClient())
        request.app.state.orchestrator = orchestrator
    return orchestrator


def get_session(db: Session = Depends(get_db)) -> AnalysisSession:
    return AnalysisSession(SqlSessionStore(db))


def _bad_request(exc: Exception) -> HTTPException:
    if isinstance(exc, UnknownSourceError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, IdeaValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _validated_sources(sources: Optional[List[str]]) -> Optional[List[SourceId]]:
    if sources is None:
        return None
    return resolve_sources(sources)


# ===================================================================== #
#  Routes                                                                 #
# ===================================================================== #

@router.post(
    "",
    response_model=AnalysisReport,
    summary="Analyze a Startup Idea",
    response_description="Per-source results, composite PM-Fit score and improvements",
)
async def analyze(
    request: AnalyzeRequest,
    orchestrator: SourceOrchestrator = Depends(get_orchestrator),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisReport:
    """Query every source for the idea and return the scored report.

    Individual source failures never fail the request; they show up as
    ``unavailable`` entries and the score falls back to neutral values.
    """
    try:
        sources = _validated_sources(request.sources)
        refinements = request.refinements or session.refinements()
        report = await analyze_idea(
            orchestrator,
            request.idea,
            sources,
            request.assumptions,
            refinements,
        )
    except (IdeaValidationError, UnknownSourceError) as exc:
        raise _bad_request(exc) from exc

    session.remember(report)
    return report


@router.post(
    "/stream",
    summary="Analyze a Startup Idea (streamed)",
    response_description="Server-sent events: one per source status change, then the report",
)
async def analyze_stream(
    request: AnalyzeRequest,
    orchestrator: SourceOrchestrator = Depends(get_orchestrator),
    session: AnalysisSession = Depends(get_session),
) -> StreamingResponse:
    """Stream per-source progress as SSE, ending with a ``report`` event."""
    # Validate up front so bad input gets a proper status code, not a broken stream
    try:
        idea = validate_idea(request.idea)
        sources = _validated_sources(request.sources)
    except (IdeaValidationError, UnknownSourceError) as exc:
        raise _bad_request(exc) from exc

    refinements = request.refinements or session.refinements()

    async def events() -> AsyncIterator[str]:
        async for item in orchestrator.stream(idea, sources, request.assumptions):
            if isinstance(item, AggregationComplete):
                report = build_report(
                    item.idea,
                    item.results,
                    refinements,
                    stale=not orchestrator.is_current(item.session),
                )
                session.remember(report)
                yield f"event: report\ndata: {report.model_dump_json(by_alias=True)}\n\n"
                continue
            payload = {
                "session": item.session,
                "source": item.source.value,
                "status": item.status.value,
                "result": item.result.model_dump(mode="json", by_alias=True),
            }
            yield f"event: status\ndata: {json.dumps(payload)}\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")


@router.post(
    "/sources/{source}/refresh",
    response_model=AnalysisReport,
    summary="Refresh One Source",
    response_description="Report re-scored with the refreshed source",
)
async def refresh(
    source: str,
    orchestrator: SourceOrchestrator = Depends(get_orchestrator),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisReport:
    """Re-fetch a single source for the current idea.  Other sources are untouched."""
    try:
        source_id = resolve_source(source)
        report = await refresh_source(orchestrator, source_id, session.refinements())
    except (UnknownSourceError, OrchestratorError) as exc:
        raise _bad_request(exc) from exc

    session.remember(report)
    return report


@router.post(
    "/rescore",
    response_model=AnalysisReport,
    summary="Re-score With New Refinements",
    response_description="Report recomputed from cached sub-scores; no network calls",
)
async def rescore_current(
    request: RescoreRequest,
    orchestrator: SourceOrchestrator = Depends(get_orchestrator),
    session: AnalysisSession = Depends(get_session),
) -> AnalysisReport:
    try:
        report = rescore(orchestrator, request.refinements)
    except OrchestratorError as exc:
        raise _bad_request(exc) from exc

    session.remember(report)
    return report


@router.get(
    "/session",
    response_model=SessionSnapshot,
    summary="Last Analyzed Idea",
)
async def get_last_session(session: AnalysisSession = Depends(get_session)) -> SessionSnapshot:
    """Return what the session store remembers about the last analysis."""
    return session.snapshot()


@router.get(
    "/health",
    summary="Analysis Service Health",
)
async def health(orchestrator: SourceOrchestrator = Depends(get_orchestrator)):
    return {
        "status": "healthy",
        "service": "pm-fit-analysis",
        "backend_configured": orchestrator.client.configured,
        "sources": [source.value for source in orchestrator.default_sources],
    }
