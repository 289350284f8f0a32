"""
Source Orchestrator

Issues one backend query per configured source for an idea, concurrently,
and tracks each source's status as it resolves.

Guarantees:
- Every requested source ends in exactly one terminal result, even if the
  backend is down; a failing source never affects its siblings.
- Observers are notified per source, as soon as that source resolves.
- A new ``run`` starts a new fetch session.  Results that arrive for an
  older session are dropped instead of being merged into the new one.
- Only a source's own completion handler writes its entry, and a source
  that is already fetching is never queried a second time concurrently.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from ...constants import SOURCE_ALIASES, SOURCE_FUNCTIONS, SOURCES
from ...schemas.source_schema import Citation, SourceId, SourceQuery, SourceResult, SourceStatus
from ...services.normalization_engine import has_scoring_metrics, normalize, parse_payload
from .errors import IdeaValidationError, OrchestratorError, UnknownSourceError
from .http_client import BackendClient, InvokeResult
from .timing import timed_span

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Events                                                                 #
# ===================================================================== #

@dataclass(frozen=True)
class SourceStatusEvent:
    """One source entered ``fetching`` or a terminal status."""

    session: int
    idea: str
    source: SourceId
    status: SourceStatus
    result: SourceResult


@dataclass(frozen=True)
class AggregationComplete:
    """Final item of ``SourceOrchestrator.stream``."""

    session: int
    idea: str
    results: Dict[SourceId, SourceResult] = field(default_factory=dict)


StatusListener = Callable[[SourceStatusEvent], Union[None, Awaitable[None]]]


# ===================================================================== #
#  Input validation                                                       #
# ===================================================================== #

def validate_idea(idea: Any) -> str:
    """Return the stripped idea text or raise ``IdeaValidationError``."""
    if not isinstance(idea, str) or not idea.strip():
        raise IdeaValidationError("Idea text must be a non-empty string")
    return idea.strip()


def resolve_source(source: Union[str, SourceId]) -> SourceId:
    """Map a source name or alias onto its canonical ``SourceId``."""
    if isinstance(source, SourceId):
        return source
    if not isinstance(source, str):
        raise UnknownSourceError(source)
    key = source.strip().lower()
    key = SOURCE_ALIASES.get(key, key)
    try:
        return SourceId(key)
    except ValueError:
        raise UnknownSourceError(source) from None


def resolve_sources(sources: Iterable[Union[str, SourceId]]) -> List[SourceId]:
    """Resolve every source, dropping duplicates but keeping order."""
    resolved: List[SourceId] = []
    for source in sources:
        source_id = resolve_source(source)
        if source_id not in resolved:
            resolved.append(source_id)
    return resolved


# ===================================================================== #
#  Request / response mapping                                             #
# ===================================================================== #

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_request_payload(query: SourceQuery) -> Dict[str, Any]:
    """Body sent to the backend function for *query*'s source."""
    idea = query.idea
    bodies: Dict[SourceId, Dict[str, Any]] = {
        SourceId.SEARCH: {"query": f"{idea} market competitors pricing"},
        SourceId.TRENDS: {"idea": idea},
        SourceId.REDDIT: {"query": idea},
        SourceId.YOUTUBE: {"q": idea},
        SourceId.TWITTER: {"q": idea},
        SourceId.TIKTOK: {"hashtags": ["".join(idea.split())]},
        SourceId.COMMERCE: {"query": idea},
    }
    payload = dict(bodies[query.source])
    if query.assumptions:
        payload["assumptions"] = dict(query.assumptions)
    return payload


def _fetching(query: SourceQuery) -> SourceResult:
    return SourceResult(source=query.source, idea=query.idea, status=SourceStatus.FETCHING)


def _unavailable(query: SourceQuery, reason: str) -> SourceResult:
    return SourceResult(
        source=query.source,
        idea=query.idea,
        status=SourceStatus.UNAVAILABLE,
        fetched_at_iso=_now_iso(),
        reason=reason,
    )


def _describe_error(error: Optional[Mapping[str, Any]]) -> str:
    if not error:
        return "empty response"
    return str(error.get("message") or error)


def to_source_result(query: SourceQuery, body: Mapping[str, Any]) -> SourceResult:
    """Turn a successful backend body into a terminal ``SourceResult``.

    The backend's own ``status`` flag is honoured; an ``ok`` body that
    yields no scoring metric is downgraded to ``degraded``.  A body that
    does not match the source's payload shape is ``unavailable``.
    """
    flag = str(body.get("status") or "ok").lower()
    fetched_at = body.get("fetchedAtISO") or _now_iso()

    if flag == SourceStatus.UNAVAILABLE.value:
        return _unavailable(query, str(body.get("reason") or "source reported unavailable"))

    try:
        metrics = normalize(parse_payload(query.source, body))
        citations = [
            Citation.model_validate({"fetchedAtISO": fetched_at, **citation})
            for citation in body.get("citations") or []
        ]
    except (TypeError, ValueError) as exc:
        logger.warning("Malformed %s payload: %s", query.source.value, exc)
        return _unavailable(query, f"malformed payload: {str(exc)[:200]}")

    status = SourceStatus.DEGRADED if flag == SourceStatus.DEGRADED.value else SourceStatus.OK
    reason = body.get("reason")
    if status is SourceStatus.OK and not has_scoring_metrics(metrics):
        status = SourceStatus.DEGRADED
        reason = reason or "no usable metrics in response"

    raw = body.get("raw")
    return SourceResult(
        source=query.source,
        idea=query.idea,
        status=status,
        raw=raw if isinstance(raw, dict) else None,
        metrics=metrics,
        citations=citations,
        fetched_at_iso=str(fetched_at),
        reason=str(reason) if reason else None,
    )


# ===================================================================== #
#  Orchestrator                                                           #
# ===================================================================== #

class SourceOrchestrator:
    """Owns the per-source status mapping for the current idea."""

    def __init__(self, client: BackendClient, sources: Optional[Iterable[str]] = None):
        self._client = client
        self._default_sources = resolve_sources(sources if sources is not None else SOURCES)
        self._listeners: List[StatusListener] = []
        self._results: Dict[SourceId, SourceResult] = {}
        self._inflight: Dict[SourceId, asyncio.Task] = {}
        self._idea: Optional[str] = None
        self._assumptions: Dict[str, Any] = {}
        self._session = 0

    # ── read-only state ─────────────────────────────────────────────────

    @property
    def client(self) -> BackendClient:
        return self._client

    @property
    def current_idea(self) -> Optional[str]:
        return self._idea

    @property
    def session(self) -> int:
        return self._session

    def is_current(self, session: int) -> bool:
        """Whether *session* is still the latest fetch session."""
        return session == self._session

    @property
    def default_sources(self) -> List[SourceId]:
        return list(self._default_sources)

    @property
    def results(self) -> Dict[SourceId, SourceResult]:
        """Snapshot of the current mapping (same result objects)."""
        return dict(self._results)

    # ── observers ───────────────────────────────────────────────────────

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, session: int, result: SourceResult):
        event = SourceStatusEvent(
            session=session,
            idea=result.idea,
            source=result.source,
            status=result.status,
            result=result,
        )
        for listener in list(self._listeners):
            try:
                outcome = listener(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Status listener failed for source %s", result.source.value)

    # ── fetching ────────────────────────────────────────────────────────

    async def _query_source(self, query: SourceQuery) -> SourceResult:
        function_name = SOURCE_FUNCTIONS[query.source.value]
        try:
            response: InvokeResult = await self._client.invoke(
                function_name, build_request_payload(query)
            )
        except Exception as exc:
            logger.warning("Source %s failed: %s", query.source.value, exc)
            return _unavailable(query, f"{function_name} failed: {str(exc)[:200]}")

        if response.error is not None or response.data is None:
            logger.warning(
                "Source %s unavailable: %s", query.source.value, _describe_error(response.error)
            )
            return _unavailable(query, _describe_error(response.error))

        return to_source_result(query, response.data)

    async def _fetch(self, session: int, query: SourceQuery) -> SourceResult:
        async with timed_span(f"source:{query.source.value}") as span:
            result = await self._query_source(query)
            span["status"] = result.status.value

        if session != self._session:
            logger.info(
                "Discarding stale %s result for superseded idea %r",
                query.source.value,
                query.idea[:60],
            )
            return result

        self._results[query.source] = result
        self._inflight.pop(query.source, None)
        await self._emit(session, result)
        return result

    async def _begin(self, session: int, query: SourceQuery) -> asyncio.Task:
        placeholder = _fetching(query)
        self._results[query.source] = placeholder
        task = asyncio.ensure_future(self._fetch(session, query))
        self._inflight[query.source] = task
        await self._emit(session, placeholder)
        return task

    # ── public API ──────────────────────────────────────────────────────

    def _prepare(
        self,
        idea: Any,
        sources: Optional[Iterable[Union[str, SourceId]]],
        assumptions: Optional[Mapping[str, Any]],
    ) -> Tuple[int, List[SourceQuery]]:
        """Validate input and open a new fetch session.  No network calls."""
        idea = validate_idea(idea)
        targets = resolve_sources(sources) if sources is not None else list(self._default_sources)

        self._session += 1
        self._idea = idea
        self._assumptions = dict(assumptions or {})
        self._results = {}
        self._inflight = {}

        queries = [
            SourceQuery(source=source, idea=idea, assumptions=self._assumptions)
            for source in targets
        ]
        print(
            f"➡️  [Orchestrator] Session {self._session} START — "
            f"{len(queries)} sources for idea={idea[:60]!r}"
        )
        return self._session, queries

    async def _execute(self, session: int, queries: List[SourceQuery]) -> Dict[SourceId, SourceResult]:
        tasks = [await self._begin(session, query) for query in queries]
        completed = await asyncio.gather(*tasks)
        results = {result.source: result for result in completed}

        statuses = ", ".join(f"{r.source.value}={r.status.value}" for r in completed)
        print(f"✅ [Orchestrator] Session {session} COMPLETE — {statuses or 'no sources'}")
        return results

    async def run(
        self,
        idea: str,
        sources: Optional[Iterable[Union[str, SourceId]]] = None,
        assumptions: Optional[Mapping[str, Any]] = None,
    ) -> Dict[SourceId, SourceResult]:
        """Query every source concurrently for *idea*.

        Returns one terminal ``SourceResult`` per requested source.  Raises
        ``IdeaValidationError`` / ``UnknownSourceError`` before any network
        activity; per-source failures come back as ``unavailable``.
        """
        return (await self.collect(idea, sources, assumptions)).results

    async def collect(
        self,
        idea: str,
        sources: Optional[Iterable[Union[str, SourceId]]] = None,
        assumptions: Optional[Mapping[str, Any]] = None,
    ) -> AggregationComplete:
        """Like ``run`` but keeps the session number with the results.

        Callers check ``is_current(complete.session)`` before treating the
        results as the latest analysis.
        """
        session, queries = self._prepare(idea, sources, assumptions)
        idea_text = self._idea or ""
        results = await self._execute(session, queries)
        return AggregationComplete(session=session, idea=idea_text, results=results)

    async def stream(
        self,
        idea: str,
        sources: Optional[Iterable[Union[str, SourceId]]] = None,
        assumptions: Optional[Mapping[str, Any]] = None,
    ) -> AsyncIterator[Union[SourceStatusEvent, AggregationComplete]]:
        """Like ``run`` but yields each status change as it happens.

        The last item is an ``AggregationComplete`` carrying the results.
        """
        session, queries = self._prepare(idea, sources, assumptions)
        idea_text = self._idea or ""
        queue: asyncio.Queue = asyncio.Queue()

        def enqueue(event: SourceStatusEvent):
            if event.session == session:
                queue.put_nowait(event)

        unsubscribe = self.subscribe(enqueue)
        run_task = asyncio.ensure_future(self._execute(session, queries))
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    {getter, run_task}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter in done:
                    yield getter.result()
                    continue
                getter.cancel()
                break
            while not queue.empty():
                yield queue.get_nowait()
            yield AggregationComplete(session=session, idea=idea_text, results=run_task.result())
        finally:
            unsubscribe()

    async def refresh(self, source: Union[str, SourceId]) -> SourceResult:
        """Re-fetch one source for the current idea.

        Other sources' entries are left untouched.  If the source is already
        being fetched, the in-flight query is awaited instead of issuing a
        second one.
        """
        source_id = resolve_source(source)
        if self._idea is None:
            raise OrchestratorError("No idea has been analyzed yet; nothing to refresh")

        inflight = self._inflight.get(source_id)
        if inflight is not None and not inflight.done():
            logger.info("Source %s already fetching; awaiting in-flight query", source_id.value)
            return await asyncio.shield(inflight)

        print(f"🔄 [Orchestrator] Refreshing {source_id.value} for session {self._session}")
        query = SourceQuery(source=source_id, idea=self._idea, assumptions=self._assumptions)
        task = await self._begin(self._session, query)
        return await asyncio.shield(task)
