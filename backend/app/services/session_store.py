"""Session persistence.

Remembers the last analyzed idea across navigation so a separate dashboard
view can pick it up.  Views receive an explicit ``AnalysisSession`` backed by
a ``SessionStore`` adapter instead of reaching for global state.

The store is a plain last-write-wins key-value cache; nothing in it is
authoritative.  Scores can always be recomputed from sub-scores plus
refinements.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..constants import (
    SESSION_KEY_IDEA,
    SESSION_KEY_METADATA,
    SESSION_KEY_REFINEMENTS,
    SESSION_KEY_SCORE,
)
from ..models.session_entry import SessionEntry
from ..schemas.analysis_schema import AnalysisReport, SessionSnapshot
from ..schemas.refinement_schema import RefinementParameters

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Minimal key-value persistence adapter."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the JSON-compatible value stored under *key*, or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous value."""


class InMemorySessionStore(SessionStore):
    """Dict-backed store for tests and single-process use."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so both stores behave identically
        self._data[key] = json.dumps(value)


class SqlSessionStore(SessionStore):
    """Store backed by the ``session_entries`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[Any]:
        entry = self.db.get(SessionEntry, key)
        if entry is None:
            return None
        return json.loads(entry.value_json)

    def set(self, key: str, value: Any) -> None:
        entry = self.db.get(SessionEntry, key)
        payload = json.dumps(value)
        if entry is None:
            self.db.add(SessionEntry(key=key, value_json=payload))
        else:
            entry.value_json = payload
        self.db.commit()


class AnalysisSession:
    """Application-level session context handed to views that need it."""

    def __init__(self, store: SessionStore):
        self.store = store

    def remember(self, report: AnalysisReport) -> None:
        """Write the idea, its score and derived metadata under well-known keys.

        Stale reports are ignored so a superseded analysis never overwrites
        the newer one.
        """
        if report.stale:
            logger.info("Ignoring stale report for idea %r", report.idea[:60])
            return
        self.store.set(SESSION_KEY_IDEA, report.idea)
        self.store.set(SESSION_KEY_SCORE, report.composite.pm_fit_score)
        self.store.set(
            SESSION_KEY_METADATA,
            {
                "score_breakdown": report.composite.sub_scores.model_dump(),
                "adjusted_breakdown": report.composite.adjusted.model_dump(),
                "source_status": dict(report.source_status),
                "defaulted": list(report.composite.defaulted),
                "low_confidence": report.low_confidence,
                "analyzed_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        self.save_refinements(report.refinements)
        print(f"💾 [Session] Remembered idea with PM-Fit score {report.composite.pm_fit_score}")

    def save_refinements(self, refinements: RefinementParameters) -> None:
        self.store.set(SESSION_KEY_REFINEMENTS, refinements.model_dump(mode="json"))

    def refinements(self) -> RefinementParameters:
        """Last saved refinements, or the defaults."""
        stored = self.store.get(SESSION_KEY_REFINEMENTS)
        if stored is None:
            return RefinementParameters()
        try:
            return RefinementParameters.model_validate(stored)
        except ValidationError as exc:
            logger.warning("Discarding invalid stored refinements: %s", exc)
            return RefinementParameters()

    def snapshot(self) -> SessionSnapshot:
        stored_refinements = self.store.get(SESSION_KEY_REFINEMENTS)
        return SessionSnapshot(
            idea=self.store.get(SESSION_KEY_IDEA),
            pm_fit_score=self.store.get(SESSION_KEY_SCORE),
            metadata=self.store.get(SESSION_KEY_METADATA),
            refinements=self.refinements() if stored_refinements is not None else None,
        )
