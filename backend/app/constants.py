"""Centralized constants shared across the aggregator, scorer and routes.

This module is the SINGLE SOURCE OF TRUTH for source identifiers, backend
function names, scoring weights and refinement defaults.  Reused by:
  - Source Orchestrator
  - Normalization / Scoring / Improvement engines
  - Analysis routes
"""

from __future__ import annotations

# ── Source identifiers ──────────────────────────────────────────────────
# Canonical names.  Every alias seen at the boundary maps onto one of these.
# LOCKED: the order is the default polling order.

SOURCES: list[str] = [
    "search",
    "trends",
    "reddit",
    "youtube",
    "twitter",
    "tiktok",
    "commerce",
]

SOURCE_ALIASES: dict[str, str] = {
    "web": "search",
    "google": "search",
    "google_trends": "trends",
    "forums": "reddit",
    "x": "twitter",
    "amazon": "commerce",
}

# Backend function invoked for each source
SOURCE_FUNCTIONS: dict[str, str] = {
    "search": "search-web",
    "trends": "google-trends",
    "reddit": "reddit-search",
    "youtube": "youtube-search",
    "twitter": "twitter-search",
    "tiktok": "tiktok-trends",
    "commerce": "amazon-public",
}

SOCIAL_SOURCES: tuple[str, ...] = ("youtube", "twitter", "tiktok")

# ── Composite scoring ───────────────────────────────────────────────────
# Canonical five-factor weighting.  Weights sum to 1.0.

SUB_SCORES: list[str] = [
    "demand",
    "pain_intensity",
    "competition_gap",
    "differentiation",
    "distribution",
]

SCORE_WEIGHTS: dict[str, float] = {
    "demand": 0.25,
    "pain_intensity": 0.20,
    "competition_gap": 0.20,
    "differentiation": 0.20,
    "distribution": 0.15,
}

# Absent sub-score (no source populated it) → neutral midpoint, not zero
NEUTRAL_SUB_SCORE: float = 50.0

# Which sources feed each sub-score.  Drives improvement confidence.
FACTOR_SOURCES: dict[str, tuple[str, ...]] = {
    "demand": ("trends",),
    "pain_intensity": ("reddit",),
    "competition_gap": ("search", "commerce"),
    "differentiation": ("search",),
    "distribution": SOCIAL_SOURCES,
}

# ── Refinement multipliers ──────────────────────────────────────────────
# flag → (sub-score, multiplier when set, multiplier when cleared)

REFINEMENT_MULTIPLIERS: dict[str, tuple[str, float, float]] = {
    "niche": ("demand", 0.90, 1.10),
    "premium": ("differentiation", 1.15, 0.95),
    "b2b": ("distribution", 0.85, 1.05),
}

# ── Refinement defaults ─────────────────────────────────────────────────
CHANNELS: list[str] = ["tiktok", "instagram", "reddit", "youtube", "linkedin"]

DEFAULT_CHANNEL_WEIGHTS: dict[str, float] = {
    "tiktok": 0.30,
    "instagram": 0.20,
    "reddit": 0.20,
    "youtube": 0.15,
    "linkedin": 0.15,
}

DEFAULT_AGE_RANGE: tuple[int, int] = (18, 45)
DEFAULT_PRICE_POINT: float = 50.0
DEFAULT_REGION_FOCUS: str = "global"

# price_point < 30 → budget, < 100 → mid, else premium
PRICE_BAND_LIMITS: tuple[float, float] = (30.0, 100.0)

# ── Improvement recommender ─────────────────────────────────────────────
IMPROVEMENT_THRESHOLD: float = 70.0     # sub-scores below this get a suggestion
IMPROVEMENT_TARGET: float = 85.0        # deltas are estimated against this
IMPROVEMENT_CAPTURE_RATE: float = 0.25  # share of the gap one experiment closes
B2B_DISTRIBUTION_THRESHOLD: float = 80.0

CONFIDENCE_ORDER: dict[str, int] = {"high": 0, "med": 1, "low": 2}

# ── Session store keys ──────────────────────────────────────────────────
SESSION_KEY_IDEA = "user_idea"
SESSION_KEY_SCORE = "pm_fit_score"
SESSION_KEY_METADATA = "idea_metadata"
SESSION_KEY_REFINEMENTS = "user_refinements"
