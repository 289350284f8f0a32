"""Normalizer tests — per-source authority, absence vs zero, clamping, sub-score folding."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from app.schemas.payload_schema import (
    CommercePayload,
    RedditPayload,
    SearchPayload,
    TikTokPayload,
    TrendsPayload,
    YouTubePayload,
)
from app.schemas.source_schema import SourceId, SourceMetrics, SourceResult, SourceStatus
from app.services.normalization_engine import (
    derive_sub_scores,
    has_scoring_metrics,
    normalize,
    parse_payload,
)


def _result(source, status=SourceStatus.OK, **metrics):
    return SourceResult(
        source=source,
        idea="meal planner",
        status=status,
        metrics=SourceMetrics(**metrics),
    )


class TestNormalize:
    def test_search_populates_only_its_metrics(self):
        metrics = normalize(SearchPayload(competitorStrength=40, differentiationSignals=65))
        assert metrics.populated() == {"competitor_strength": 40.0, "differentiation_signal": 65.0}

    def test_social_sources_populate_distribution_only(self):
        metrics = normalize(YouTubePayload(volume=42, sentiment=0.3))
        assert metrics.populated() == {"distribution_volume": 42.0}

    def test_tiktok_keeps_hashtags(self):
        metrics = normalize(TikTokPayload(volume=10, hashtags=["#mealprep"]))
        assert metrics.hashtags == ["#mealprep"]

    def test_commerce_saturation_is_competitor_strength(self):
        metrics = normalize(CommercePayload(marketSaturation=75, avgPrice=19.99))
        assert metrics.competitor_strength == 75.0
        assert metrics.differentiation_signal is None

    def test_measured_zero_is_not_absent(self):
        zero = normalize(TrendsPayload(interestScore=0))
        empty = normalize(TrendsPayload())
        assert zero.interest_score == 0.0
        assert empty.interest_score is None

    @pytest.mark.parametrize("raw, expected", [(140, 100.0), (-5, 0.0), (55.5, 55.5)])
    def test_out_of_range_values_are_clamped(self, raw, expected):
        assert normalize(TrendsPayload(interestScore=raw)).interest_score == expected

    @pytest.mark.parametrize("raw", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_values_are_absent(self, raw):
        assert normalize(TrendsPayload(interestScore=raw)).interest_score is None
        assert normalize(CommercePayload(marketSaturation=raw)).competitor_strength is None

    def test_nan_in_series_is_absent(self):
        metrics = normalize(TrendsPayload(interestOverTime=[40, float("nan"), 60]))
        assert metrics.interest_score is None

    def test_same_payload_same_metrics(self):
        payload = RedditPayload(painDensity=61, topPainPhrases=["too expensive"])
        assert normalize(payload) == normalize(payload)

    def test_reddit_mentions_fall_back_to_thread_count(self):
        metrics = normalize(RedditPayload(threads=[{"id": 1}, {"id": 2}, {"id": 3}]))
        assert metrics.pain_mentions == 3
        assert metrics.pain_density is None

    def test_reddit_phrases_are_capped(self):
        phrases = [f"phrase {i}" for i in range(10)]
        metrics = normalize(RedditPayload(painDensity=50, topPainPhrases=phrases))
        assert metrics.top_pain_phrases == phrases[:5]

    def test_unknown_tag_raises(self):
        with pytest.raises(TypeError):
            normalize(SimpleNamespace(source="myspace"))


class TestTrendsSeries:
    def test_interest_from_series_mean(self):
        metrics = normalize(TrendsPayload(interestOverTime=[40, 60]))
        assert metrics.interest_score == 50.0
        assert metrics.velocity is None  # too short

    def test_rising_series_velocity(self):
        metrics = normalize(TrendsPayload(interestOverTime=[10, 10, 10, 20, 20, 20]))
        assert metrics.velocity == 100.0

    def test_flat_series_velocity(self):
        metrics = normalize(TrendsPayload(interestOverTime=[30] * 9))
        assert metrics.velocity == 50.0

    def test_explicit_velocity_wins(self):
        metrics = normalize(TrendsPayload(velocity=12, interestOverTime=[10, 10, 10, 20, 20, 20]))
        assert metrics.velocity == 12.0


class TestParsePayload:
    def test_normalized_block_wins_over_raw(self):
        payload = parse_payload(
            SourceId.TRENDS,
            {"raw": {"interestScore": 10, "regions": ["US"]}, "normalized": {"interestScore": 80}},
        )
        assert payload.interest_score == 80
        assert payload.regions == ["US"]

    def test_source_tag_comes_from_the_query(self):
        payload = parse_payload(SourceId.REDDIT, {"normalized": {"painDensity": 20, "source": "search"}})
        assert isinstance(payload, RedditPayload)

    def test_missing_blocks_give_empty_payload(self):
        payload = parse_payload(SourceId.SEARCH, {"status": "ok"})
        assert not has_scoring_metrics(normalize(payload))

    def test_malformed_value_raises(self):
        with pytest.raises(ValidationError):
            parse_payload(SourceId.TRENDS, {"normalized": {"interestScore": "lots"}})


class TestDeriveSubScores:
    def test_full_result_set(self):
        results = {
            SourceId.SEARCH: _result(SourceId.SEARCH, competitor_strength=40, differentiation_signal=65),
            SourceId.TRENDS: _result(SourceId.TRENDS, interest_score=72),
            SourceId.REDDIT: _result(SourceId.REDDIT, pain_density=55),
            SourceId.COMMERCE: _result(SourceId.COMMERCE, competitor_strength=60),
            SourceId.YOUTUBE: _result(SourceId.YOUTUBE, distribution_volume=40),
            SourceId.TWITTER: _result(SourceId.TWITTER, distribution_volume=30),
            SourceId.TIKTOK: _result(SourceId.TIKTOK, distribution_volume=50),
        }
        sub_scores = derive_sub_scores(results)
        assert sub_scores.demand == 72
        assert sub_scores.pain_intensity == 55
        assert sub_scores.competition_gap == 50
        assert sub_scores.differentiation == 65
        assert sub_scores.distribution == 40

    def test_unavailable_sources_do_not_contribute(self):
        results = {
            SourceId.TRENDS: _result(SourceId.TRENDS, SourceStatus.UNAVAILABLE, interest_score=90),
            SourceId.REDDIT: _result(SourceId.REDDIT, SourceStatus.DEGRADED, pain_density=35),
        }
        sub_scores = derive_sub_scores(results)
        assert sub_scores.demand is None
        assert sub_scores.pain_intensity == 35

    def test_gap_uses_whichever_competition_source_is_present(self):
        results = {SourceId.COMMERCE: _result(SourceId.COMMERCE, competitor_strength=80)}
        assert derive_sub_scores(results).competition_gap == 20

    def test_empty_results(self):
        sub_scores = derive_sub_scores({})
        assert sub_scores.model_dump() == {
            "demand": None,
            "pain_intensity": None,
            "competition_gap": None,
            "differentiation": None,
            "distribution": None,
        }
