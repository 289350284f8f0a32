"""Refinement parameter tests — channel weights, age range, price band."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from pydantic import ValidationError

from app.constants import CHANNELS, DEFAULT_CHANNEL_WEIGHTS
from app.schemas.refinement_schema import RefinementParameters, renormalize_channel_weights


class TestChannelWeights:
    def test_defaults_sum_to_one(self):
        refinements = RefinementParameters()
        assert abs(sum(refinements.channel_weights.values()) - 1.0) < 1e-6
        assert refinements.channel_weights == pytest.approx(DEFAULT_CHANNEL_WEIGHTS)

    def test_partial_weights_are_filled_and_renormalized(self):
        refinements = RefinementParameters(channel_weights={"tiktok": 2, "reddit": 2})
        assert set(refinements.channel_weights) == set(CHANNELS)
        assert refinements.channel_weights["tiktok"] == pytest.approx(0.5)
        assert refinements.channel_weights["linkedin"] == 0.0
        assert abs(sum(refinements.channel_weights.values()) - 1.0) < 1e-6

    def test_single_channel_edit_renormalizes(self):
        refinements = RefinementParameters().with_channel_weight("linkedin", 0.5)
        assert abs(sum(refinements.channel_weights.values()) - 1.0) < 1e-6
        assert refinements.channel_weights["linkedin"] == pytest.approx(0.5 / 1.35)

    def test_edit_returns_a_copy(self):
        original = RefinementParameters()
        original.with_channel_weight("youtube", 0.9)
        assert original.channel_weights["youtube"] == pytest.approx(0.15)

    def test_all_zero_spreads_evenly(self):
        weights = renormalize_channel_weights({channel: 0.0 for channel in CHANNELS})
        assert all(value == pytest.approx(1.0 / len(CHANNELS)) for value in weights.values())

    def test_unknown_channel_rejected(self):
        with pytest.raises(ValidationError):
            RefinementParameters(channel_weights={"myspace": 1.0})
        with pytest.raises(ValueError):
            RefinementParameters().with_channel_weight("myspace", 0.2)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            RefinementParameters(channel_weights={"tiktok": -0.1, "reddit": 1.0})

    def test_dominant_channel(self):
        assert RefinementParameters().dominant_channel == "tiktok"
        shifted = RefinementParameters().with_channel_weight("youtube", 0.9)
        assert shifted.dominant_channel == "youtube"


class TestOtherParameters:
    def test_defaults(self):
        refinements = RefinementParameters()
        assert refinements.age_range == (18, 45)
        assert refinements.price_point == 50
        assert refinements.region_focus == "global"
        assert refinements.niche is True
        assert refinements.b2b is False
        assert refinements.premium is False

    def test_inverted_age_range_rejected(self):
        with pytest.raises(ValidationError):
            RefinementParameters(age_range=(50, 20))

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            RefinementParameters(price_point=-1)

    @pytest.mark.parametrize(
        "price, band",
        [(0, "budget"), (29.99, "budget"), (30, "mid"), (99, "mid"), (100, "premium"), (499, "premium")],
    )
    def test_price_band(self, price, band):
        assert RefinementParameters(price_point=price).price_band == band

    def test_active_flags(self):
        assert RefinementParameters().active_flags() == ["niche"]
        assert RefinementParameters(b2b=True, premium=True, niche=False).active_flags() == ["b2b", "premium"]

    def test_json_round_trip_keeps_age_tuple(self):
        refinements = RefinementParameters(age_range=(25, 40), b2b=True)
        restored = RefinementParameters.model_validate(refinements.model_dump(mode="json"))
        assert restored == refinements
