"""User-adjustable refinement parameters.

Channel weights always sum to 1.0: they are renormalised on construction
and on every single-channel edit.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator

from ..constants import (
    CHANNELS,
    DEFAULT_AGE_RANGE,
    DEFAULT_CHANNEL_WEIGHTS,
    DEFAULT_PRICE_POINT,
    DEFAULT_REGION_FOCUS,
    PRICE_BAND_LIMITS,
)


def renormalize_channel_weights(weights: Dict[str, float]) -> Dict[str, float]:
    """Scale *weights* so they sum to 1.0.

    Every known channel is present in the result.  If all weights are zero
    the attention is spread evenly.
    """
    full = {channel: float(weights.get(channel, 0.0)) for channel in CHANNELS}
    total = sum(full.values())
    if total <= 0:
        even = 1.0 / len(CHANNELS)
        return {channel: even for channel in CHANNELS}
    # Already normalised: keep values as-is so re-validation is idempotent
    if abs(total - 1.0) < 1e-9:
        return full
    return {channel: value / total for channel, value in full.items()}


class RefinementParameters(BaseModel):
    """Sliders and toggles that perturb sub-scores before recomposition."""

    age_range: Tuple[int, int] = Field(
        default=DEFAULT_AGE_RANGE,
        description="Inclusive target age bounds (low, high)",
    )
    price_point: float = Field(
        default=DEFAULT_PRICE_POINT,
        ge=0.0,
        description="Monthly price point in USD",
    )
    region_focus: str = Field(default=DEFAULT_REGION_FOCUS)
    channel_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_CHANNEL_WEIGHTS),
        description="Attention share per channel; always sums to 1.0",
    )
    b2b: bool = False
    premium: bool = False
    niche: bool = True

    @field_validator("age_range")
    @classmethod
    def _check_age_range(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        low, high = value
        if low < 0 or high > 120:
            raise ValueError("age_range must lie within 0-120")
        if low > high:
            raise ValueError("age_range lower bound exceeds upper bound")
        return value

    @field_validator("channel_weights")
    @classmethod
    def _check_channel_weights(cls, value: Dict[str, float]) -> Dict[str, float]:
        unknown = sorted(set(value) - set(CHANNELS))
        if unknown:
            raise ValueError(f"unknown channels: {', '.join(unknown)}")
        if any(weight < 0 for weight in value.values()):
            raise ValueError("channel weights must be non-negative")
        return renormalize_channel_weights(value)

    def with_channel_weight(self, channel: str, weight: float) -> "RefinementParameters":
        """Return a copy with *channel* set to *weight*, renormalised."""
        if channel not in CHANNELS:
            raise ValueError(f"unknown channel: {channel}")
        if weight < 0:
            raise ValueError("channel weights must be non-negative")
        weights = dict(self.channel_weights)
        weights[channel] = weight
        return self.model_copy(
            update={"channel_weights": renormalize_channel_weights(weights)}
        )

    @property
    def price_band(self) -> str:
        budget_limit, mid_limit = PRICE_BAND_LIMITS
        if self.price_point < budget_limit:
            return "budget"
        if self.price_point < mid_limit:
            return "mid"
        return "premium"

    @property
    def dominant_channel(self) -> str:
        # Ties resolve to the earliest channel in CHANNELS order
        return max(CHANNELS, key=lambda channel: self.channel_weights.get(channel, 0.0))

    def active_flags(self) -> List[str]:
        return [flag for flag in ("b2b", "premium", "niche") if getattr(self, flag)]
