"""Weather probability calculations.

The "probability" reported here is a consistency heuristic: a series with low
spread relative to its mean scores high. It is not a calibrated likelihood of
any weather event and should not be presented as one.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from climate_odds.config import Settings
from climate_odds.weather.nasa_power import RawSample
from climate_odds.weather.normalize import round_half_up
from climate_odds.weather.parameters import PARAMETER_INFO, ParameterKey

logger = logging.getLogger(__name__)


class ProbabilityLevel(Enum):
    """Qualitative probability bands."""

    VERY_LOW = "Very Low"
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "Very High"


# Upper bounds (exclusive) of each band; anything at or above 80 is Very High
LEVEL_THRESHOLDS: list[tuple[float, ProbabilityLevel]] = [
    (20.0, ProbabilityLevel.VERY_LOW),
    (40.0, ProbabilityLevel.LOW),
    (60.0, ProbabilityLevel.MODERATE),
    (80.0, ProbabilityLevel.HIGH),
]


def probability_level(probability: float) -> ProbabilityLevel:
    """Map a percentage in [0, 100] to its qualitative level.

    Raises:
        ValueError: If the probability is outside [0, 100].
    """
    if not 0.0 <= probability <= 100.0:
        raise ValueError(f"Probability {probability} outside [0, 100]")

    for upper, level in LEVEL_THRESHOLDS:
        if probability < upper:
            return level
    return ProbabilityLevel.VERY_HIGH


def _levels(very_low: str, low: str, moderate: str, high: str, very_high: str) -> dict:
    return {
        ProbabilityLevel.VERY_LOW: very_low,
        ProbabilityLevel.LOW: low,
        ProbabilityLevel.MODERATE: moderate,
        ProbabilityLevel.HIGH: high,
        ProbabilityLevel.VERY_HIGH: very_high,
    }


RECOMMENDATIONS: dict[ParameterKey, dict[ProbabilityLevel, str]] = {
    ParameterKey.TEMPERATURE: _levels(
        "Temperatures swing widely here; check the forecast closer to the date",
        "Temperatures vary a lot; pack for both warm and cool weather",
        "Expect some temperature variation; bring an extra layer",
        "Temperatures are fairly consistent; plan around the typical range",
        "Temperatures are very consistent; the historical average is a reliable guide",
    ),
    ParameterKey.PRECIPITATION: _levels(
        "Rainfall is highly irregular; keep a backup plan either way",
        "Rainfall varies a lot; carry rain gear just in case",
        "Rainfall is somewhat variable; check the forecast before heading out",
        "Rainfall is fairly predictable; plan around the typical amount",
        "Rainfall is very consistent; the historical amount is a reliable guide",
    ),
    ParameterKey.WIND: _levels(
        "Wind is highly unpredictable; avoid committing to wind-sensitive plans",
        "Wind varies a lot; have a sheltered alternative",
        "Wind is somewhat variable; secure loose items",
        "Wind is fairly steady; plan around typical speeds",
        "Wind is very steady; the historical average is a reliable guide",
    ),
    ParameterKey.HUMIDITY: _levels(
        "Humidity is highly irregular; check conditions on the day",
        "Humidity varies a lot; dress for changing comfort levels",
        "Humidity is somewhat variable; stay hydrated",
        "Humidity is fairly consistent; plan around typical comfort levels",
        "Humidity is very consistent; the historical average is a reliable guide",
    ),
    ParameterKey.VERY_HOT: _levels(
        "Heat is hard to predict; monitor forecasts for heat advisories",
        "Heat varies year to year; keep water and shade available",
        "Consider planning activities for cooler times of day",
        "Plan activities for early morning or evening and stay hydrated",
        "Expect consistent heat; schedule strenuous activities indoors",
    ),
    ParameterKey.VERY_COLD: _levels(
        "Cold spells are hard to predict; watch the forecast",
        "Cold varies year to year; bring a warm layer",
        "Dress in layers and plan indoor alternatives",
        "Expect cold; dress in layers and limit time outdoors",
        "Expect consistent cold; plan indoor alternatives",
    ),
    ParameterKey.VERY_WINDY: _levels(
        "Wind is hard to predict; keep plans flexible",
        "Wind varies year to year; have a sheltered alternative",
        "Secure loose items and consider wind-protected locations",
        "Expect wind; choose wind-protected locations",
        "Expect consistent wind; avoid exposed locations",
    ),
    ParameterKey.VERY_WET: _levels(
        "Heavy rain is hard to predict; keep a backup plan",
        "Rain varies year to year; carry waterproof gear",
        "Have indoor alternatives and waterproof gear ready",
        "Expect wet conditions; plan indoor alternatives",
        "Expect consistently wet conditions; move plans indoors",
    ),
    ParameterKey.VERY_UNCOMFORTABLE: _levels(
        "Comfort conditions are hard to predict; check on the day",
        "Comfort varies year to year; stay flexible",
        "Plan for climate-controlled environments",
        "Expect muggy conditions; favour climate-controlled venues",
        "Expect consistently uncomfortable conditions; plan indoors",
    ),
}


def recommendation_for(key: ParameterKey, level: ProbabilityLevel) -> str:
    """Look up the recommendation text for a parameter and level."""
    return RECOMMENDATIONS[key][level]


@dataclass(frozen=True)
class Statistic:
    """Descriptive statistics of a normalized sample, in display units."""

    average: float
    min: float
    max: float
    sample_count: int
    exceedance_percent: Optional[float] = None  # Condition keys only


@dataclass(frozen=True)
class ProbabilityEstimate:
    """Bounded consistency score with its level and recommendation."""

    parameter: ParameterKey
    probability_percent: int
    level: ProbabilityLevel
    recommendation: str

    @property
    def level_label(self) -> str:
        return self.level.value


class ProbabilityEstimator:
    """Derives statistics and the consistency score from a sample."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize estimator.

        Args:
            settings: Settings carrying the score floor, ceiling and neutral value.
        """
        settings = settings or Settings()
        self.floor = settings.probability_floor
        self.ceiling = settings.probability_ceiling
        self.neutral = settings.neutral_probability

    def consistency_score(self, values: Sequence[float]) -> float:
        """Score a non-empty series by its coefficient of variation.

        ``clamp(100 - sigma / |mean| * 100, floor, ceiling)`` with the
        population standard deviation. A zero mean gives the neutral score.
        """
        arr = np.asarray(values, dtype=float)
        average = float(arr.mean())
        if average == 0.0:
            logger.debug("Zero average, using neutral probability")
            return self.neutral

        sigma = float(arr.std())
        score = 100.0 - (sigma / abs(average) * 100.0)
        return float(np.clip(score, self.floor, self.ceiling))

    def describe(self, key: ParameterKey, values: Sequence[float], digits: int = 2) -> Statistic:
        """Compute average, min, max and count of a non-empty series.

        The average is rounded half-up to ``digits``, the display precision
        of the parameter's unit.
        """
        arr = np.asarray(values, dtype=float)
        info = PARAMETER_INFO[key]

        exceedance = None
        if info.threshold is not None:
            hits = sum(1 for v in values if info.exceeds(v))
            exceedance = round_half_up(100.0 * hits / len(values), 1)

        return Statistic(
            average=round_half_up(float(arr.mean()), digits),
            min=float(arr.min()),
            max=float(arr.max()),
            sample_count=len(values),
            exceedance_percent=exceedance,
        )

    def estimate(
        self,
        key: ParameterKey,
        sample: Union[RawSample, Sequence[float]],
        digits: int = 2,
    ) -> tuple[Optional[Statistic], Optional[ProbabilityEstimate]]:
        """Estimate statistics and probability for one parameter.

        Args:
            key: Parameter being estimated.
            sample: Normalized sample in display units.
            digits: Decimals kept on the average.

        Returns:
            (Statistic, ProbabilityEstimate), or (None, None) for an empty
            sample so callers can show "no data" instead of 0%.
        """
        values = sample.values if isinstance(sample, RawSample) else tuple(sample)
        if not values:
            return None, None

        statistic = self.describe(key, values, digits)
        probability = int(round_half_up(self.consistency_score(values)))
        level = probability_level(probability)

        estimate = ProbabilityEstimate(
            parameter=key,
            probability_percent=probability,
            level=level,
            recommendation=recommendation_for(key, level),
        )
        return statistic, estimate
