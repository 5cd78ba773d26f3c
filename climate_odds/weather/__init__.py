"""Weather data fetching, normalization and probability modules."""

from climate_odds.weather.nasa_power import (
    Coordinate,
    DateRange,
    MockNasaPowerClient,
    NasaPowerClient,
    Provenance,
    RawSample,
)
from climate_odds.weather.normalize import Normalizer
from climate_odds.weather.parameters import ParameterKey
from climate_odds.weather.probability import (
    ProbabilityEstimate,
    ProbabilityEstimator,
    ProbabilityLevel,
    Statistic,
)

__all__ = [
    "Coordinate",
    "DateRange",
    "MockNasaPowerClient",
    "NasaPowerClient",
    "Normalizer",
    "ParameterKey",
    "ProbabilityEstimate",
    "ProbabilityEstimator",
    "ProbabilityLevel",
    "Provenance",
    "RawSample",
    "Statistic",
]
