"""Unit conversion from provider-native to display units."""

import math
from dataclasses import dataclass
from typing import Optional

from climate_odds.weather.nasa_power import RawSample
from climate_odds.weather.parameters import PARAMETER_INFO, ParameterKey

KELVIN_OFFSET = 273.15


def kelvin_to_celsius(kelvin: float) -> float:
    """Convert Kelvin to Celsius."""
    return kelvin - KELVIN_OFFSET


def celsius_to_kelvin(celsius: float) -> float:
    """Convert Celsius to Kelvin."""
    return celsius + KELVIN_OFFSET


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up, e.g. 2.5 -> 3 and -2.5 -> -2."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


@dataclass(frozen=True)
class UnitConversion:
    """Linear conversion ``value * factor + offset`` followed by rounding."""

    factor: float = 1.0
    offset: float = 0.0
    digits: int = 2

    def apply(self, value: float) -> float:
        return round_half_up(value * self.factor + self.offset, self.digits)


# Keyed by parameter family
DEFAULT_CONVERSIONS: dict[str, UnitConversion] = {
    "temperature": UnitConversion(offset=-KELVIN_OFFSET, digits=1),  # K -> °C
    "precipitation": UnitConversion(factor=1000.0, digits=0),  # m -> mm
    "wind": UnitConversion(digits=2),
    "humidity": UnitConversion(digits=2),
}


class Normalizer:
    """Converts raw samples into display units."""

    def __init__(self, conversions: Optional[dict[str, UnitConversion]] = None):
        """Initialize normalizer.

        Args:
            conversions: Per-family conversions overriding the defaults.
        """
        self.conversions = {**DEFAULT_CONVERSIONS, **(conversions or {})}

    def conversion_for(self, key: ParameterKey) -> UnitConversion:
        return self.conversions[PARAMETER_INFO[key].family]

    def normalize(self, key: ParameterKey, sample: RawSample) -> RawSample:
        """Convert a sample to display units, keeping order and provenance."""
        conversion = self.conversion_for(key)
        return RawSample(
            parameter=key,
            values=tuple(conversion.apply(v) for v in sample.values),
            provenance=sample.provenance,
        )
