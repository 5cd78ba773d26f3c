"""Weather parameters tracked by the analysis and their provider mapping."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from climate_odds.errors import ValidationError


class ParameterKey(Enum):
    """Weather variables (and "very X" conditions) a query can ask about."""

    TEMPERATURE = "temperature"
    PRECIPITATION = "precipitation"
    WIND = "wind"
    HUMIDITY = "humidity"

    # Condition-based variant
    VERY_HOT = "veryHot"
    VERY_COLD = "veryCold"
    VERY_WINDY = "veryWindy"
    VERY_WET = "veryWet"
    VERY_UNCOMFORTABLE = "veryUncomfortable"

    @classmethod
    def parse(cls, value: Union[str, "ParameterKey"]) -> "ParameterKey":
        """Resolve a key from its value (e.g. "temperature" or "veryHot").

        Raises:
            ValidationError: If the value is not a recognized parameter.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(k.value for k in cls)
            raise ValidationError(f"Unknown parameter {value!r} (expected one of: {known})") from None


@dataclass(frozen=True)
class ParameterInfo:
    """Static provider and display configuration for one parameter."""

    key: ParameterKey
    provider_code: str
    unit: str
    family: str  # temperature, precipitation, wind or humidity
    title: str
    description: str
    threshold: Optional[float] = None  # display units, condition keys only
    comparison: Optional[str] = None  # ">", ">=" or "<"

    def exceeds(self, value: float) -> bool:
        """Check whether a display-unit value is past this condition's threshold."""
        if self.threshold is None:
            return False
        if self.comparison == "<":
            return value < self.threshold
        if self.comparison == ">=":
            return value >= self.threshold
        return value > self.threshold


PARAMETER_INFO: dict[ParameterKey, ParameterInfo] = {
    ParameterKey.TEMPERATURE: ParameterInfo(
        key=ParameterKey.TEMPERATURE,
        provider_code="T2M",
        unit="°C",
        family="temperature",
        title="Temperature",
        description="Air temperature at 2 meters",
    ),
    ParameterKey.PRECIPITATION: ParameterInfo(
        key=ParameterKey.PRECIPITATION,
        provider_code="PRECTOT",
        unit="mm",
        family="precipitation",
        title="Precipitation",
        description="Total precipitation",
    ),
    ParameterKey.WIND: ParameterInfo(
        key=ParameterKey.WIND,
        provider_code="WS2M",
        unit="m/s",
        family="wind",
        title="Wind",
        description="Wind speed at 2 meters",
    ),
    ParameterKey.HUMIDITY: ParameterInfo(
        key=ParameterKey.HUMIDITY,
        provider_code="RH2M",
        unit="%",
        family="humidity",
        title="Humidity",
        description="Relative humidity at 2 meters",
    ),
    ParameterKey.VERY_HOT: ParameterInfo(
        key=ParameterKey.VERY_HOT,
        provider_code="T2M_MAX",
        unit="°C",
        family="temperature",
        title="Very Hot",
        description="Extreme heat above 35°C",
        threshold=35.0,
        comparison=">",
    ),
    ParameterKey.VERY_COLD: ParameterInfo(
        key=ParameterKey.VERY_COLD,
        provider_code="T2M_MIN",
        unit="°C",
        family="temperature",
        title="Very Cold",
        description="Extreme cold below 0°C",
        threshold=0.0,
        comparison="<",
    ),
    ParameterKey.VERY_WINDY: ParameterInfo(
        key=ParameterKey.VERY_WINDY,
        provider_code="WS2M_MAX",
        unit="m/s",
        family="wind",
        title="Very Windy",
        description="High winds above 25 km/h",
        threshold=6.94,  # 25 km/h
        comparison=">",
    ),
    ParameterKey.VERY_WET: ParameterInfo(
        key=ParameterKey.VERY_WET,
        provider_code="PRECTOT",
        unit="mm",
        family="precipitation",
        title="Very Wet",
        description="Heavy precipitation",
        threshold=10.0,
        comparison=">=",
    ),
    ParameterKey.VERY_UNCOMFORTABLE: ParameterInfo(
        key=ParameterKey.VERY_UNCOMFORTABLE,
        provider_code="RH2M",
        unit="%",
        family="humidity",
        title="Very Uncomfortable",
        description="Poor comfort conditions",
        threshold=80.0,
        comparison=">=",
    ),
}


def get_info(key: ParameterKey) -> ParameterInfo:
    """Get the static info for a parameter key."""
    return PARAMETER_INFO[key]


def parse_parameters(values: Iterable[Union[str, ParameterKey]]) -> tuple[ParameterKey, ...]:
    """Parse and de-duplicate a parameter selection, keeping first-seen order.

    Raises:
        ValidationError: If the selection is empty or holds an unknown key.
    """
    keys: list[ParameterKey] = []
    for value in values:
        key = ParameterKey.parse(value)
        if key not in keys:
            keys.append(key)

    if not keys:
        raise ValidationError("At least one parameter must be selected")

    return tuple(keys)


def provider_codes(keys: Iterable[ParameterKey]) -> list[str]:
    """Provider codes for a key selection, de-duplicated in order."""
    codes: list[str] = []
    for key in keys:
        code = PARAMETER_INFO[key].provider_code
        if code not in codes:
            codes.append(code)
    return codes
