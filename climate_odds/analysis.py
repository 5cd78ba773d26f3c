"""Weather analysis pipeline: fetch, normalize, estimate."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Union

from climate_odds.config import Settings
from climate_odds.errors import ValidationError
from climate_odds.weather.nasa_power import (
    Coordinate,
    DateRange,
    NasaPowerClient,
    Provenance,
)
from climate_odds.weather.normalize import Normalizer
from climate_odds.weather.parameters import (
    PARAMETER_INFO,
    ParameterKey,
    ParameterInfo,
    parse_parameters,
)
from climate_odds.weather.probability import (
    ProbabilityEstimate,
    ProbabilityEstimator,
    Statistic,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisRequest:
    """A query from the UI: where, when and what to analyse."""

    coordinate: Coordinate
    parameters: tuple[ParameterKey, ...]
    reference_date: date
    label: str = ""  # Human-readable place name

    @classmethod
    def create(
        cls,
        latitude: float,
        longitude: float,
        parameters: Iterable[Union[str, ParameterKey]],
        reference_date: date,
        label: str = "",
    ) -> "AnalysisRequest":
        """Build and validate a request from plain values.

        Raises:
            ValidationError: If any field is malformed.
        """
        if not isinstance(reference_date, date):
            raise ValidationError("reference_date must be a date")
        return cls(
            coordinate=Coordinate(latitude=latitude, longitude=longitude),
            parameters=parse_parameters(parameters),
            reference_date=reference_date,
            label=label,
        )


@dataclass(frozen=True)
class ParameterAnalysis:
    """Result for one parameter. Statistic and estimate are None when no data."""

    parameter: ParameterKey
    unit: str
    provenance: Provenance
    values: tuple[float, ...] = ()
    statistic: Optional[Statistic] = None
    estimate: Optional[ProbabilityEstimate] = None

    @property
    def info(self) -> ParameterInfo:
        return PARAMETER_INFO[self.parameter]

    @property
    def has_data(self) -> bool:
        return self.statistic is not None

    @property
    def is_fallback(self) -> bool:
        return self.provenance is Provenance.FALLBACK


@dataclass
class AnalysisResult:
    """Per-parameter results plus the echoed query."""

    coordinate: Coordinate
    date_range: DateRange
    reference_date: date
    parameters: tuple[ParameterKey, ...]
    analyses: dict[ParameterKey, ParameterAnalysis] = field(default_factory=dict)
    label: str = ""
    provider_error: Optional[str] = None

    @property
    def provenance(self) -> Provenance:
        if any(a.is_fallback for a in self.analyses.values()):
            return Provenance.FALLBACK
        return Provenance.LIVE

    @property
    def is_fallback(self) -> bool:
        return self.provenance is Provenance.FALLBACK

    def get(self, key: Union[str, ParameterKey]) -> Optional[ParameterAnalysis]:
        return self.analyses.get(ParameterKey.parse(key))

    def __iter__(self):
        return (self.analyses[k] for k in self.parameters)


class WeatherAnalysisService:
    """Runs the fetch -> normalize -> estimate pipeline for one query at a time."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[NasaPowerClient] = None,
        normalizer: Optional[Normalizer] = None,
        estimator: Optional[ProbabilityEstimator] = None,
    ):
        """Initialize service.

        Args:
            settings: Settings. Uses defaults if not provided.
            client: Provider client.
            normalizer: Unit normalizer.
            estimator: Probability estimator.
        """
        self.settings = settings or Settings()
        self.client = client or NasaPowerClient(self.settings)
        self.normalizer = normalizer or Normalizer()
        self.estimator = estimator or ProbabilityEstimator(self.settings)

    def date_range_for(self, reference_date: date) -> DateRange:
        """Query window around a reference date."""
        return DateRange.around(reference_date, self.settings.window_years)

    def analyze(
        self,
        request: AnalysisRequest,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisResult:
        """Run the full pipeline for a request.

        Args:
            request: Validated query.
            cancel: Event the caller sets to abandon the provider call. The
                result then carries fallback data.

        Returns:
            Complete AnalysisResult, marked fallback if synthetic data was used.

        Raises:
            ValidationError: If the request is malformed.
        """
        if not isinstance(request, AnalysisRequest):
            raise ValidationError("request must be an AnalysisRequest")

        date_range = self.date_range_for(request.reference_date)
        logger.info(
            f"Analyzing {', '.join(k.value for k in request.parameters)} at "
            f"({request.coordinate.latitude}, {request.coordinate.longitude}) "
            f"for {date_range.start} to {date_range.end}"
        )

        fetched = self.client.fetch(request.coordinate, request.parameters, date_range, cancel)

        analyses = {}
        for key in request.parameters:
            sample = self.normalizer.normalize(key, fetched.samples[key])
            digits = self.normalizer.conversion_for(key).digits
            statistic, estimate = self.estimator.estimate(key, sample, digits)
            if statistic is None:
                logger.info(f"No data for {key.value}")

            analyses[key] = ParameterAnalysis(
                parameter=key,
                unit=PARAMETER_INFO[key].unit,
                provenance=sample.provenance,
                values=sample.values,
                statistic=statistic,
                estimate=estimate,
            )

        result = AnalysisResult(
            coordinate=request.coordinate,
            date_range=date_range,
            reference_date=request.reference_date,
            parameters=request.parameters,
            analyses=analyses,
            label=request.label,
            provider_error=fetched.error,
        )

        if result.is_fallback:
            logger.warning("Analysis used fallback data; results are synthetic")

        return result
