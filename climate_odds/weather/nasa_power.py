"""NASA POWER API client for historical climate observations."""

import logging
import math
import threading
import zlib
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import MAXYEAR, MINYEAR, date
from enum import Enum
from typing import Iterable, Optional, Union

import numpy as np
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from climate_odds.config import Settings
from climate_odds.errors import ProviderError, ValidationError
from climate_odds.weather.parameters import (
    PARAMETER_INFO,
    ParameterKey,
    parse_parameters,
    provider_codes,
)

logger = logging.getLogger(__name__)


class Provenance(Enum):
    """Where a sample came from."""

    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Coordinate:
    """Geographic point. Rejected on construction when out of range."""

    latitude: float
    longitude: float

    def __post_init__(self):
        for name, value, bound in (
            ("latitude", self.latitude, 90.0),
            ("longitude", self.longitude, 180.0),
        ):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValidationError(f"{name} must be finite, got {value}")
            if not -bound <= value <= bound:
                raise ValidationError(f"{name} {value} outside [-{bound:g}, {bound:g}]")


def _shift_years(day: date, years: int) -> date:
    """Move a date by whole years, clamping 29 February to the 28th.

    Raises:
        ValidationError: If the shifted year is outside what ``date`` supports.
    """
    year = day.year + years
    if not MINYEAR <= year <= MAXYEAR:
        raise ValidationError(
            f"Reference date {day} +/- {abs(years)} years is outside the supported range"
        )
    try:
        return day.replace(year=year)
    except ValueError:
        return day.replace(year=year, day=28)


@dataclass(frozen=True)
class DateRange:
    """Inclusive date window for a provider query."""

    start: date
    end: date

    def __post_init__(self):
        if not isinstance(self.start, date) or not isinstance(self.end, date):
            raise ValidationError("Date range bounds must be dates")
        if self.start > self.end:
            raise ValidationError(f"Date range start {self.start} is after end {self.end}")

    @classmethod
    def around(cls, reference: date, years: int) -> "DateRange":
        """Widen a reference date symmetrically by +/- years."""
        if years < 0:
            raise ValidationError("Window years must not be negative")
        return cls(start=_shift_years(reference, -years), end=_shift_years(reference, years))

    @staticmethod
    def format_day(day: date) -> str:
        """Format a date as YYYYMMDD."""
        return day.strftime("%Y%m%d")


@dataclass(frozen=True)
class RawSample:
    """Ordered observations for one parameter, one value per time bucket."""

    parameter: ParameterKey
    values: tuple[float, ...] = ()
    provenance: Provenance = Provenance.LIVE

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_empty(self) -> bool:
        return not self.values

    @property
    def is_fallback(self) -> bool:
        return self.provenance is Provenance.FALLBACK


@dataclass
class FetchResult:
    """Samples for every requested parameter, keyed in selection order."""

    samples: dict[ParameterKey, RawSample] = field(default_factory=dict)
    provenance: Provenance = Provenance.LIVE
    error: Optional[str] = None  # Provider failure reason when falling back

    @property
    def is_fallback(self) -> bool:
        return self.provenance is Provenance.FALLBACK


# Plausible physical ranges in provider units, per parameter family
FALLBACK_RANGES: dict[str, tuple[float, float]] = {
    "temperature": (291.15, 305.15),  # Kelvin, 18 to 32°C
    "precipitation": (0.0, 0.045),  # meters, 0 to 45 mm
    "wind": (0.0, 12.0),  # m/s
    "humidity": (40.0, 90.0),  # percent
}


class FallbackGenerator:
    """Synthetic samples used when the provider is unavailable.

    With a fixed seed every call is reproducible. Without one, the seed is
    derived from the query itself, so repeating a query repeats its fallback.
    """

    def __init__(self, sample_size: int = 30, seed: Optional[int] = None):
        self.sample_size = sample_size
        self.seed = seed

    def _seed_for(self, key: ParameterKey, coordinate: Coordinate, date_range: DateRange) -> int:
        if self.seed is not None:
            # Different parameters must not share one series
            return self.seed ^ zlib.crc32(key.value.encode("utf-8"))

        token = (
            f"{coordinate.latitude:.4f}|{coordinate.longitude:.4f}|"
            f"{date_range.start.isoformat()}|{date_range.end.isoformat()}|{key.value}"
        )
        return zlib.crc32(token.encode("utf-8"))

    def generate(
        self,
        key: ParameterKey,
        coordinate: Coordinate,
        date_range: DateRange,
    ) -> RawSample:
        """Generate a fallback sample in provider units."""
        low, high = FALLBACK_RANGES[PARAMETER_INFO[key].family]
        rng = np.random.default_rng(self._seed_for(key, coordinate, date_range))
        values = rng.uniform(low, high, size=self.sample_size)
        return RawSample(
            parameter=key,
            values=tuple(round(float(v), 4) for v in values),
            provenance=Provenance.FALLBACK,
        )


def _clean_series(series: dict, fill_value: float) -> tuple[float, ...]:
    """Keep numeric observations in provider order, dropping fill codes."""
    values = []
    for raw in series.values():
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            continue
        if not math.isfinite(raw) or raw == fill_value:
            continue
        values.append(float(raw))
    return tuple(values)


def parse_power_payload(
    payload: object,
    keys: Iterable[ParameterKey],
    fill_value: float = -999.0,
) -> dict[ParameterKey, RawSample]:
    """Parse a NASA POWER JSON payload into one sample per key.

    Expected shape: ``properties.parameter.<CODE>.<date> -> value``. A fill
    value in ``header.fill_value`` takes precedence over the given default.
    A code missing from an otherwise valid payload yields an empty sample.

    Raises:
        ProviderError: If the payload does not have the expected shape.
    """
    if not isinstance(payload, dict):
        raise ProviderError("Payload is not a JSON object")

    try:
        parameters = payload["properties"]["parameter"]
    except (KeyError, TypeError):
        raise ProviderError("Payload has no properties.parameter section") from None
    if not isinstance(parameters, dict):
        raise ProviderError("properties.parameter is not an object")

    header = payload.get("header")
    if isinstance(header, dict) and isinstance(header.get("fill_value"), (int, float)):
        fill_value = header["fill_value"]

    samples = {}
    for key in keys:
        code = PARAMETER_INFO[key].provider_code
        series = parameters.get(code)
        if series is None:
            logger.debug(f"No {code} series in payload")
            samples[key] = RawSample(parameter=key)
            continue
        if not isinstance(series, dict):
            raise ProviderError(f"Series for {code} is not an object")
        samples[key] = RawSample(parameter=key, values=_clean_series(series, fill_value))

    return samples


class NasaPowerClient:
    """Client for the NASA POWER climatology API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        fallback: Optional[FallbackGenerator] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize client.

        Args:
            settings: Provider settings. Uses defaults if not provided.
            fallback: Fallback sample generator.
            session: HTTP session to use instead of a new one.
        """
        self.settings = settings or Settings()
        self.fallback = fallback or FallbackGenerator(
            sample_size=self.settings.fallback_sample_size,
            seed=self.settings.fallback_seed,
        )
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create HTTP session, with bounded retry when enabled."""
        session = requests.Session()
        if self.settings.max_retries > 0:
            retry = Retry(
                total=self.settings.max_retries,
                connect=self.settings.max_retries,
                read=self.settings.max_retries,
                backoff_factor=self.settings.retry_backoff,
                backoff_jitter=self.settings.retry_jitter,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=frozenset({"GET"}),
                raise_on_status=False,
                # Waits come from the backoff only, never from Retry-After
                respect_retry_after_header=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        return session

    def fetch(
        self,
        coordinate: Coordinate,
        parameters: Iterable[Union[str, ParameterKey]],
        date_range: DateRange,
        cancel: Optional[threading.Event] = None,
    ) -> FetchResult:
        """Fetch raw observations for every requested parameter.

        Provider failures never propagate: they are logged and replaced by
        fallback samples tagged ``Provenance.FALLBACK``. A query abandoned
        through ``cancel`` takes the same path, with the cancellation as its
        error.

        Args:
            coordinate: Query location.
            parameters: Non-empty parameter selection.
            date_range: Inclusive date window.
            cancel: Event the caller sets to abandon the query.

        Returns:
            FetchResult with one RawSample per parameter.

        Raises:
            ValidationError: If the query is malformed.
        """
        if not isinstance(coordinate, Coordinate):
            raise ValidationError("coordinate must be a Coordinate")
        if not isinstance(date_range, DateRange):
            raise ValidationError("date_range must be a DateRange")
        keys = parse_parameters(parameters)

        try:
            samples = self._fetch_samples(keys, coordinate, date_range, cancel)
        except ProviderError as e:
            logger.warning(f"NASA POWER request failed, using fallback data: {e}")
            return FetchResult(
                samples={k: self.fallback.generate(k, coordinate, date_range) for k in keys},
                provenance=Provenance.FALLBACK,
                error=str(e),
            )

        logger.info(
            f"Fetched {sum(len(s) for s in samples.values())} observations "
            f"for {len(keys)} parameter(s)"
        )
        return FetchResult(samples=samples, provenance=Provenance.LIVE)

    def _fetch_samples(
        self,
        keys: tuple[ParameterKey, ...],
        coordinate: Coordinate,
        date_range: DateRange,
        cancel: Optional[threading.Event] = None,
    ) -> dict[ParameterKey, RawSample]:
        if self.settings.batch_parameters or len(keys) == 1:
            groups = [keys]
        else:
            groups = [(key,) for key in keys]

        payloads = self._run_requests(groups, coordinate, date_range, cancel)

        # Joined in selection order, whatever order the requests finished in
        samples = {}
        for group, payload in zip(groups, payloads):
            samples.update(parse_power_payload(payload, group, self.settings.fill_value))
        return samples

    def _run_requests(
        self,
        groups: list[tuple[ParameterKey, ...]],
        coordinate: Coordinate,
        date_range: DateRange,
        cancel: Optional[threading.Event] = None,
    ) -> list[object]:
        """Issue one request per key group on a thread pool.

        The caller's thread waits in slices of ``cancel_poll_interval`` so a
        set ``cancel`` event abandons the query without waiting for the
        provider. Abandoned requests finish in the background, bounded by
        the request timeout, and their responses are discarded.

        Returns:
            Decoded payloads, one per group, in group order.

        Raises:
            ProviderError: On the first failed request, or when cancelled.
        """
        if cancel is not None and cancel.is_set():
            raise ProviderError("Query cancelled before the request was sent")

        pool = ThreadPoolExecutor(max_workers=min(self.settings.max_workers, len(groups)))
        try:
            futures = [
                pool.submit(self._request, provider_codes(group), coordinate, date_range)
                for group in groups
            ]
            pending = set(futures)
            while pending:
                done, pending = wait(
                    pending,
                    timeout=self.settings.cancel_poll_interval,
                    return_when=FIRST_EXCEPTION,
                )
                for future in done:
                    future.result()
                if pending and cancel is not None and cancel.is_set():
                    raise ProviderError("Query cancelled while waiting for the provider")
            return [future.result() for future in futures]
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _request(self, codes: list[str], coordinate: Coordinate, date_range: DateRange) -> object:
        """Issue one GET and decode the JSON body.

        Raises:
            ProviderError: On any transport, status or decoding failure.
        """
        params = {
            "parameters": ",".join(codes),
            "start": DateRange.format_day(date_range.start),
            "end": DateRange.format_day(date_range.end),
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "community": self.settings.community,
            "format": "JSON",
        }

        try:
            response = self.session.get(
                self.settings.nasa_power_url,
                params=params,
                timeout=self.settings.request_timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout as e:
            raise ProviderError(f"Request timed out after {self.settings.request_timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Request failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Invalid JSON response: {e}") from e


class MockNasaPowerClient(NasaPowerClient):
    """Mock client for testing without network calls."""

    def __init__(
        self,
        mock_samples: Optional[dict[ParameterKey, list[float]]] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize mock client.

        Args:
            mock_samples: Provider-unit values per parameter.
            settings: Settings passed to the real client.
        """
        super().__init__(settings=settings)
        self._mock_samples = dict(mock_samples or {})

    def set_samples(self, key: ParameterKey, values: list[float]) -> None:
        """Set mock values for a parameter."""
        self._mock_samples[key] = values

    def _fetch_samples(
        self,
        keys: tuple[ParameterKey, ...],
        coordinate: Coordinate,
        date_range: DateRange,
        cancel: Optional[threading.Event] = None,
    ) -> dict[ParameterKey, RawSample]:
        """Return mock samples."""
        return {
            key: RawSample(parameter=key, values=tuple(self._mock_samples.get(key, ())))
            for key in keys
        }
