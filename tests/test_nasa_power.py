"""Tests for the NASA POWER client (no network)."""

import math
import threading
import time
from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from climate_odds.config import Settings
from climate_odds.errors import ProviderError, ValidationError
from climate_odds.weather.nasa_power import (
    FALLBACK_RANGES,
    Coordinate,
    DateRange,
    FallbackGenerator,
    MockNasaPowerClient,
    NasaPowerClient,
    Provenance,
    parse_power_payload,
)
from climate_odds.weather.parameters import ParameterKey, get_info

SF = Coordinate(latitude=37.7749, longitude=-122.4194)
WINDOW = DateRange(start=date(2023, 7, 4), end=date(2025, 7, 4))


def _payload(parameter: dict, fill_value=-999.0) -> dict:
    """Build a minimal NASA POWER style payload."""
    payload = {
        "type": "Feature",
        "properties": {"parameter": parameter},
    }
    if fill_value is not None:
        payload["header"] = {"title": "NASA/POWER", "fill_value": fill_value}
    return payload


def _response(payload=None, status_error=None, json_error=None) -> MagicMock:
    response = MagicMock()
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def _client(session: MagicMock, **overrides) -> NasaPowerClient:
    settings = Settings(fallback_seed=7, **overrides)
    return NasaPowerClient(settings=settings, session=session)


class TestCoordinate:
    def test_valid(self):
        c = Coordinate(latitude=-90.0, longitude=180.0)
        assert c.latitude == -90.0

    @pytest.mark.parametrize(
        "lat,lon",
        [
            (90.1, 0.0),
            (-91.0, 0.0),
            (0.0, 180.5),
            (0.0, -181.0),
            (math.nan, 0.0),
            (0.0, math.inf),
            ("37.7", 0.0),
            (True, 0.0),
        ],
    )
    def test_invalid_rejected(self, lat, lon):
        with pytest.raises(ValidationError):
            Coordinate(latitude=lat, longitude=lon)


class TestDateRange:
    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            DateRange(start=date(2024, 2, 1), end=date(2024, 1, 1))

    def test_single_day_allowed(self):
        r = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 1))
        assert r.start == r.end

    def test_around_widens_symmetrically(self):
        r = DateRange.around(date(2024, 7, 4), years=1)
        assert r.start == date(2023, 7, 4)
        assert r.end == date(2025, 7, 4)

    def test_around_leap_day(self):
        r = DateRange.around(date(2024, 2, 29), years=1)
        assert r.start == date(2023, 2, 28)
        assert r.end == date(2025, 2, 28)

    def test_zero_years_is_single_day(self):
        r = DateRange.around(date(2024, 7, 4), years=0)
        assert r.start == r.end == date(2024, 7, 4)

    def test_format_day(self):
        assert DateRange.format_day(date(2024, 7, 4)) == "20240704"

    @pytest.mark.parametrize(
        "reference",
        [date(9999, 12, 31), date(1, 1, 1)],
    )
    def test_around_outside_supported_years_rejected(self, reference):
        with pytest.raises(ValidationError, match="outside the supported range"):
            DateRange.around(reference, years=1)

    def test_around_leap_day_at_edge_of_range(self):
        r = DateRange.around(date(9996, 2, 29), years=3)
        assert r.end == date(9999, 2, 28)


class TestParsePayload:
    """Tests for payload parsing and fill filtering."""

    def test_ordered_values(self):
        payload = _payload({"T2M": {"20240101": 290.0, "20240102": 291.5, "20240103": 289.0}})
        samples = parse_power_payload(payload, [ParameterKey.TEMPERATURE])
        assert samples[ParameterKey.TEMPERATURE].values == (290.0, 291.5, 289.0)
        assert samples[ParameterKey.TEMPERATURE].provenance is Provenance.LIVE

    def test_fill_and_non_numeric_dropped(self):
        payload = _payload({
            "T2M": {
                "20240101": 290.0,
                "20240102": -999,
                "20240103": "n/a",
                "20240104": None,
                "20240105": True,
                "20240106": 291.0,
            }
        })
        samples = parse_power_payload(payload, [ParameterKey.TEMPERATURE])
        assert samples[ParameterKey.TEMPERATURE].values == (290.0, 291.0)

    def test_header_fill_value_takes_precedence(self):
        payload = _payload({"WS2M": {"a": 3.0, "b": -99.0, "c": -999.0}}, fill_value=-99.0)
        samples = parse_power_payload(payload, [ParameterKey.WIND], fill_value=-999.0)
        assert samples[ParameterKey.WIND].values == (3.0, -999.0)

    def test_default_fill_without_header(self):
        payload = _payload({"WS2M": {"a": 3.0, "b": -999.0}}, fill_value=None)
        samples = parse_power_payload(payload, [ParameterKey.WIND])
        assert samples[ParameterKey.WIND].values == (3.0,)

    def test_missing_code_gives_empty_sample(self):
        payload = _payload({"T2M": {"a": 290.0}})
        samples = parse_power_payload(payload, [ParameterKey.TEMPERATURE, ParameterKey.PRECIPITATION])
        assert samples[ParameterKey.PRECIPITATION].is_empty

    def test_shared_code_feeds_both_keys(self):
        payload = _payload({"RH2M": {"a": 85.0, "b": 60.0}})
        samples = parse_power_payload(
            payload, [ParameterKey.HUMIDITY, ParameterKey.VERY_UNCOMFORTABLE]
        )
        assert samples[ParameterKey.HUMIDITY].values == samples[ParameterKey.VERY_UNCOMFORTABLE].values

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {"properties": {}},
            {"properties": {"parameter": []}},
            {"properties": {"parameter": {"T2M": [1, 2, 3]}}},
        ],
    )
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(ProviderError):
            parse_power_payload(payload, [ParameterKey.TEMPERATURE])


class TestNasaPowerClient:
    """Tests for request building and failure handling."""

    def test_batched_request_params(self):
        session = MagicMock()
        session.get.return_value = _response(_payload({"T2M": {}, "WS2M": {}}))
        client = _client(session)

        client.fetch(SF, ["temperature", "wind"], WINDOW)

        session.get.assert_called_once()
        call = session.get.call_args
        assert call.args[0] == Settings().nasa_power_url
        params = call.kwargs["params"]
        assert params["parameters"] == "T2M,WS2M"
        assert params["start"] == "20230704"
        assert params["end"] == "20250704"
        assert params["latitude"] == 37.7749
        assert params["longitude"] == -122.4194
        assert params["community"] == "RE"
        assert params["format"] == "JSON"
        assert call.kwargs["timeout"] == 10.0

    def test_shared_codes_requested_once(self):
        session = MagicMock()
        session.get.return_value = _response(_payload({"PRECTOT": {"a": 0.01}}))
        client = _client(session)

        result = client.fetch(SF, ["precipitation", "veryWet"], WINDOW)

        assert session.get.call_args.kwargs["params"]["parameters"] == "PRECTOT"
        assert result.samples[ParameterKey.VERY_WET].values == (0.01,)

    def test_live_result(self):
        session = MagicMock()
        session.get.return_value = _response(
            _payload({"T2M": {"20240704": 298.15, "20250704": 300.15}})
        )
        result = _client(session).fetch(SF, [ParameterKey.TEMPERATURE], WINDOW)

        assert result.provenance is Provenance.LIVE
        assert not result.is_fallback
        assert result.error is None
        assert result.samples[ParameterKey.TEMPERATURE].values == (298.15, 300.15)

    @pytest.mark.parametrize(
        "response_kwargs,get_error",
        [
            ({}, requests.exceptions.Timeout("read timed out")),
            ({}, requests.exceptions.ConnectionError("network down")),
            ({"status_error": requests.exceptions.HTTPError("503 Server Error")}, None),
            ({"json_error": ValueError("Expecting value")}, None),
            ({"payload": {"messages": ["bad request"]}}, None),
        ],
    )
    def test_failures_fall_back(self, response_kwargs, get_error):
        session = MagicMock()
        if get_error is not None:
            session.get.side_effect = get_error
        else:
            session.get.return_value = _response(**response_kwargs)

        result = _client(session).fetch(SF, ["temperature", "precipitation"], WINDOW)

        assert result.is_fallback
        assert result.error
        assert list(result.samples) == [ParameterKey.TEMPERATURE, ParameterKey.PRECIPITATION]
        for sample in result.samples.values():
            assert sample.provenance is Provenance.FALLBACK
            assert len(sample) == 30

    def test_timeout_message(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.Timeout("read timed out")
        result = _client(session).fetch(SF, ["wind"], WINDOW)
        assert "timed out" in result.error

    @pytest.mark.parametrize("parameters", [[], ["snow"], ["temperature", "snow"]])
    def test_invalid_parameters_rejected_before_request(self, parameters):
        session = MagicMock()
        with pytest.raises(ValidationError):
            _client(session).fetch(SF, parameters, WINDOW)
        session.get.assert_not_called()

    def test_invalid_types_rejected(self):
        session = MagicMock()
        client = _client(session)
        with pytest.raises(ValidationError):
            client.fetch((37.7, -122.4), ["wind"], WINDOW)
        with pytest.raises(ValidationError):
            client.fetch(SF, ["wind"], (date(2024, 1, 1), date(2024, 2, 1)))
        session.get.assert_not_called()

    def test_no_retry_adapter_by_default(self):
        client = NasaPowerClient(Settings())
        assert client.session.get_adapter("https://power.larc.nasa.gov").max_retries.total == 0

    def test_retry_adapter_mounted(self):
        client = NasaPowerClient(Settings(max_retries=2))
        retry = client.session.get_adapter("https://power.larc.nasa.gov").max_retries
        assert retry.total == 2
        assert 503 in retry.status_forcelist

    def test_retry_ignores_retry_after_header(self):
        client = NasaPowerClient(Settings(max_retries=2))
        retry = client.session.get_adapter("https://power.larc.nasa.gov").max_retries
        assert retry.respect_retry_after_header is False


class TestCancellation:
    """Tests for abandoning a query through a cancel event."""

    def test_cancel_while_waiting_falls_back(self):
        cancel = threading.Event()
        release = threading.Event()

        def slow_get(url, params, timeout):
            cancel.set()
            release.wait(5)
            return _response(_payload({"T2M": {"a": 290.0}}))

        session = MagicMock()
        session.get.side_effect = slow_get
        client = _client(session, cancel_poll_interval=0.01)

        started = time.monotonic()
        try:
            result = client.fetch(SF, ["temperature"], WINDOW, cancel=cancel)
        finally:
            release.set()

        assert time.monotonic() - started < 2.0
        assert result.is_fallback
        assert "cancelled" in result.error
        assert result.samples[ParameterKey.TEMPERATURE].is_fallback

    def test_cancelled_before_send_skips_request(self):
        cancel = threading.Event()
        cancel.set()
        session = MagicMock()

        result = _client(session).fetch(SF, ["wind"], WINDOW, cancel=cancel)

        session.get.assert_not_called()
        assert result.is_fallback
        assert "cancelled" in result.error

    def test_unset_event_does_not_interfere(self):
        session = MagicMock()
        session.get.return_value = _response(_payload({"WS2M": {"a": 3.0}}))

        result = _client(session).fetch(SF, ["wind"], WINDOW, cancel=threading.Event())

        assert not result.is_fallback
        assert result.samples[ParameterKey.WIND].values == (3.0,)


class TestSplitRequests:
    """Tests for one-request-per-parameter mode."""

    def _session(self, series_by_code: dict, fail_code: str = "") -> MagicMock:
        def fake_get(url, params, timeout):
            code = params["parameters"]
            if code == fail_code:
                raise requests.exceptions.ConnectionError("boom")
            return _response(_payload({code: series_by_code.get(code, {})}))

        session = MagicMock()
        session.get.side_effect = fake_get
        return session

    def test_joined_by_key(self):
        session = self._session({
            "T2M": {"a": 290.0},
            "WS2M": {"a": 4.0, "b": 5.0},
            "RH2M": {"a": 70.0},
        })
        client = _client(session, batch_parameters=False)

        result = client.fetch(SF, ["humidity", "temperature", "wind"], WINDOW)

        assert session.get.call_count == 3
        assert list(result.samples) == [
            ParameterKey.HUMIDITY,
            ParameterKey.TEMPERATURE,
            ParameterKey.WIND,
        ]
        assert result.samples[ParameterKey.WIND].values == (4.0, 5.0)
        assert result.samples[ParameterKey.TEMPERATURE].values == (290.0,)
        assert not result.is_fallback

    def test_completion_order_does_not_matter(self):
        """The first request finishes last and still lands in its own slot."""
        series = {"RH2M": 70.0, "T2M": 290.0, "WS2M": 4.0}
        others_done = {"T2M": threading.Event(), "WS2M": threading.Event()}
        finished = []

        def fake_get(url, params, timeout):
            code = params["parameters"]
            if code == "RH2M":
                for event in others_done.values():
                    event.wait(5)
            finished.append(code)
            if code in others_done:
                others_done[code].set()
            return _response(_payload({code: {"a": series[code]}}))

        session = MagicMock()
        session.get.side_effect = fake_get
        client = _client(session, batch_parameters=False, max_workers=3)

        result = client.fetch(SF, ["humidity", "temperature", "wind"], WINDOW)

        assert finished[-1] == "RH2M"
        assert list(result.samples) == [
            ParameterKey.HUMIDITY,
            ParameterKey.TEMPERATURE,
            ParameterKey.WIND,
        ]
        assert result.samples[ParameterKey.HUMIDITY].values == (70.0,)
        assert result.samples[ParameterKey.TEMPERATURE].values == (290.0,)
        assert result.samples[ParameterKey.WIND].values == (4.0,)

    def test_one_failure_falls_back_entirely(self):
        session = self._session({"T2M": {"a": 290.0}}, fail_code="WS2M")
        client = _client(session, batch_parameters=False)

        result = client.fetch(SF, ["temperature", "wind"], WINDOW)

        assert result.is_fallback
        assert all(s.is_fallback for s in result.samples.values())


class TestFallbackGenerator:
    """Tests for synthetic fallback samples."""

    @pytest.mark.parametrize("key", list(ParameterKey))
    def test_values_within_plausible_range(self, key):
        sample = FallbackGenerator(sample_size=50, seed=1).generate(key, SF, WINDOW)
        low, high = FALLBACK_RANGES[get_info(key).family]
        assert len(sample) == 50
        assert all(low <= v <= high for v in sample.values)
        assert sample.provenance is Provenance.FALLBACK

    def test_seeded_is_reproducible(self):
        a = FallbackGenerator(seed=42).generate(ParameterKey.TEMPERATURE, SF, WINDOW)
        b = FallbackGenerator(seed=42).generate(ParameterKey.TEMPERATURE, SF, WINDOW)
        assert a.values == b.values

    def test_parameters_get_distinct_series(self):
        gen = FallbackGenerator(seed=42)
        hum = gen.generate(ParameterKey.HUMIDITY, SF, WINDOW)
        uncomfortable = gen.generate(ParameterKey.VERY_UNCOMFORTABLE, SF, WINDOW)
        assert hum.values != uncomfortable.values

    def test_unseeded_is_deterministic_per_query(self):
        gen = FallbackGenerator()
        first = gen.generate(ParameterKey.WIND, SF, WINDOW)
        again = gen.generate(ParameterKey.WIND, SF, WINDOW)
        elsewhere = gen.generate(ParameterKey.WIND, Coordinate(51.5, -0.12), WINDOW)
        assert first.values == again.values
        assert first.values != elsewhere.values


class TestMockNasaPowerClient:
    def test_serves_fixtures(self):
        client = MockNasaPowerClient({ParameterKey.TEMPERATURE: [298.15, 300.15]})
        result = client.fetch(SF, ["temperature", "precipitation"], WINDOW)

        assert result.provenance is Provenance.LIVE
        assert result.samples[ParameterKey.TEMPERATURE].values == (298.15, 300.15)
        assert result.samples[ParameterKey.PRECIPITATION].is_empty

    def test_still_validates(self):
        client = MockNasaPowerClient()
        with pytest.raises(ValidationError):
            client.fetch(SF, [], WINDOW)
