#!/usr/bin/env python3
"""Demo script showing a full analysis with mock data.

Runs the pipeline twice for the same place and date: once with fixture
observations, once with the provider unreachable so fallback data is used.
"""

import logging
import sys
from datetime import date
from pathlib import Path

import requests

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from climate_odds.analysis import AnalysisRequest, WeatherAnalysisService
from climate_odds.config import settings
from climate_odds.export.report import AnalysisReport
from climate_odds.weather.nasa_power import MockNasaPowerClient, NasaPowerClient
from climate_odds.weather.parameters import ParameterKey

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(message)s",
)
logger = logging.getLogger(__name__)


class UnreachableSession(requests.Session):
    """Session whose every request fails, to exercise the fallback path."""

    def request(self, *args, **kwargs):
        raise requests.exceptions.ConnectionError("demo: provider unreachable")


def create_demo_client() -> MockNasaPowerClient:
    """Mock client with a few days of provider-unit observations."""
    return MockNasaPowerClient(
        {
            ParameterKey.TEMPERATURE: [298.15, 300.15, 305.15, 299.65, 301.35],
            ParameterKey.WIND: [3.2, 4.1, 5.6, 3.9, 4.4],
            ParameterKey.HUMIDITY: [71.0, 68.5, 74.2, 80.1, 66.0],
            ParameterKey.VERY_HOT: [303.15, 309.15, 310.65, 306.15, 307.15],
        },
        settings=settings,
    )


def main() -> int:
    request = AnalysisRequest.create(
        latitude=37.7749,
        longitude=-122.4194,
        parameters=["temperature", "precipitation", "wind", "humidity", "veryHot"],
        reference_date=date(2024, 7, 4),
        label="San Francisco",
    )

    logger.info("Analysis with fixture data")
    service = WeatherAnalysisService(settings, client=create_demo_client())
    report = AnalysisReport(service.analyze(request))
    print(report.summary())
    print(report.to_csv())

    logger.info("Analysis with the provider unreachable")
    offline = NasaPowerClient(settings, session=UnreachableSession())
    service = WeatherAnalysisService(settings, client=offline)
    report = AnalysisReport(service.analyze(request))
    print(report.share_text())

    return 0


if __name__ == "__main__":
    sys.exit(main())
