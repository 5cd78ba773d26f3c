"""Command-line runner for a single weather probability analysis."""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from climate_odds.analysis import AnalysisRequest, WeatherAnalysisService
from climate_odds.config import Settings
from climate_odds.errors import ValidationError
from climate_odds.export.report import AnalysisReport
from climate_odds.weather.parameters import ParameterKey

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="climate-odds",
        description="Historical weather probability for a location and date (NASA POWER)",
    )
    parser.add_argument("--lat", type=float, required=True, help="Latitude (-90 to 90)")
    parser.add_argument("--lon", type=float, required=True, help="Longitude (-180 to 180)")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=date.today(),
        help="Reference date YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "-p",
        "--parameter",
        dest="parameters",
        action="append",
        choices=[k.value for k in ParameterKey],
        help="Parameter to analyse (repeatable, default: temperature)",
    )
    parser.add_argument("--label", default="", help="Location name shown in reports")
    parser.add_argument("--csv", type=Path, help="Write CSV report to this path")
    parser.add_argument("--json", type=Path, help="Write JSON report to this path")
    parser.add_argument("--share", action="store_true", help="Print share text")
    return parser


def main(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        request = AnalysisRequest.create(
            latitude=args.lat,
            longitude=args.lon,
            parameters=args.parameters or [ParameterKey.TEMPERATURE.value],
            reference_date=args.date,
            label=args.label,
        )
        service = WeatherAnalysisService(settings)
        result = service.analyze(request)
    except ValidationError as e:
        logger.error(f"Invalid query: {e}")
        return EXIT_INVALID

    report = AnalysisReport(result)
    print(report.summary())

    try:
        if args.csv:
            report.write_csv(args.csv)
        if args.json:
            report.save_json(args.json)
    except OSError as e:
        logger.error(f"Could not write report: {e}")
        return EXIT_FAILED

    if args.share:
        print()
        print(report.share_text())

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
