"""Report generation from analysis results: CSV, share text and JSON."""

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path

from climate_odds.analysis import AnalysisResult, ParameterAnalysis

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Parameter",
    "Probability",
    "Level",
    "Description",
    "Average",
    "Min",
    "Max",
    "Unit",
    "Samples",
    "Recommendation",
]

NO_DATA = "No data"


def _format_number(value: float) -> str:
    """Two decimals at most, without trailing zeros."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


class AnalysisReport:
    """Generates exportable reports from an analysis result."""

    def __init__(self, result: AnalysisResult):
        """Initialize report generator.

        Args:
            result: Analysis result to report on.
        """
        self.result = result

    @property
    def location(self) -> str:
        c = self.result.coordinate
        coords = f"{c.latitude:.4f}, {c.longitude:.4f}"
        return f"{self.result.label} ({coords})" if self.result.label else coords

    @property
    def source_note(self) -> str:
        if self.result.is_fallback:
            return "Source: synthetic fallback data (NASA POWER unavailable)"
        return "Source: NASA POWER historical data"

    def _row(self, analysis: ParameterAnalysis) -> list[str]:
        info = analysis.info
        if not analysis.has_data:
            return [info.title, NO_DATA, NO_DATA, info.description, "", "", "", analysis.unit, "0", ""]

        stat = analysis.statistic
        est = analysis.estimate
        return [
            info.title,
            f"{est.probability_percent}%",
            est.level_label,
            info.description,
            _format_number(stat.average),
            _format_number(stat.min),
            _format_number(stat.max),
            analysis.unit,
            str(stat.sample_count),
            est.recommendation,
        ]

    def to_csv(self) -> str:
        """Render the result as CSV text.

        Returns:
            CSV with a short preamble, one row per parameter and a closing note.
        """
        r = self.result
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        writer.writerow(["Weather Probability Analysis Report"])
        writer.writerow([f"Location: {self.location}"])
        writer.writerow([f"Date: {r.reference_date.isoformat()}"])
        writer.writerow([f"Window: {r.date_range.start.isoformat()} to {r.date_range.end.isoformat()}"])
        writer.writerow([self.source_note])
        writer.writerow([])
        writer.writerow(CSV_HEADER)
        for analysis in r:
            writer.writerow(self._row(analysis))
        writer.writerow([])
        writer.writerow(["Note: Probabilities are consistency scores from historical variance, not forecasts"])

        return buffer.getvalue()

    def write_csv(self, path: Path) -> Path:
        """Write the CSV report to a file.

        Args:
            path: Output file path.

        Returns:
            Path written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            f.write(self.to_csv())

        logger.info(f"Saved CSV report to {path}")
        return path

    def share_text(self) -> str:
        """Short plain-text message suitable for a share sheet."""
        r = self.result
        lines = [
            "Weather Probability Analysis",
            "",
            f"Location: {self.location}",
            f"Date: {r.reference_date.strftime('%B %d, %Y')}",
            "",
            "Results:",
        ]
        for analysis in r:
            if analysis.has_data:
                est = analysis.estimate
                lines.append(
                    f"- {analysis.info.title}: {est.probability_percent}% probability - {est.level_label}"
                )
            else:
                lines.append(f"- {analysis.info.title}: {NO_DATA}")

        if r.is_fallback:
            lines.extend(["", "Note: provider unavailable, results use synthetic data"])

        return "\n".join(lines)

    def summary(self) -> str:
        """Generate text summary for the console.

        Returns:
            Formatted text summary.
        """
        r = self.result
        lines = [
            "=" * 70,
            "WEATHER PROBABILITY ANALYSIS",
            "=" * 70,
            "",
            f"Location:  {self.location}",
            f"Date:      {r.reference_date}",
            f"Window:    {r.date_range.start} to {r.date_range.end}",
            f"Source:    {r.provenance.value}",
            "",
            "-" * 70,
            f"{'Parameter':<20} {'Prob':>6} {'Level':<10} {'Avg':>8} {'Min':>8} {'Max':>8} {'Unit':<5}",
            "-" * 70,
        ]

        for analysis in r:
            title = analysis.info.title
            if not analysis.has_data:
                lines.append(f"{title:<20} {NO_DATA:>6}")
                continue

            stat = analysis.statistic
            est = analysis.estimate
            lines.append(
                f"{title:<20} "
                f"{est.probability_percent:>5}% "
                f"{est.level_label:<10} "
                f"{stat.average:>8.2f} "
                f"{stat.min:>8.2f} "
                f"{stat.max:>8.2f} "
                f"{analysis.unit:<5}"
            )
            lines.append(f"  {est.recommendation}")
            if stat.exceedance_percent is not None:
                lines.append(f"  Past threshold on {stat.exceedance_percent:.1f}% of days")

        lines.extend(["", "=" * 70])
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Result as JSON-serialisable data."""
        r = self.result
        parameters = {}
        for analysis in r:
            stat = analysis.statistic
            est = analysis.estimate
            parameters[analysis.parameter.value] = {
                "unit": analysis.unit,
                "provenance": analysis.provenance.value,
                "statistic": None if stat is None else {
                    "average": stat.average,
                    "min": stat.min,
                    "max": stat.max,
                    "sample_count": stat.sample_count,
                    "exceedance_percent": stat.exceedance_percent,
                },
                "estimate": None if est is None else {
                    "probability_percent": est.probability_percent,
                    "level": est.level_label,
                    "recommendation": est.recommendation,
                },
            }

        return {
            "generated_at": datetime.now().isoformat(),
            "location": {
                "label": r.label,
                "latitude": r.coordinate.latitude,
                "longitude": r.coordinate.longitude,
            },
            "reference_date": r.reference_date.isoformat(),
            "start_date": r.date_range.start.isoformat(),
            "end_date": r.date_range.end.isoformat(),
            "provenance": r.provenance.value,
            "parameters": parameters,
        }

    def save_json(self, path: Path) -> None:
        """Save results as JSON.

        Args:
            path: Output file path.
        """
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Saved JSON data to {path}")
