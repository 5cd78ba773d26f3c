"""Report export modules."""

from climate_odds.export.report import AnalysisReport

__all__ = ["AnalysisReport"]
