"""Scan report storage and per-contact aggregation."""

from framescan.reports.models import (
    CumulativeProfile,
    ScanReport,
    ScanReportDraft,
    Trend,
    TrendDirection,
)
from framescan.reports.profile import compute_cumulative_profile, compute_trend
from framescan.reports.store import ReportNotFoundError, ReportStore

__all__ = [
    "CumulativeProfile",
    "ReportNotFoundError",
    "ReportStore",
    "ScanReport",
    "ScanReportDraft",
    "Trend",
    "TrendDirection",
    "compute_cumulative_profile",
    "compute_trend",
]
