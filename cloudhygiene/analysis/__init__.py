"""Scan-to-scan comparison."""

from cloudhygiene.analysis.comparison import build_summary, compare_scans

__all__ = ["build_summary", "compare_scans"]
