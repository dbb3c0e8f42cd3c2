"""
Reporters
=========

CLIReporter
    Rich terminal tables for scans, scores, comparisons and errors.
JSONReporter
    JSON export for files and API responses.
"""

from cloudhygiene.reporters.cli_reporter import CLIReporter
from cloudhygiene.reporters.json_reporter import JSONReporter

__all__ = ["CLIReporter", "JSONReporter"]
