"""
JSON Reporter Module
====================

Exports scans, scores and comparisons as JSON for programmatic access.

Output Structure
----------------
::

    {
      "metadata": {
        "scan_id": "scan_20240115_abc123",
        "user_id": "user-1",
        "timestamp": "2024-01-15T10:30:00.000Z",
        "regions": [...],
        "total_resources": 50,
        "errors": 1
      },
      "scan": {...},
      "score": {...},
      "delta": {...}
    }

``score`` and ``delta`` are present only when given.

Example
-------
>>> reporter = JSONReporter(output_path="scan.json")
>>> reporter.report(scan, score=score)
'scan.json'
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from cloudhygiene.models.delta import Delta
from cloudhygiene.models.scan import ScanResult
from cloudhygiene.models.score import ScoreResult

# Module logger
logger = logging.getLogger(__name__)


class JSONReporter:
    """
    Reporter for exporting results to JSON.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, a timestamped filename
        in the current directory is used.
    indent : int, default=2
        JSON indentation level; None for compact output.
    """

    def __init__(self, output_path: Optional[str] = None, indent: Optional[int] = 2) -> None:
        self.output_path = output_path
        self.indent = indent
        logger.debug(f"Initialized JSONReporter (output_path={output_path})")

    def _get_output_path(self, scan_id: str) -> Path:
        if self.output_path:
            return Path(self.output_path)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"hygiene_{scan_id}_{timestamp}.json")

    def to_dict(
        self,
        scan: ScanResult,
        score: Optional[ScoreResult] = None,
        delta: Optional[Delta] = None,
    ) -> Dict[str, Any]:
        """
        Build the report dictionary.

        Example
        -------
        >>> data = JSONReporter().to_dict(scan)
        >>> data["metadata"]["total_resources"]
        12
        """
        data: Dict[str, Any] = {
            "metadata": {
                "scan_id": scan.scan_id,
                "user_id": scan.user_id,
                "timestamp": scan.timestamp,
                "regions": list(scan.regions),
                "total_resources": scan.summary.total_resources,
                "errors": len(scan.errors),
            },
            "scan": scan.to_dict(),
        }
        if score is not None:
            data["metadata"]["overall_score"] = score.overall_score
            data["score"] = score.to_dict()
        if delta is not None:
            data["delta"] = delta.to_dict()
        return data

    def to_string(
        self,
        scan: ScanResult,
        score: Optional[ScoreResult] = None,
        delta: Optional[Delta] = None,
    ) -> str:
        return json.dumps(self.to_dict(scan, score, delta), indent=self.indent, default=str)

    def report(
        self,
        scan: ScanResult,
        score: Optional[ScoreResult] = None,
        delta: Optional[Delta] = None,
    ) -> str:
        """
        Write the report to a file.

        Returns
        -------
        str
            Path to the created JSON file.
        """
        output_path = self._get_output_path(scan.scan_id)
        logger.info(f"Exporting scan {scan.scan_id} to {output_path}")

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(scan, score, delta), f, indent=self.indent, default=str)

        logger.info(f"JSON export complete: {output_path}")
        return str(output_path)

    def __repr__(self) -> str:
        return f"JSONReporter(output_path={self.output_path!r}, indent={self.indent})"
