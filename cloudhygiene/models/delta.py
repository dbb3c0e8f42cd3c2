"""
Delta Model
===========

Structured difference between two (scan, score) pairs. Computed on
demand by ``cloudhygiene.analysis.comparison`` and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from cloudhygiene.models.score import Issue


@dataclass(frozen=True)
class Delta:
    new_resources: List[str] = field(default_factory=list)
    deleted_resources: List[str] = field(default_factory=list)
    changed_resources: List[str] = field(default_factory=list)
    new_security_issues: List[Issue] = field(default_factory=list)
    resolved_security_issues: List[Issue] = field(default_factory=list)
    resource_count_change: int = 0
    cost_change: float = 0.0
    cost_difference: float = 0.0
    score_change: int = 0
    summary: str = ""
    is_initial_scan: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(
            self.new_resources
            or self.deleted_resources
            or self.changed_resources
            or self.new_security_issues
            or self.resolved_security_issues
            or self.score_change
            or self.cost_change
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_resources": list(self.new_resources),
            "deleted_resources": list(self.deleted_resources),
            "changed_resources": list(self.changed_resources),
            "new_security_issues": [i.to_dict() for i in self.new_security_issues],
            "resolved_security_issues": [
                i.to_dict() for i in self.resolved_security_issues
            ],
            "resource_count_change": self.resource_count_change,
            "cost_change": self.cost_change,
            "cost_difference": self.cost_difference,
            "score_change": self.score_change,
            "summary": self.summary,
            "is_initial_scan": self.is_initial_scan,
        }
