"""
Score Result Model
==================

Hygiene score records: per-category sub-scores with the itemized issues
that produced each deduction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class FixGuide:
    title: str
    steps: List[str] = field(default_factory=list)
    cli_commands: List[str] = field(default_factory=list)
    documentation_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "steps": list(self.steps),
            "cli_commands": list(self.cli_commands),
            "documentation_url": self.documentation_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FixGuide:
        return cls(
            title=data.get("title", ""),
            steps=list(data.get("steps") or []),
            cli_commands=list(data.get("cli_commands") or []),
            documentation_url=data.get("documentation_url"),
        )


@dataclass(frozen=True)
class Issue:
    """
    One scoring deduction.

    Parameters
    ----------
    type : str
        Rule identifier (e.g. 'open_security_group').
    severity : Severity
        Issue severity.
    resource_id : str
        Offending resource.
    description : str
        Human-readable explanation.
    deduction : int
        Points removed from the category (always > 0).
    fix_guide : FixGuide, optional
        Remediation steps.
    """

    type: str
    severity: Severity
    resource_id: str
    description: str
    deduction: int
    fix_guide: Optional[FixGuide] = None

    def __post_init__(self) -> None:
        if self.deduction <= 0:
            raise ValueError(f"Issue deduction must be positive, got {self.deduction}")

    @property
    def key(self) -> Tuple[str, str]:
        """Identity used when diffing issues between scans."""
        return (self.type, self.resource_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "resource_id": self.resource_id,
            "description": self.description,
            "deduction": self.deduction,
            "fix_guide": self.fix_guide.to_dict() if self.fix_guide else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Issue:
        guide = data.get("fix_guide")
        return cls(
            type=data["type"],
            severity=Severity(data["severity"]),
            resource_id=data["resource_id"],
            description=data.get("description", ""),
            deduction=int(data["deduction"]),
            fix_guide=FixGuide.from_dict(guide) if guide else None,
        )


@dataclass(frozen=True)
class CategoryScore:
    score: int
    max_score: int
    issues: List[Issue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "issues": [i.to_dict() for i in self.issues],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CategoryScore:
        return cls(
            score=int(data["score"]),
            max_score=int(data["max_score"]),
            issues=[Issue.from_dict(i) for i in data.get("issues", [])],
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    security: CategoryScore
    cost_efficiency: CategoryScore
    best_practices: CategoryScore

    def categories(self) -> Dict[str, CategoryScore]:
        return {
            "security": self.security,
            "cost_efficiency": self.cost_efficiency,
            "best_practices": self.best_practices,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {name: cat.to_dict() for name, cat in self.categories().items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScoreBreakdown:
        return cls(
            security=CategoryScore.from_dict(data["security"]),
            cost_efficiency=CategoryScore.from_dict(data["cost_efficiency"]),
            best_practices=CategoryScore.from_dict(data["best_practices"]),
        )


@dataclass(frozen=True)
class ScoreResult:
    """
    Hygiene score for one scan.

    ``overall_score`` is the rounded sum of the three category scores and
    always lies in [0, 100].
    """

    scan_id: str
    user_id: str
    timestamp: str
    overall_score: int
    breakdown: ScoreBreakdown

    def security_issues(self) -> List[Issue]:
        return list(self.breakdown.security.issues)

    def all_issues(self) -> List[Issue]:
        issues: List[Issue] = []
        for category in self.breakdown.categories().values():
            issues.extend(category.issues)
        return issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "overall_score": self.overall_score,
            "breakdown": self.breakdown.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScoreResult:
        return cls(
            scan_id=data["scan_id"],
            user_id=data["user_id"],
            timestamp=data["timestamp"],
            overall_score=int(data["overall_score"]),
            breakdown=ScoreBreakdown.from_dict(data["breakdown"]),
        )

    def __repr__(self) -> str:
        return (
            f"ScoreResult(scan_id='{self.scan_id}', overall={self.overall_score}, "
            f"security={self.breakdown.security.score}, "
            f"cost={self.breakdown.cost_efficiency.score}, "
            f"best_practices={self.breakdown.best_practices.score})"
        )
