"""Hygiene scoring."""

from cloudhygiene.scoring.calculator import calculate_hygiene_score
from cloudhygiene.scoring.fix_guides import fix_guide_for

__all__ = ["calculate_hygiene_score", "fix_guide_for"]
