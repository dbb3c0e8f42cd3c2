"""
Configuration Module
====================

Runtime settings loaded from the environment (prefix ``CLOUDHYGIENE_``)
or a local ``.env`` file, plus the fixed constants used by the scoring
and region logic.

Example
-------
>>> from cloudhygiene.core.config import get_settings
>>>
>>> settings = get_settings()
>>> settings.scans_table
'cloudhygiene-scans'
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict

# Fallback when region discovery fails or returns nothing
DEFAULT_REGIONS: Tuple[str, ...] = (
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "eu-west-1",
    "eu-central-1",
    "ap-southeast-1",
    "ap-northeast-1",
)

# SSH, RDP, MySQL, PostgreSQL
SENSITIVE_PORTS: Tuple[int, ...] = (22, 3389, 3306, 5432)

REQUIRED_TAGS: Tuple[str, ...] = ("Environment", "Owner", "Project")

SECURITY_WEIGHT = 40
COST_EFFICIENCY_WEIGHT = 30
BEST_PRACTICES_WEIGHT = 30

GLOBAL_REGION = "global"


class Settings(BaseSettings):
    # AWS
    aws_region: str = "us-east-1"
    aws_profile: Optional[str] = None
    max_workers: int = 10
    max_retries: int = 3
    request_timeout: int = 30
    role_session_prefix: str = "cloudhygiene-scan"
    role_session_duration: int = 3600
    collect_utilization: bool = True

    # Storage
    scans_table: str = "cloudhygiene-scans"
    scores_table: str = "cloudhygiene-scores"
    alerts_table: str = "cloudhygiene-alerts"
    users_table: str = "cloudhygiene-users"
    scan_retention_days: int = 90
    alert_retention_days: int = 30

    # Notifications
    from_email: str = "alerts@cloudhygiene.local"
    webhook_timeout: int = 10

    model_config = SettingsConfigDict(
        env_prefix="CLOUDHYGIENE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
