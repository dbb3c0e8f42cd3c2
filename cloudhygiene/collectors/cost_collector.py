"""
Cost Collector Module
=====================

Queries Cost Explorer for the unblended cost of the last 30 days: the
total, and breakdowns by service, by region and by ``Environment`` tag.

The collector produces ``CostData`` instead of resources. The total query
decides whether there is any cost data at all; a failed breakdown query
only leaves that breakdown empty. Every failure is recorded as an error.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from cloudhygiene.core.base_collector import BaseCollector, CollectorResult
from cloudhygiene.models.base import utc_now
from cloudhygiene.models.resource import Resource
from cloudhygiene.models.scan import CostData

# Module logger
logger = logging.getLogger(__name__)

COST_METRIC = "UnblendedCost"
LOOKBACK_DAYS = 30
COST_TAG_KEY = "Environment"


class CostCollector(BaseCollector):
    """
    Global collector for Cost Explorer totals.

    Parameters
    ----------
    aws_client : AWSClient
        Client for the scanned account (Cost Explorer is always queried in
        us-east-1).
    today : date, optional
        End of the query window; defaults to the current UTC date.
    """

    service = "cost"
    is_global = True

    def __init__(self, aws_client, today: Optional[date] = None) -> None:
        super().__init__(aws_client)
        self.today = today
        self._ce_client = None

    @property
    def ce_client(self):
        if self._ce_client is None:
            self._ce_client = self.aws_client.get_ce_client()
        return self._ce_client

    def get_operations(self) -> List[Tuple[str, Callable[[], List[Resource]]]]:
        # Cost collection produces no resources
        return []

    def _time_period(self) -> Dict[str, str]:
        end = self.today or utc_now().date()
        start = end - timedelta(days=LOOKBACK_DAYS)
        return {"Start": start.isoformat(), "End": end.isoformat()}

    def _query(self, group_by: Optional[List[Dict[str, str]]] = None) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {
            "TimePeriod": self._time_period(),
            "Granularity": "MONTHLY",
            "Metrics": [COST_METRIC],
        }
        if group_by:
            kwargs["GroupBy"] = group_by
        return self.ce_client.get_cost_and_usage(**kwargs).get("ResultsByTime", [])

    def _total(self) -> Tuple[float, str]:
        total = 0.0
        unit = "USD"
        for period in self._query():
            metric = period.get("Total", {}).get(COST_METRIC, {})
            total += float(metric.get("Amount", 0))
            unit = metric.get("Unit", unit)
        return round(total, 2), unit

    def _grouped(self, group_type: str, key: str) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for period in self._query([{"Type": group_type, "Key": key}]):
            for group in period.get("Groups", []):
                name = group["Keys"][0]
                if group_type == "TAG":
                    # Tag group keys look like "Environment$prod"
                    name = name.split("$", 1)[-1] or "untagged"
                amount = float(group["Metrics"][COST_METRIC]["Amount"])
                totals[name] = round(totals.get(name, 0.0) + amount, 2)
        return totals

    def collect(self) -> CollectorResult:
        """
        Run the four Cost Explorer queries.

        Returns
        -------
        CollectorResult
            No resources; ``cost_data`` set unless the total query failed.
        """
        self.errors = []

        total = self.attempt("get_cost_and_usage", self._total, default=None)
        if total is None:
            return CollectorResult(errors=list(self.errors))

        estimated, currency = total
        by_service = self.attempt(
            "get_cost_and_usage:service",
            lambda: self._grouped("DIMENSION", "SERVICE"),
            default={},
        )
        by_region = self.attempt(
            "get_cost_and_usage:region",
            lambda: self._grouped("DIMENSION", "REGION"),
            default={},
        )
        by_tag = self.attempt(
            "get_cost_and_usage:tag",
            lambda: self._grouped("TAG", COST_TAG_KEY),
            default={},
        )

        cost_data = CostData(
            estimated_monthly=estimated,
            by_service=by_service,
            by_region=by_region,
            by_tag=by_tag,
            currency=currency,
        )
        logger.info(f"Estimated monthly cost: {estimated:.2f} {currency}")
        return CollectorResult(errors=list(self.errors), cost_data=cost_data)
