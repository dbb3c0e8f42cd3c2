"""
Cloud Hygiene: AWS Account Hygiene Scanner
==========================================

Inventories an AWS account across regions, scores its hygiene, compares
consecutive scans and raises deduplicated alerts when things get worse.

Modules
-------
core
    AWS client, collector base, region fan-out, scan orchestrator
collectors
    Per-service resource collectors
scoring
    Hygiene score calculator and fix guides
analysis
    Scan-to-scan comparison
alerts
    Alert rules, deduplicating engine, email and Slack channels
storage
    DynamoDB persistence
reporters
    Output formatters (CLI, JSON)

Example
-------
>>> from cloudhygiene import AWSClient, ScanOrchestrator, calculate_hygiene_score
>>>
>>> scan = ScanOrchestrator(AWSClient(region="us-east-1")).run_scan(user_id="me")
>>> score = calculate_hygiene_score(scan)
>>> print(f"Hygiene score: {score.overall_score}/100")

Notes
-----
Requires AWS credentials configured via:
- Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
- AWS credentials file (~/.aws/credentials)
- IAM role (when running on AWS infrastructure)
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Public API
from cloudhygiene.analysis.comparison import compare_scans
from cloudhygiene.core.aws_client import AWSClient
from cloudhygiene.core.exceptions import CloudHygieneError, SetupError
from cloudhygiene.core.orchestrator import ScanOrchestrator
from cloudhygiene.scoring.calculator import calculate_hygiene_score

__all__ = [
    "__version__",
    "__license__",
    "AWSClient",
    "CloudHygieneError",
    "SetupError",
    "ScanOrchestrator",
    "calculate_hygiene_score",
    "compare_scans",
]
