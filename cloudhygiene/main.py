"""
Cloud Hygiene CLI

Main entry point for the command-line interface.
"""

import sys
from typing import List, Optional

import click
from rich.console import Console

from .alerts.engine import AlertEngine
from .alerts.notifier import NotificationService
from .analysis.comparison import compare_scans
from .core.aws_client import AWSClient
from .core.config import get_settings
from .core.exceptions import AWSClientError, CloudHygieneError, SetupError
from .core.logging import new_correlation_id, setup_logging
from .core.orchestrator import ScanOrchestrator
from .core.region_manager import RegionManager, is_valid_region
from .models.alert import ScheduleConfig
from .reporters.cli_reporter import CLIReporter
from .reporters.json_reporter import JSONReporter
from .scheduler import run_scheduled_scan
from .scoring.calculator import calculate_hygiene_score
from .storage.dynamodb_store import create_stores


console = Console()


def validate_regions(ctx, param, value: Optional[str]) -> Optional[List[str]]:
    """Validate and parse comma-separated region list."""
    if value is None:
        return None
    regions = [r.strip() for r in value.split(",") if r.strip()]
    if not regions:
        raise click.BadParameter("No valid regions specified")
    invalid = [r for r in regions if not is_valid_region(r)]
    if invalid:
        raise click.BadParameter(f"Invalid region name(s): {', '.join(invalid)}")
    return regions


def _base_client(region: Optional[str], profile: Optional[str]) -> AWSClient:
    settings = get_settings()
    return AWSClient(
        region=region or settings.aws_region,
        profile=profile or settings.aws_profile,
        max_retries=settings.max_retries,
        timeout=settings.request_timeout,
    )


def _progress_printer():
    completed = set()

    def progress_callback(scope: str, status: str):
        if status == "complete":
            completed.add(scope)
            console.print(f"  [dim]Completed: {scope} ({len(completed)} done)[/dim]")
        elif status == "error":
            console.print(f"  [yellow]Error scanning: {scope}[/yellow]")

    return progress_callback


def _run_scan(
    client: AWSClient,
    user_id: str,
    role_arn: Optional[str],
    regions: Optional[List[str]],
    persist: bool,
    max_workers: Optional[int],
    cli_reporter: CLIReporter,
    quiet: bool = False,
):
    settings = get_settings()
    scan_store = create_stores(client, settings).scans if persist else None
    orchestrator = ScanOrchestrator(
        client,
        scan_store=scan_store,
        settings=settings,
        max_workers=max_workers,
    )
    if not quiet:
        cli_reporter.print_scanning_message(regions)
    return orchestrator.run_scan(
        user_id=user_id,
        role_arn=role_arn,
        regions=regions,
        correlation_id=new_correlation_id(),
        progress_callback=None if quiet else _progress_printer(),
    )


# Options shared by scan and score
def scan_options(func):
    options = [
        click.option("--user-id", "-u", default="local", help="Owner of the scan (default: local)"),
        click.option("--role-arn", default=None, help="Role to assume in the target account"),
        click.option(
            "--regions",
            callback=validate_regions,
            help="Comma-separated list of regions (default: all enabled regions)",
        ),
        click.option("--region", "-r", default=None, help="Base region for STS and discovery"),
        click.option("--profile", "-p", default=None, help="AWS profile name from ~/.aws/credentials"),
        click.option("--persist", is_flag=True, help="Store the scan in DynamoDB"),
        click.option("--max-workers", default=None, type=int, help="Maximum parallel region scans"),
        click.option("--output", "-o", default=None, help="Also write a JSON report to this path"),
        click.option(
            "--format",
            "-f",
            "output_format",
            type=click.Choice(["cli", "json"]),
            default="cli",
            help="Output format (default: cli)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version="0.1.0", prog_name="cloud-hygiene")
@click.option("--log-level", default="WARNING", help="Logging level (default: WARNING)")
@click.option("--log-file", default=None, help="Also write logs to this file")
def cli(log_level: str, log_file: Optional[str]):
    """
    Cloud Hygiene: AWS account hygiene scanner

    Inventories an AWS account across regions, scores its hygiene on a
    0-100 scale, compares scans over time and raises alerts on regressions.
    """
    setup_logging(level=log_level, log_file=log_file)


@cli.command("scan")
@scan_options
def scan(
    user_id: str,
    role_arn: Optional[str],
    regions: Optional[List[str]],
    region: Optional[str],
    profile: Optional[str],
    persist: bool,
    max_workers: Optional[int],
    output: Optional[str],
    output_format: str,
):
    """
    Inventory resources across regions.

    Examples:

        # Scan all enabled regions with the current credentials
        cloud-hygiene scan

        # Scan two regions of another account
        cloud-hygiene scan --role-arn arn:aws:iam::123456789012:role/Scanner \\
            --regions us-east-1,eu-west-1

        # Export to JSON
        cloud-hygiene scan --format json -o scan.json
    """
    cli_reporter = CLIReporter(console)

    try:
        client = _base_client(region, profile)
        result = _run_scan(
            client,
            user_id,
            role_arn,
            regions,
            persist,
            max_workers,
            cli_reporter,
            quiet=output_format == "json" and not output,
        )

        output_file = None
        if output_format == "json" and not output:
            click.echo(JSONReporter().to_string(result))
            return
        cli_reporter.report_scan(result)
        if output:
            output_file = JSONReporter(output_path=output).report(result)
        cli_reporter.print_completion_message(output_file)

    except SetupError as e:
        console.print(f"\n[red bold]Setup Error:[/red bold] {str(e)}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scan cancelled by user.[/yellow]")
        sys.exit(130)
    except CloudHygieneError as e:
        console.print(f"\n[red bold]Error:[/red bold] {str(e)}")
        sys.exit(1)


@cli.command("score")
@scan_options
@click.option("--compare", is_flag=True, help="Compare with the latest stored scan")
@click.option("--show-fixes", is_flag=True, help="Show a fix command for each issue")
def score(
    user_id: str,
    role_arn: Optional[str],
    regions: Optional[List[str]],
    region: Optional[str],
    profile: Optional[str],
    persist: bool,
    max_workers: Optional[int],
    output: Optional[str],
    output_format: str,
    compare: bool,
    show_fixes: bool,
):
    """
    Scan, then compute the hygiene score.

    Examples:

        # Score the current account
        cloud-hygiene score

        # Score, store, and compare with the previous stored scan
        cloud-hygiene score --persist --compare --user-id team-a
    """
    cli_reporter = CLIReporter(console)

    try:
        client = _base_client(region, profile)
        settings = get_settings()

        previous = previous_score = None
        if compare:
            stores = create_stores(client, settings)
            previous = stores.scans.get_latest_scan(user_id)
            if previous is not None:
                previous_score = stores.scores.get_score(previous.scan_id) or calculate_hygiene_score(
                    previous
                )

        result = _run_scan(
            client,
            user_id,
            role_arn,
            regions,
            persist,
            max_workers,
            cli_reporter,
            quiet=output_format == "json" and not output,
        )
        hygiene = calculate_hygiene_score(result)
        if persist:
            create_stores(client, settings).scores.put_score(hygiene)

        delta = compare_scans(result, previous, hygiene, previous_score) if compare else None

        if output_format == "json" and not output:
            click.echo(JSONReporter().to_string(result, hygiene, delta))
            return

        cli_reporter.report_score(hygiene, show_fixes=show_fixes)
        if delta is not None:
            cli_reporter.report_delta(delta)
        if result.errors:
            cli_reporter.print_errors(result.errors)

        output_file = None
        if output:
            output_file = JSONReporter(output_path=output).report(result, hygiene, delta)
        cli_reporter.print_completion_message(output_file)

    except SetupError as e:
        console.print(f"\n[red bold]Setup Error:[/red bold] {str(e)}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scan cancelled by user.[/yellow]")
        sys.exit(130)
    except CloudHygieneError as e:
        console.print(f"\n[red bold]Error:[/red bold] {str(e)}")
        sys.exit(1)


@cli.group()
def schedule():
    """Scheduled scan pipeline."""
    pass


@schedule.command("run")
@click.option("--user-id", "-u", required=True, help="User whose stored configuration to use")
@click.option("--region", "-r", default=None, help="Base region for STS and DynamoDB")
@click.option("--profile", "-p", default=None, help="AWS profile name from ~/.aws/credentials")
def schedule_run(user_id: str, region: Optional[str], profile: Optional[str]):
    """
    Run one scheduled pipeline pass: scan, score, compare, alert.

    Uses the role, regions and alert settings stored for the user.
    """
    cli_reporter = CLIReporter(console)

    try:
        client = _base_client(region, profile)
        settings = get_settings()
        stores = create_stores(client, settings)
        orchestrator = ScanOrchestrator(client, scan_store=stores.scans, settings=settings)
        engine = AlertEngine(stores.alerts, NotificationService.from_settings(client, settings))

        report = run_scheduled_scan(
            user_id,
            ScheduleConfig(enabled=True),
            stores,
            orchestrator,
            engine,
            correlation_id=new_correlation_id(),
        )
        if report is None:
            cli_reporter.print_warning(f"No configuration stored for user {user_id}")
            return

        cli_reporter.report_score(report.score)
        cli_reporter.report_delta(report.delta)
        for outcome in report.outcomes:
            line = f"  {outcome.alert.alert_type.value}: {outcome.status}"
            if outcome.failed_channels:
                line += f" (failed: {', '.join(outcome.failed_channels)})"
            console.print(line)

    except SetupError as e:
        console.print(f"\n[red bold]Setup Error:[/red bold] {str(e)}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Run cancelled by user.[/yellow]")
        sys.exit(130)
    except CloudHygieneError as e:
        console.print(f"\n[red bold]Error:[/red bold] {str(e)}")
        sys.exit(1)


@cli.command("regions")
@click.option("--profile", "-p", default=None, help="AWS profile name from ~/.aws/credentials")
def list_regions(profile: Optional[str]):
    """List the regions enabled for the account."""
    try:
        region_manager = RegionManager(_base_client(None, profile))
        regions = region_manager.discover_regions()

        console.print(f"\n[bold]Enabled AWS Regions ({len(regions)} total):[/bold]\n")
        for region in regions:
            console.print(f"  • {region}")
        console.print()

    except AWSClientError as e:
        console.print(f"\n[red bold]Error:[/red bold] {str(e)}")
        sys.exit(1)


@cli.command("validate")
@click.option("--profile", "-p", default=None, help="AWS profile name from ~/.aws/credentials")
@click.option("--region", "-r", default=None, help="AWS region to use for validation")
def validate_credentials(profile: Optional[str], region: Optional[str]):
    """Validate AWS credentials and show account info."""
    try:
        client = _base_client(region, profile)
        client.validate_credentials()
        account_id = client.get_account_id()

        console.print("\n[green bold]AWS credentials are valid![/green bold]")
        console.print(f"\n  Account ID: {account_id}")
        console.print(f"  Region: {client.region}")
        if profile:
            console.print(f"  Profile: {profile}")
        console.print()

    except AWSClientError as e:
        console.print(f"\n[red bold]Validation Failed:[/red bold] {str(e)}")
        sys.exit(1)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
