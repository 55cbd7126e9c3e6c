"""CLI commands for Legacy Keeper."""

import asyncio
import json
import logging
import re
import sys

import click

from legacy_keeper.config import settings


class SecretRedactingFilter(logging.Filter):
    """Filter to redact sensitive information from logs."""

    # Patterns for common secrets
    SECRET_PATTERNS = [
        (re.compile(r"(api[_-]?token[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(app[_-]?password[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(password[\s:=]+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(token[\s:=]+)[\w-]{20,}", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(basic\s+)[A-Za-z0-9+/=]+", re.IGNORECASE), r"\1[REDACTED]"),
        (re.compile(r"(bearer\s+)[\w-]+", re.IGNORECASE), r"\1[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact secrets from log messages."""
        if isinstance(record.msg, str):
            for pattern, replacement in self.SECRET_PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True


# Configure logging with secret redaction
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger().addFilter(SecretRedactingFilter())
logger = logging.getLogger(__name__)


def _load_json(path: str | None) -> list:
    """Read a JSON list from a file, or an empty list when no file is given."""
    if not path:
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} must contain a JSON list")
    return data


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """Legacy Keeper CLI."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.option("--user", "-u", help="Scan only this author (defaults to everyone)")
@click.option(
    "--records",
    "-r",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file of raw activity records (defaults to configured Jira/Bitbucket)",
)
def scan(user: str | None, records: str | None) -> None:
    """Score undocumented intensity over the last six months."""
    asyncio.run(_scan(user, records))


async def _scan(user: str | None, records: str | None) -> None:
    """Async implementation of scan command."""
    from legacy_keeper.activity import (
        ActivityScanner,
        ScanQuery,
        ScanThresholds,
        StaticActivitySource,
        scan_last_six_months,
    )
    from legacy_keeper.activity.sources import create_activity_source

    source = StaticActivitySource(_load_json(records)) if records else create_activity_source()
    scanner = ActivityScanner(ScanThresholds.from_settings(settings))
    response = await scan_last_six_months(source, scanner, ScanQuery(user_id=user))

    if response.source_error:
        click.echo(f"Warning: {response.source_error}", err=True)

    click.echo("\nScan complete!")
    click.echo(f"  Users scanned: {response.summary.total_users_scanned}")
    click.echo(f"  Users with gaps: {response.summary.users_with_gaps}")
    click.echo(f"  High risk users: {response.summary.high_risk_users}")

    for report in response.reports:
        click.echo(f"\n{report.user_id}")
        click.echo(f"  Risk: {report.risk_level.value}")
        click.echo(f"  Intensity score: {report.undocumented_intensity_score:.2f}")
        click.echo(f"  Critical tickets: {len(report.critical_tickets)}")
        click.echo(f"  Complex changes: {len(report.high_complexity_changes)}")
        click.echo(f"  Documentation links: {report.documentation_link_count}")
        if report.specific_artifacts:
            click.echo(f"  Artifacts: {', '.join(report.specific_artifacts)}")
        for action in report.recommended_actions:
            click.echo(f"    - {action}")


@cli.command()
@click.option("--employee", "-e", required=True, help="Account id of the departing employee")
@click.option("--triggered-by", "-t", required=True, help="Who requested the offboarding")
@click.option("--department", "-d", help="Employee's department")
@click.option("--role", help="Employee's role")
@click.option(
    "--records",
    "-r",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file of raw activity records (defaults to configured Jira/Bitbucket)",
)
@click.option(
    "--answers",
    "-a",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file of interview answers ({question, answer, artifact_id})",
)
def offboard(
    employee: str,
    triggered_by: str,
    department: str | None,
    role: str | None,
    records: str | None,
    answers: str | None,
) -> None:
    """Run the full cognitive offboarding workflow for an employee."""
    asyncio.run(_offboard(employee, triggered_by, department, role, records, answers))


async def _offboard(
    employee: str,
    triggered_by: str,
    department: str | None,
    role: str | None,
    records: str | None,
    answers: str | None,
) -> None:
    """Async implementation of offboard command."""
    from legacy_keeper.activity import StaticActivitySource
    from legacy_keeper.exceptions import LegacyKeeperError, user_message
    from legacy_keeper.workflow import WorkflowParams, create_orchestrator

    orchestrator = create_orchestrator(settings)
    if records:
        orchestrator.source = StaticActivitySource(_load_json(records))
        # Replayed activity is not commented on upstream
        orchestrator.linker = None

    params = WorkflowParams(
        employee_id=employee,
        triggered_by=triggered_by,
        department=department,
        role=role,
    )
    try:
        session = await orchestrator.execute_complete_workflow(params, _load_json(answers))
    except LegacyKeeperError as e:
        logger.error(f"Offboarding failed for {employee}: {e}")
        click.echo(f"Error: {user_message(e)}", err=True)
        sys.exit(1)

    report = orchestrator.validate_completion(session.session_id)
    archive = session.archive_results

    click.echo("\nOffboarding complete!")
    click.echo(f"  Session: {session.session_id}")
    click.echo(f"  State: {session.state.value} ({session.progress_percentage}%)")
    click.echo(f"  Risk: {session.scan_results.risk_level.value}")
    click.echo(f"  Questions generated: {len(session.interview_results.questions)}")
    click.echo(f"  Knowledge confidence: {archive.knowledge_artifact.confidence:.2f}")
    click.echo(f"  Archived at: {archive.archive_location.url}")
    click.echo(f"  Artifacts linked: {len(archive.archive_location.linked_artifacts)}")
    click.echo(f"  Valid: {report.is_valid}")
    for error in report.errors:
        click.echo(f"    - {error}")
    for entry in session.errors:
        click.echo(f"  Warning: {entry.message}", err=True)


@cli.command()
def check_connection() -> None:
    """Check connectivity to Jira, Bitbucket and Confluence."""
    asyncio.run(_check_connection())


async def _check_connection() -> None:
    """Async implementation of check-connection command."""
    from legacy_keeper.activity import BitbucketActivitySource, JiraActivitySource
    from legacy_keeper.archive import ConfluenceArchiveSink
    from legacy_keeper.exceptions import LegacyKeeperError, user_message

    checks = [
        ("Jira", settings.jira_configured, JiraActivitySource),
        ("Bitbucket", settings.bitbucket_configured, BitbucketActivitySource),
        ("Confluence", settings.confluence_configured, ConfluenceArchiveSink),
    ]

    failed = False
    for name, configured, client_class in checks:
        if not configured:
            click.echo(f"  {name}: not configured")
            continue
        try:
            await client_class().check_connection()
            click.echo(f"  {name}: ok")
        except LegacyKeeperError as e:
            click.echo(f"  {name}: {user_message(e)}")
            failed = True

    if failed:
        sys.exit(1)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", "-p", type=int, default=8000, help="Port to run on")
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    click.echo(f"Starting {settings.APP_NAME} API on {host}:{port}")
    uvicorn.run("legacy_keeper.main:app", host=host, port=port)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
