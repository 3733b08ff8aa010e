"""
Purpose: CLI for the Braintrust CSV exporter.
Description: Provides `projects`, `verify` and `export` commands. Credentials come from
--api-key or BRAINTRUST_API_KEY (a `.env` file is honoured).
Key Functions/Classes: Click entrypoints `exporter`, `projects`, `verify`, `export`.
"""

from __future__ import annotations

import sys
from typing import Optional

import click

from .client import BraintrustClient
from .config import ExportSession, load_session
from .errors import ExporterError, ProjectNotFoundError
from .orchestrator import export_project
from .rate_limiter import DEFAULT_RETRY, with_retry


def _require_session(ctx: click.Context) -> ExportSession:
    session: ExportSession = ctx.obj
    if not session.has_credentials:
        click.echo("❌ Error: Braintrust API key not found!")
        click.echo("   Set BRAINTRUST_API_KEY or pass --api-key")
        sys.exit(1)
    return session


@click.group()
@click.option("--api-key", default=None, help="Braintrust API key (default: $BRAINTRUST_API_KEY)")
@click.option("--api-url", default=None, help="API base URL (default: $BRAINTRUST_API_URL)")
@click.pass_context
def exporter(ctx: click.Context, api_key: Optional[str], api_url: Optional[str]) -> None:
    """Export Braintrust experiments and datasets to CSV."""
    ctx.obj = load_session(api_key=api_key, api_base=api_url.rstrip("/") if api_url else None)


@exporter.command()
@click.pass_context
def projects(ctx: click.Context) -> None:
    """List available projects."""
    session = _require_session(ctx)
    try:
        with BraintrustClient.from_session(session) as client:
            found = with_retry(client.list_projects, DEFAULT_RETRY)
    except ExporterError as e:
        click.echo(f"❌ Error fetching projects: {e}")
        sys.exit(1)
    if not found:
        click.echo("No projects found.")
        return
    for project in found:
        click.echo(f"{project.id}\t{project.display_name}")


@exporter.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Check that the API key is accepted."""
    session = _require_session(ctx)
    with BraintrustClient.from_session(session) as client:
        if client.verify_api_key():
            click.echo("✓ API key verified")
            return
    click.echo("✗ Invalid API key. Please try again.")
    sys.exit(1)


@exporter.command()
@click.option("--project", "project", default=None, help="Project name or id (default: $BRAINTRUST_PROJECT)")
@click.option("--output-dir", default=None, type=click.Path(file_okay=False),
              help="Output root (default: $BRAINTRUST_EXPORT_DIR or ./exports)")
@click.pass_context
def export(ctx: click.Context, project: Optional[str], output_dir: Optional[str]) -> None:
    """Export every experiment and dataset of a project to CSV files."""
    session = _require_session(ctx)
    if output_dir:
        session.output_dir = output_dir
    if project:
        session.project = project
    if not session.project:
        click.echo("❌ Error: no project selected. Pass --project or set BRAINTRUST_PROJECT")
        sys.exit(1)

    click.echo(f"Exporting data for project: {session.project}")
    click.echo(f"Output directory: {session.output_dir}\n")
    try:
        with BraintrustClient.from_session(session) as client:
            report = export_project(client, session)
    except ProjectNotFoundError as e:
        click.echo(f"❌ {e}")
        sys.exit(1)
    except ExporterError as e:
        click.echo(f"❌ Error during export: {e}")
        sys.exit(1)

    exported = len(report.exported) - len(report.empty)
    click.echo(f"\n✅ Exported {exported} entities ({report.total_records} records)")
    if report.empty:
        click.echo(f"   {len(report.empty)} entities had no records")
    if report.failed:
        click.echo(f"❌ {len(report.failed)} entities failed:")
        for outcome in report.failed:
            click.echo(f"   - {outcome.kind} {outcome.name}: {outcome.error}")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    exporter()
