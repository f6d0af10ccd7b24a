"""
CLI interface for the Meal Orchestrator scheduling core.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from orchestrator.config import settings
from orchestrator.engine.scheduler import MealScheduler
from orchestrator.errors import OrchestratorError
from orchestrator.models.schemas import (
    ConflictStatus, ScheduleReport, ScheduleRequest, TimelineAction
)
from orchestrator.samples import thanksgiving_request


def _localize(value: Optional[datetime]) -> Optional[datetime]:
    """Attach the configured timezone to naive datetimes."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=settings.tzinfo)


def _load_request(input_file: Path, meal_time: Optional[datetime]) -> ScheduleRequest:
    try:
        request = ScheduleRequest.model_validate_json(input_file.read_text())
    except ValidationError as e:
        raise click.ClickException(f"Invalid request in {input_file}:\n{e}")

    updates = {
        "meal_time": _localize(meal_time or request.meal_time),
        "kitchen_opens_at": _localize(request.kitchen_opens_at),
    }
    return ScheduleRequest.model_validate({**request.model_dump(), **updates})


def _day_label(report: ScheduleReport, day) -> str:
    offset = (report.meal_time.date() - day).days
    if offset == 0:
        return "Serving day"
    if offset == 1:
        return "Day before"
    return f"{offset} days before"


def _display_report(report: ScheduleReport) -> None:
    """Print the day-grouped checklist, then conflicts and warnings."""
    title = report.meal_name or "Meal"
    click.echo("=" * 60)
    click.echo(f"{title.upper()}: served {report.meal_time:%A, %B %d at %I:%M %p}")
    click.echo("=" * 60)

    for day, entries in report.entries_by_day().items():
        click.echo(f"\n📅 {day:%A, %B %d} ({_day_label(report, day)})")
        for entry in entries:
            marker = "🍽️ " if entry.action == TimelineAction.SERVE else "☐"
            click.echo(f"  {entry.time:%I:%M %p}  {marker} {entry.description}")

    if report.conflicts:
        click.echo(click.style(f"\n🚨 CONFLICTS ({len(report.conflicts)})", fg="red", bold=True))
        for conflict in report.conflicts:
            tag = "FATAL" if conflict.status == ConflictStatus.FATAL else "UNRESOLVED"
            click.echo(click.style(f"  • [{tag}] {conflict.type.value}: {conflict.message}", fg="red"))

    if report.warnings:
        click.echo(f"\n⚠️  ADJUSTMENTS ({len(report.warnings)})")
        for warning in report.warnings:
            click.echo(f"  • {warning.message}")

    if report.all_ready_by_meal_time:
        click.echo("\n✓ Every dish is ready by meal time")
    else:
        click.echo(click.style("\n❌ Some dishes will not be ready by meal time", fg="red"))
    if report.no_equipment_overbooked:
        click.echo("✓ No equipment is overbooked")


@click.group()
@click.option('--log-level', default=None, help='Logging level (defaults to settings)')
def cli(log_level: Optional[str]):
    """Meal Orchestrator - backward meal scheduling"""
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@cli.command()
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    '--meal-time',
    type=click.DateTime(formats=['%Y-%m-%dT%H:%M', '%Y-%m-%d %H:%M']),
    default=None,
    help='Override the serving time from the file',
)
@click.option('--json', 'as_json', is_flag=True, help='Print the full report as JSON')
@click.option('--strict', is_flag=True, help='Exit with status 1 when conflicts remain')
def schedule(input_file: Path, meal_time: Optional[datetime], as_json: bool, strict: bool):
    """Schedule the meal described in INPUT_FILE (a ScheduleRequest JSON)."""
    request = _load_request(input_file, meal_time)

    try:
        report = MealScheduler().schedule(request)
    except OrchestratorError as e:
        details = e.details.get("problems") if e.details else None
        message = e.message
        if details:
            message += "\n" + "\n".join(f"  - {problem}" for problem in details)
        raise click.ClickException(message)

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    else:
        _display_report(report)

    if strict and report.conflicts:
        raise SystemExit(1)


@cli.command()
@click.option(
    '--meal-time',
    type=click.DateTime(formats=['%Y-%m-%dT%H:%M', '%Y-%m-%d %H:%M']),
    default=None,
    help='Serving time for the sample meal',
)
def example(meal_time: Optional[datetime]):
    """Print a sample holiday dinner request as JSON."""
    click.echo(thanksgiving_request(meal_time).model_dump_json(indent=2, exclude_none=True))


if __name__ == '__main__':
    cli()
