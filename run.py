import asyncio
import datetime
from pathlib import Path
from typing import Optional

import typer

from ibadah365.generator import IbadahPlanner, events_on_day
from ibadah365.logging_config import configure_logging, get_log_level
from ibadah365.notifications import InMemoryNotificationBackend, NotificationScheduler
from ibadah365.utils import load_preferences

app = typer.Typer()


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Log level, defaults to LOG_LEVEL or INFO")):
    configure_logging(level=get_log_level(log_level) if log_level else None)


def _event_line(planner: IbadahPlanner, event) -> str:
    arabic = planner.preferences.language == "ar"
    hijri = event.hijri_date
    if hijri is None:
        hijri_label = "-"
    else:
        month_name = planner.calendar.get_hijri_month_name(hijri.hijri_month, arabic)
        hijri_label = f"{hijri.hijri_day} {month_name} {hijri.hijri_year}"
    title = event.title_arabic if arabic else event.title
    span = f" -> {event.end_date.isoformat()}" if event.is_multi_day else ""
    forbidden = " [no fasting]" if event.is_forbidden_day else ""
    return f"{event.date.isoformat()}{span}  {hijri_label}  {event.icon} {title}{forbidden}"


@app.command()
def events(
    start: Optional[datetime.datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="First day (default: today)"),
    end: Optional[datetime.datetime] = typer.Option(None, formats=["%Y-%m-%d"], help="Last day (default: three months on)"),
    config: Optional[Path] = typer.Option(None, help="Preferences YAML (default: config/preferences.yaml)"),
):
    """
    List Ibadah events in a date range.
    """
    try:
        planner = IbadahPlanner(load_preferences(config))
        first_day = start.date() if start else datetime.date.today()
        if end:
            found = planner.events_for_range(first_day, end.date())
        else:
            found = planner.upcoming_events(first_day)
        for event in found:
            typer.echo(_event_line(planner, event))
        typer.echo(f"{len(found)} events.")
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def today(config: Optional[Path] = typer.Option(None, help="Preferences YAML")):
    """Show today's Hijri date and the events that cover it."""
    try:
        planner = IbadahPlanner(load_preferences(config))
        day = datetime.date.today()
        hijri = planner.today_hijri(day)
        arabic = planner.preferences.language == "ar"
        month_name = planner.calendar.get_hijri_month_name(hijri.hijri_month, arabic)
        typer.echo(f"{day.isoformat()} = {hijri.hijri_day} {month_name} {hijri.hijri_year} AH")
        # multi-day events may have started up to a month earlier
        nearby = planner.events_for_range(day - datetime.timedelta(days=31), day)
        for event in events_on_day(nearby, day):
            typer.echo(_event_line(planner, event))
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def schedule(
    days: int = typer.Option(30, help="How many days ahead to schedule"),
    config: Optional[Path] = typer.Option(None, help="Preferences YAML"),
):
    """
    Preview the reminders that would be scheduled, without delivering them.
    """
    try:
        planner = IbadahPlanner(load_preferences(config))
        backend = InMemoryNotificationBackend()
        scheduler = NotificationScheduler(backend)
        first_day = datetime.date.today()
        count = asyncio.run(
            planner.schedule_notifications(scheduler, first_day, first_day + datetime.timedelta(days=days))
        )
        for request in backend.requests():
            typer.echo(f"{request.trigger_at.isoformat()}  [{request.data['kind']}] {request.title}")
        typer.echo(f"{count} reminders.")
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def verify_config(config: Optional[Path] = typer.Option(None, help="Preferences YAML")):
    """Load and validate the preferences file."""
    try:
        prefs = load_preferences(config, missing_ok=False)
        enabled = [category.value for category, on in prefs.enabled_categories.items() if on]
        typer.echo("✅ Configuration valid!")
        typer.echo(f"Hijri offset: {prefs.hijri_offset:+d} days, timezone: {prefs.timezone}")
        typer.echo(f"Enabled categories: {', '.join(enabled)}")
    except Exception as e:
        typer.echo(f"❌ Configuration invalid: {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
