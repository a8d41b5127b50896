"""Command-line interface for the recovery engine."""

import logging
import click
from datetime import datetime
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.logging import RichHandler
from rich import box

from .config import config
from .exceptions import NotFoundError, RecoveryEngineError
from .analysis.types import RecoveryStatus
from .db import get_db
from .service import RecoveryService

console = Console()

STATUS_COLORS = {
    RecoveryStatus.OPTIMAL: "green",
    RecoveryStatus.GOOD: "green",
    RecoveryStatus.FAIR: "yellow",
    RecoveryStatus.POOR: "orange3",
    RecoveryStatus.CRITICAL: "red",
}

DATE_TYPE = click.DateTime(formats=["%Y-%m-%d"])


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _day(value):
    """Resolve an optional --date option to a date."""
    return value.date() if value else datetime.utcnow().date()


def _fmt(value, spec: str = ".1f", suffix: str = "") -> str:
    return f"{value:{spec}}{suffix}" if value is not None else "n/a"


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """Recovery readiness scoring and training adjustment tool."""
    setup_logging(log_level or config.LOG_LEVEL)


@cli.command("init-db")
def init_db():
    """Create the database tables."""
    try:
        config.validate()
    except ValueError as e:
        console.print(f"[red]❌ Configuration Error: {e}[/red]")
        return

    get_db().create_tables()
    console.print(f"[green]✅ Database ready at {config.DATABASE_URL}[/green]")


@cli.command()
@click.argument("user_id")
def baseline(user_id):
    """Recompute and show a user's rolling baselines."""
    console.print(Panel.fit(f"📏 Baselines for {user_id}", style="bold blue"))

    result = RecoveryService().compute_baseline(user_id)

    table = Table(title=f"Trailing {config.BASELINE_WINDOW_DAYS}-day baseline", box=box.ROUNDED)
    table.add_column("Metric")
    table.add_column("Baseline", justify="right")
    table.add_column("Days", justify="right")
    table.add_row("HRV (RMSSD ms)", _fmt(result.hrv_baseline_rmssd), str(result.hrv_days))
    table.add_row("Resting HR (bpm)", _fmt(result.rhr_baseline), str(result.rhr_days))
    table.add_row("Sleep (hours)", _fmt(result.typical_sleep_hours, ".2f"), str(result.sleep_days))
    console.print(table)

    if result.data_points_count < config.BASELINE_MIN_DAYS:
        console.print(
            f"[yellow]⚠️  Baselines need {config.BASELINE_MIN_DAYS} days of data per metric[/yellow]"
        )


@cli.command()
@click.argument("user_id")
@click.option("--date", "score_date", type=DATE_TYPE, default=None, help="Day to score (YYYY-MM-DD)")
@click.option("--strain", type=float, default=None, help="Training strain for the day")
def score(user_id, score_date, strain):
    """Compute a user's readiness score for a day."""
    day = _day(score_date)
    service = RecoveryService()

    result = service.compute_daily_score(user_id, day, training_strain=strain)
    status = service.get_recovery_status(user_id, day)
    color = STATUS_COLORS[result.recovery_status]

    console.print(Panel(
        f"Readiness: [bold {color}]{result.readiness_score:.1f}/100[/bold {color}] "
        f"({result.recovery_status.value})\n"
        f"HRV trend: {result.hrv_trend.value}\n"
        f"HRV deviation: {_fmt(result.hrv_deviation, '+.1f', '%')}\n"
        f"Resting HR deviation: {_fmt(result.rhr_deviation, '+.1f', '%')}\n"
        f"Sleep quality: {_fmt(result.sleep_quality_score)}\n"
        f"Suggested TSS factor: {result.recommended_tss_adjustment:.2f}",
        title=f"💓 Recovery {day.isoformat()}",
        border_style=color,
    ))

    table = Table(title="Recommendations", box=box.ROUNDED)
    table.add_column("Priority")
    table.add_column("Category")
    table.add_column("Action")
    for rec in status.recommendations:
        table.add_row(rec.priority, rec.category, rec.action)
    console.print(table)


@cli.command()
@click.argument("user_id")
@click.option("--days", default=30, help="Number of days to report")
def trends(user_id, days):
    """Show readiness trend and detected patterns."""
    report = RecoveryService().get_trend_report(user_id, days)

    console.print(Panel.fit(
        f"📈 {days}-day average readiness: {report.average_readiness:.1f} "
        f"(trend: {report.trend_direction.value})",
        style="bold blue",
    ))

    if report.data_points:
        table = Table(title="Daily Readiness", box=box.ROUNDED)
        table.add_column("Date")
        table.add_column("Readiness", justify="right")
        table.add_column("Status")
        for point in report.data_points:
            color = STATUS_COLORS[point.recovery_status]
            table.add_row(
                point.date.isoformat(),
                f"{point.readiness_score:.1f}",
                f"[{color}]{point.recovery_status.value}[/{color}]",
            )
        console.print(table)

    for pattern in report.patterns:
        console.print(f"[cyan]• {pattern.description} (confidence {pattern.confidence:.0%})[/cyan]")


@cli.command()
@click.argument("user_id")
@click.option("--all", "show_all", is_flag=True, help="Include acknowledged alerts")
@click.option("--ack", "ack_id", type=int, default=None, help="Acknowledge the alert with this id")
def alerts(user_id, show_all, ack_id):
    """List (or acknowledge) a user's recovery alerts."""
    service = RecoveryService()

    if ack_id is not None:
        try:
            service.acknowledge_alert(user_id, ack_id)
        except NotFoundError as e:
            console.print(f"[yellow]⚠️  {e.message}[/yellow]")
            return
        console.print(f"[green]✅ Alert {ack_id} acknowledged[/green]")
        return

    items = service.list_alerts(user_id, include_acknowledged=show_all)
    if not items:
        console.print("[green]No alerts.[/green]")
        return

    table = Table(title=f"Recovery Alerts for {user_id}", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Created")
    table.add_column("Severity")
    table.add_column("Message")
    table.add_column("Ack")
    for alert in items:
        table.add_row(
            str(alert.id),
            alert.created_at.strftime("%Y-%m-%d %H:%M"),
            alert.severity.value,
            alert.message,
            "✓" if alert.acknowledged_at else "",
        )
    console.print(table)


@cli.command()
@click.argument("user_id")
@click.option("--tss", type=float, required=True, help="Planned training stress score")
@click.option("--date", "target_date", type=DATE_TYPE, default=None, help="Planned day (YYYY-MM-DD)")
def recommend(user_id, tss, target_date):
    """Recommend a recovery-based training load adjustment."""
    day = _day(target_date)
    rec = RecoveryService().recommend_adjustment(user_id, day, tss)

    if not rec.has_recovery_data:
        console.print(f"[yellow]⚠️  No recovery score for {day.isoformat()}; proceed as planned.[/yellow]")
        return

    adjustment = rec.tss_adjustment
    body = (
        f"Planned TSS: {adjustment.original_tss:.0f} → Recommended: "
        f"[bold]{adjustment.recommended_tss:.0f}[/bold] (×{adjustment.adjustment_factor:.2f})\n"
        f"{adjustment.explanation}\n\n"
        + "\n".join(f"• {line}" for line in adjustment.reasoning)
        + f"\n\nModification: {rec.modification.modification_type.value}"
    )
    console.print(Panel(body, title=f"🏋️ Training Adjustment {day.isoformat()}", border_style="blue"))

    if rec.rest_recommendation:
        rest = rec.rest_recommendation
        console.print(
            f"[red]🛌 Rest day recommended ({rest.confidence:.0%} confidence): {rest.reasoning}[/red]"
        )
        console.print(f"[black]Alternative: {rest.alternative_action}[/black]")


@cli.command()
@click.option("--date", "score_date", type=DATE_TYPE, default=None, help="Day to recompute (YYYY-MM-DD)")
def batch(score_date):
    """Recompute scores and alerts for all users."""
    day = _day(score_date)

    with console.status(f"[black]Recomputing recovery for {day.isoformat()}...[/black]"):
        result = RecoveryService().recompute_all(day)

    console.print(
        f"[green]✅ {len(result.succeeded)} succeeded[/green], "
        f"[red]{len(result.failed)} failed[/red], "
        f"[yellow]{len(result.timed_out)} timed out[/yellow]"
    )
    for user_id, error in sorted(result.failed.items()):
        console.print(f"[red]  • {user_id}: {error}[/red]")


def main():
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[orange3]Operation cancelled by user.[/orange3]")
    except RecoveryEngineError as e:
        console.print(f"[red]❌ {e.code.value}: {e.message}[/red]")


if __name__ == "__main__":
    main()
