"""
Status report rendering (HTML and plaintext).
"""

from dataclasses import dataclass
from datetime import timedelta
from html import escape

from backup_status.core.models import HealthStatus, HealthSummary, PlanHealth

STATUS_MARKERS = {
    HealthStatus.IGNORED: "〰️",
    HealthStatus.ERROR: "❌",
    HealthStatus.WARNING: "⚠️",
    HealthStatus.SUCCESS: "✅",
}

REPORT_TITLE = "Arq Backup Status Report"


@dataclass
class Report:
    """A rendered status report ready for delivery."""

    subject: str
    html: str
    text: str


def format_elapsed(elapsed: timedelta) -> str:
    """Format an age as minutes under an hour, hours under a day, days otherwise."""
    seconds = elapsed.total_seconds()
    if seconds < 3600:
        return f"{seconds / 60:.1f} minutes ago"
    if seconds < 86400:
        return f"{seconds / 3600:.1f} hours ago"
    return f"{seconds / 86400:.1f} days ago"


def _overview_lines(summary: HealthSummary) -> list[str]:
    lines = [f"Total Backups: {summary.total}"]
    if summary.warnings:
        lines.append(f"Warnings: {summary.warnings}")
    if summary.errors:
        lines.append(f"Errors: {summary.errors}")
    if summary.ignored:
        lines.append(f"Total Ignored Backups: {summary.ignored}")
    return lines


def _plan_html(plan: PlanHealth) -> str:
    red = ' style="color:red;"'
    return (
        f"{STATUS_MARKERS[plan.status]}<b>{escape(plan.plan_name)}</b><br><ul>"
        f"<li{red if plan.stale else ''}>Last Backup: {format_elapsed(plan.elapsed)}</li>"
        f"<li>Last Backup Date: {plan.last_backup.strftime('%a %b %d %Y')}</li>"
        f"<li{red if plan.most_recent_errors > 0 else ''}>Most recent errors: {plan.most_recent_errors}</li>"
        f"<li>Total Errors over time: {plan.cumulative_errors}</li>"
        f"<li>Total Backups over time: {plan.total_backups}</li></ul><hr>"
    )


def _plan_text(plan: PlanHealth) -> str:
    return "\n".join([
        f"{STATUS_MARKERS[plan.status]} {plan.plan_name}",
        f"  Last Backup: {format_elapsed(plan.elapsed)}",
        f"  Last Backup Date: {plan.last_backup.strftime('%a %b %d %Y')}",
        f"  Most recent errors: {plan.most_recent_errors}",
        f"  Total Errors over time: {plan.cumulative_errors}",
        f"  Total Backups over time: {plan.total_backups}",
    ])


def render_report(summary: HealthSummary) -> Report:
    """Render a health summary into subject, HTML body and plaintext body."""
    marker = STATUS_MARKERS[summary.status]
    created = summary.evaluated_at.strftime("%a %b %d %Y")
    overview = _overview_lines(summary)

    html = (
        f"<b>{REPORT_TITLE}</b><br>Created: {created}<br>"
        f"<h1>{marker}</h1><b>Overview</b><ul>"
        + "".join(f"<li>{line}</li>" for line in overview)
        + "</ul><br><b>Individual Backup Information</b><hr>"
        + "".join(_plan_html(plan) for plan in summary.plans)
        + "<i>Report provided by backup-status</i>"
    )

    text = "\n\n".join([
        f"{REPORT_TITLE}\nCreated: {created}",
        f"{marker} Overview\n" + "\n".join(f"  {line}" for line in overview),
        *(_plan_text(plan) for plan in summary.plans),
    ])

    return Report(subject=f"{marker} {REPORT_TITLE}", html=html, text=text)
