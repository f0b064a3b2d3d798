"""
Health classification for plans and for the whole run.
"""

from datetime import datetime, timedelta, timezone

from backup_status.core.models import (
    AggregatorState,
    BackupPlanRecord,
    HealthStatus,
    HealthSummary,
    PlanHealth,
    ensure_utc,
)

# Reports highlight the last-backup age once it passes two weeks
STALE_AFTER = timedelta(weeks=2)


class HealthEvaluator:
    """Classifies ledger records against their thresholds."""

    def classify(self, record: BackupPlanRecord, now: datetime, ignored: bool = False) -> HealthStatus:
        """
        Classify one plan.

        Priority: ignored, then error (too old or recent errors), then
        warning (old), then success.
        """
        if ignored:
            return HealthStatus.IGNORED

        elapsed = ensure_utc(now) - record.last_backup
        if elapsed >= record.error_threshold or record.most_recent_errors != 0:
            return HealthStatus.ERROR
        if elapsed >= record.warn_threshold:
            return HealthStatus.WARNING
        return HealthStatus.SUCCESS

    def evaluate(self, state: AggregatorState, now: datetime | None = None) -> HealthSummary:
        """
        Classify every plan in ledger order and derive the overall status.

        Ignored plans are counted but never raise the overall status.
        """
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        summary = HealthSummary(evaluated_at=now, status=HealthStatus.SUCCESS)

        for plan_name, record in state.ledger.items():
            status = self.classify(record, now, ignored=state.is_ignored(plan_name))
            elapsed = now - record.last_backup
            summary.plans.append(PlanHealth(
                plan_name=plan_name,
                status=status,
                elapsed=elapsed,
                last_backup=record.last_backup,
                most_recent_errors=record.most_recent_errors,
                cumulative_errors=record.cumulative_errors,
                total_backups=record.total_backups,
                stale=elapsed >= STALE_AFTER,
            ))

            if status is HealthStatus.IGNORED:
                summary.ignored += 1
            elif status is HealthStatus.ERROR:
                summary.errors += 1
            elif status is HealthStatus.WARNING:
                summary.warnings += 1
            else:
                summary.successes += 1

        if summary.errors:
            summary.status = HealthStatus.ERROR
        elif summary.warnings:
            summary.status = HealthStatus.WARNING

        return summary
