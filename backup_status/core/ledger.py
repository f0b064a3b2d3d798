"""
Per-plan ledger and its merge rule.

Cumulative fields (cumulative_errors, total_backups) are summed on every
merge. Snapshot fields (last_backup, most_recent_errors) follow the
observation with the latest end time. The ledger therefore converges to the
same records whatever order emails arrive in.
"""

import threading
from datetime import datetime

from backup_status.core.logging import get_logger
from backup_status.core.models import (
    AggregatorState,
    BackupPlanRecord,
    Observation,
    ensure_utc,
)

log = get_logger(__name__)


class PlanLedger:
    """Applies observations to the ledger held by an AggregatorState."""

    def __init__(
        self,
        state: AggregatorState,
        days_to_warn: float = 2,
        days_to_error: float = 7,
    ):
        """
        Args:
            state: State to mutate in place
            days_to_warn: Warning threshold for plans created from now on
            days_to_error: Error threshold for plans created from now on
        """
        self.state = state
        self.days_to_warn = days_to_warn
        self.days_to_error = days_to_error
        self._lock = threading.Lock()
        self._seen_ids = set(state.processed_message_ids)

    def ingest(
        self,
        plan_name: str,
        observed_end_time: datetime,
        observed_errors: int,
    ) -> BackupPlanRecord:
        """
        Merge one observation into the ledger.

        Returns:
            The created or updated record
        """
        if observed_errors < 0:
            raise ValueError(f"error count must be >= 0, got {observed_errors}")
        observed_end_time = ensure_utc(observed_end_time)

        with self._lock:
            record = self.state.ledger.get(plan_name)
            if record is None:
                record = BackupPlanRecord(
                    plan_name=plan_name,
                    last_backup=observed_end_time,
                    most_recent_errors=observed_errors,
                    cumulative_errors=observed_errors,
                    total_backups=1,
                    days_to_warn=self.days_to_warn,
                    days_to_error=self.days_to_error,
                )
                self.state.ledger[plan_name] = record
                log.info("plan_created", plan=plan_name)
                return record

            record.cumulative_errors += observed_errors
            record.total_backups += 1
            if observed_end_time > record.last_backup:
                record.last_backup = observed_end_time
                record.most_recent_errors = observed_errors
            return record

    def ingest_message(self, message_id: str, observation: Observation) -> bool:
        """
        Ingest an observation unless its message was already ingested.

        Returns:
            True if the observation was applied, False for a duplicate
        """
        with self._lock:
            if message_id in self._seen_ids:
                log.info("duplicate_message_skipped", message_id=message_id)
                return False
            self._seen_ids.add(message_id)
            self.state.processed_message_ids.append(message_id)

        self.ingest(observation.plan_name, observation.end_time, observation.errors)
        log.debug(
            "plan_ingested",
            message_id=message_id,
            plan=observation.plan_name,
            errors=observation.errors,
        )
        return True
