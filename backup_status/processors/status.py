"""
Status pass: fetch notifications, merge them into the ledger, persist,
then report.

The ledger is saved before the report is delivered, so a failed delivery
never loses backup data (at the cost of a repeated alert if delivery is
retried externally).
"""

import imaplib
import threading
import uuid
from datetime import datetime, timezone

from backup_status.config import Settings, settings
from backup_status.core.errors import DeliveryError, MessageSkipped
from backup_status.core.extract import parse_observation
from backup_status.core.health import HealthEvaluator
from backup_status.core.ledger import PlanLedger
from backup_status.core.logging import bind_context, clear_context, get_logger
from backup_status.core.models import AggregatorState, HealthSummary, RawMessage
from backup_status.core.store import LedgerStore
from backup_status.processors.base import BaseProcessor
from backup_status.services.imap import IMAPClient
from backup_status.services.mailer import Mailer
from backup_status.services.report import render_report

log = get_logger(__name__)

# At most one pass may load, mutate and persist the ledger at a time
_pass_lock = threading.Lock()


class StatusProcessor(BaseProcessor):
    """
    One aggregation pass over newly received Arq notifications.

    Steps:
    1. Validate configuration (FatalConfigError aborts before any mutation)
    2. Load state (empty if missing or corrupt)
    3. Fetch every message since the last run, then ingest them one by one
    4. Save state
    5. Evaluate health and deliver the report
    """

    def __init__(
        self,
        config: Settings | None = None,
        store: LedgerStore | None = None,
        imap: IMAPClient | None = None,
        mailer: Mailer | None = None,
        evaluator: HealthEvaluator | None = None,
    ):
        self.config = config or settings
        self.store = store or LedgerStore(
            self.config.state_path,
            max_tracked_message_ids=self.config.max_tracked_message_ids,
        )
        self.imap = imap or IMAPClient()
        self.mailer = mailer or Mailer()
        self.evaluator = evaluator or HealthEvaluator()

    def process(self, now: datetime | None = None) -> dict:
        if not _pass_lock.acquire(blocking=False):
            log.warning("status_pass_skipped", reason="previous pass still running")
            return {"skipped": True}

        try:
            bind_context(run_id=uuid.uuid4().hex[:12])
            return self._run_pass(now or datetime.now(timezone.utc))
        finally:
            clear_context()
            _pass_lock.release()

    def _run_pass(self, now: datetime) -> dict:
        self.config.validate_for_pass()

        stats = {
            "fetched": 0,
            "ingested": 0,
            "duplicates": 0,
            "skipped": 0,
            "retrieval_failed": False,
            "fetch_failures": 0,
            "delivered": False,
        }

        state = self.store.load()
        log.info("status_pass_starting", last_run=str(state.last_run), label=self.config.mail_label)

        try:
            messages = self._fetch(state)
        except (imaplib.IMAP4.error, OSError, RuntimeError) as e:
            # Keep last_run so the next pass retries the same window
            log.error("retrieval_failed", error=str(e))
            stats["retrieval_failed"] = True
            messages = []
        else:
            stats["fetch_failures"] = len(self.imap.failed_uids)
        stats["fetched"] = len(messages)

        ledger = PlanLedger(
            state,
            days_to_warn=self.config.days_to_warn,
            days_to_error=self.config.days_to_error,
        )
        for message in messages:
            try:
                observation = parse_observation(message, self.config.backup_zone)
            except MessageSkipped as e:
                log.warning("message_skipped", message_id=message.id, reason=str(e))
                stats["skipped"] += 1
                continue

            if ledger.ingest_message(message.id, observation):
                stats["ingested"] += 1
            else:
                stats["duplicates"] += 1

        # Messages that failed to fetch stay inside the next window
        if not stats["retrieval_failed"] and not stats["fetch_failures"]:
            state.last_run = now
        self.store.save(state)

        summary = self.evaluator.evaluate(state, now)
        stats["status"] = summary.status.value
        stats["delivered"] = self._deliver(summary)

        log.info("status_pass_complete", **stats)
        return stats

    def _fetch(self, state: AggregatorState) -> list[RawMessage]:
        """Collect all messages before ingestion starts."""
        with self.imap:
            return list(self.imap.fetch_messages(self.config.mail_label, since=state.last_run))

    def _deliver(self, summary: HealthSummary) -> bool:
        if not self.config.delivery_enabled:
            log.info("report_delivery_disabled")
            return False

        try:
            self.mailer.send(render_report(summary))
        except DeliveryError as e:
            log.error("report_delivery_failed", error=str(e))
            return False
        return True
