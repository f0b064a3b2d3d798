"""
APScheduler job runner for periodic status passes.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from backup_status.config import settings
from backup_status.core.logging import get_logger

log = get_logger(__name__)

# Global scheduler instance
_scheduler: BaseScheduler | None = None


def status_report_job():
    """Scheduled job running one status pass.

    Errors are logged so the scheduler keeps firing on later ticks.
    """
    from backup_status.processors.status import StatusProcessor

    log.info("scheduled_job_starting", job="status_report")
    try:
        stats = StatusProcessor().process()
        log.info("scheduled_job_complete", job="status_report", **stats)
    except Exception as e:
        log.error("scheduled_job_error", job="status_report", error=str(e))


def start_scheduler(
    cron_schedule: str | None = None,
    blocking: bool = False,
    run_on_start: bool | None = None,
) -> BaseScheduler:
    """
    Start the status report scheduler.

    The job never overlaps itself: a tick that fires while a pass is still
    running is dropped, and missed ticks are coalesced into one.

    Args:
        cron_schedule: Crontab expression (defaults to settings.cron_schedule)
        blocking: Use a BlockingScheduler that owns the calling thread
        run_on_start: Run one pass immediately (defaults to settings.run_on_start)

    Returns:
        The scheduler instance
    """
    global _scheduler

    if _scheduler is not None:
        log.warning("scheduler_already_running")
        return _scheduler

    cron_schedule = cron_schedule or settings.cron_schedule
    if run_on_start is None:
        run_on_start = settings.run_on_start

    scheduler = BlockingScheduler() if blocking else BackgroundScheduler()
    scheduler.add_job(
        status_report_job,
        trigger=CronTrigger.from_crontab(cron_schedule),
        id="status_report",
        name="Arq backup status report",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    _scheduler = scheduler

    log.info("scheduler_starting", cron=cron_schedule, run_on_start=run_on_start)
    if run_on_start:
        run_now()

    # BlockingScheduler.start() only returns on shutdown
    scheduler.start()
    return scheduler


def stop_scheduler():
    """Stop the scheduler."""
    global _scheduler

    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        log.info("scheduler_stopped")


def get_scheduler() -> BaseScheduler | None:
    """Get the current scheduler instance."""
    return _scheduler


def run_now():
    """Manually trigger the status report job."""
    status_report_job()
