"""
APScheduler configuration for repeating backup cycles.

Each cycle schedules the next one as a one-shot job at the cycle's next_run
time, so the wait is measured from the end of the backup phase. Jobs run in
the scheduler's own thread; nothing runs concurrently.
"""

import logging
from datetime import datetime, timedelta

from apscheduler.executors.debug import DebugExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.date import DateTrigger

from backubrr.backup.cycle import BackupCycle, NEXT_RUN_FORMAT


logger = logging.getLogger(__name__)

# Global scheduler instance and the cycle it runs
scheduler = None
backup_cycle = None


def init_scheduler(cycle: BackupCycle):
    """
    Initialize and configure APScheduler.

    Args:
        cycle: BackupCycle to run on every scheduled job
    """
    global scheduler, backup_cycle

    if scheduler is not None:
        return scheduler

    backup_cycle = cycle

    executors = {
        'default': DebugExecutor()
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one cycle at a time
        'misfire_grace_time': None  # Run late cycles (e.g. after suspend) instead of dropping them
    }

    scheduler = BlockingScheduler(
        executors=executors,
        job_defaults=job_defaults
    )

    return scheduler


def schedule_next_cycle(run_date: datetime):
    """
    Add a one-time job running the next backup cycle.

    Args:
        run_date: When the cycle should start
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    scheduler.add_job(
        func=_run_scheduled_cycle,
        trigger=DateTrigger(run_date=run_date),
        id=f"cycle_{int(run_date.timestamp())}",
        name="Backup cycle",
        replace_existing=True
    )


def start_scheduler():
    """
    Start the scheduler. Blocks until the scheduler is shut down or the
    process is interrupted.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Interrupted, stopping scheduler")
        stop_scheduler()


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def _run_scheduled_cycle():
    """Run one cycle and schedule the following one."""
    report = None
    try:
        report = backup_cycle.run()
    finally:
        # Reschedule even if the cycle raised
        next_run = report['next_run'] if report else None
        if next_run is None:
            next_run = datetime.now() + timedelta(hours=backup_cycle.config.interval)
        logger.info(f"Next backup will run at {next_run.strftime(NEXT_RUN_FORMAT)}")
        schedule_next_cycle(next_run)


def run_backups(cycle: BackupCycle):
    """
    Run backup cycles: once when the configured interval is 0, otherwise
    every interval hours until the process is stopped.
    """
    if cycle.config.interval <= 0:
        cycle.run()
        return

    init_scheduler(cycle)
    schedule_next_cycle(datetime.now())
    start_scheduler()
