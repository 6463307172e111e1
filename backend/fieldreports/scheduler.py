"""Background job scheduler for report queue processing."""
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .models import QueuePriority, TriggerType

logger = logging.getLogger(__name__)

# Global scheduler instance, created on start
scheduler: Optional[BackgroundScheduler] = None


def run_queue_cycle(context) -> dict:
    """Release stale claims, then process one batch."""
    logger.info(f"[{datetime.now()}] Running scheduled queue cycle...")

    try:
        context.coordinator.release_stale_claims()
    except Exception as e:
        logger.error(f"Stale claim release failed: {e}")

    summary = context.coordinator.process_pending_batch()
    return summary.as_dict()


def enqueue_weekly_reports(context) -> int:
    """Queue a low-priority scheduled report for every field."""
    logger.info(f"[{datetime.now()}] Queueing weekly field reports...")

    queued = 0
    for field_id in context.store.list_field_ids():
        try:
            _, created = context.store.enqueue(
                field_id,
                TriggerType.SCHEDULED,
                QueuePriority.LOW,
                max_retries=context.settings.default_max_retries,
            )
            if created:
                queued += 1
        except Exception as e:
            logger.error(f"  Could not queue weekly report for field {field_id}: {e}")

    logger.info(f"Weekly reports queued: {queued}")
    return queued


def start_scheduler(context) -> BackgroundScheduler:
    """Start the background scheduler."""
    global scheduler
    settings = context.settings

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_queue_cycle,
        trigger=IntervalTrigger(minutes=settings.poll_interval_minutes),
        args=[context],
        id="report_queue",
        name="Report queue processing",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    if settings.weekly_reports_enabled:
        scheduler.add_job(
            enqueue_weekly_reports,
            trigger=CronTrigger(day_of_week="sun", hour=6, minute=0),
            args=[context],
            id="weekly_reports",
            name="Weekly field reports",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    scheduler.start()
    logger.info(f"Scheduler started. Processing queue every {settings.poll_interval_minutes} minutes.")
    return scheduler


def stop_scheduler():
    """Stop the background scheduler."""
    global scheduler
    if scheduler is None:
        return
    scheduler.shutdown()
    scheduler = None
    logger.info("Scheduler stopped.")


def main(argv=None):
    import argparse
    import json
    import time

    from .config import settings
    from .context import build_context

    parser = argparse.ArgumentParser(description="Field report queue commands")
    parser.add_argument("command", choices=["process", "status", "release-stale", "daemon"],
                        help="Command to run")

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    context = build_context(settings)
    try:
        if args.command == "process":
            summary = context.coordinator.process_pending_batch()
            print(json.dumps(summary.as_dict()))
        elif args.command == "status":
            print(json.dumps(context.coordinator.get_status(), default=str, indent=2))
        elif args.command == "release-stale":
            released = context.coordinator.release_stale_claims()
            print(json.dumps({"released": released}))
        elif args.command == "daemon":
            print("Starting scheduler daemon...")
            start_scheduler(context)
            try:
                # Keep running
                while True:
                    time.sleep(60)
            except KeyboardInterrupt:
                stop_scheduler()
    finally:
        context.close()


# CLI entry point
if __name__ == "__main__":
    main()
