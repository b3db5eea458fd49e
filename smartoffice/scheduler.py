"""Job scheduler using APScheduler."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from smartoffice.config import Settings
from smartoffice.data.context import StoreContext
from smartoffice.jobs.controls import import_controls_job
from smartoffice.jobs.timer import TimerInfo

logger = logging.getLogger(__name__)

Job = Callable[[StoreContext, TimerInfo], Awaitable[object]]


def compute_timer_info(
    trigger: CronTrigger,
    now: datetime,
    tolerance: timedelta = timedelta(seconds=60),
    lookback: timedelta = timedelta(days=1),
) -> TimerInfo:
    """Work out which fire time a run belongs to and whether it started late.

    The scheduled time is the latest fire time at or before ``now`` within
    ``lookback``; a run that starts more than ``tolerance`` after it is past
    due. When no fire time falls in the window the run counts as on time.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    scheduled = None
    previous = None
    candidate = trigger.get_next_fire_time(None, now - lookback)
    while candidate is not None and candidate <= now:
        scheduled = candidate
        previous = candidate
        candidate = trigger.get_next_fire_time(previous, previous + timedelta(microseconds=1))

    if scheduled is None:
        return TimerInfo(scheduled_time=now, is_past_due=False)
    return TimerInfo(scheduled_time=scheduled, is_past_due=now - scheduled > tolerance)


async def _run_timed(
    job: Job,
    name: str,
    trigger: CronTrigger,
    context: StoreContext,
    tolerance: timedelta,
) -> None:
    """Scheduler wrapper: build the TimerInfo and run the job.

    Jobs log their own failures; a failed run ends here so the scheduler keeps
    running.
    """
    timer = compute_timer_info(trigger, datetime.now(timezone.utc), tolerance=tolerance)
    try:
        result = await job(context, timer)
        logger.info(f"{name}: finished ({result})")
    except Exception as exc:
        logger.debug(f"{name}: run ended early ({type(exc).__name__})")


def build_scheduler(settings: Settings, context: StoreContext) -> AsyncIOScheduler:
    """Create an AsyncIOScheduler with every configured job registered."""
    scheduler = AsyncIOScheduler(timezone=settings.scheduler.timezone)
    tolerance = timedelta(seconds=settings.scheduler.past_due_tolerance_seconds)

    trigger = CronTrigger.from_crontab(
        settings.scheduler.import_controls_cron,
        timezone=settings.scheduler.timezone,
    )
    scheduler.add_job(
        _run_timed,
        trigger,
        args=[import_controls_job, "Import Secure Score controls", trigger, context, tolerance],
        id="import-controls",
        name="Import Secure Score controls",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=settings.scheduler.misfire_grace_seconds,
    )
    logger.info(
        f"Registered job: Import Secure Score controls ({settings.scheduler.import_controls_cron})"
    )

    return scheduler


async def run_all_once(context: StoreContext) -> dict[str, object]:
    """Run every job immediately, in registration order."""
    timer = TimerInfo(scheduled_time=datetime.now(timezone.utc), is_past_due=False)
    return {"import-controls": await import_controls_job(context, timer)}


async def run_scheduler(
    settings: Settings,
    context: StoreContext,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Start the scheduler and block until ``stop_event`` is set or the task is cancelled."""
    stop_event = stop_event or asyncio.Event()
    scheduler = build_scheduler(settings, context)

    try:
        scheduler.start()
        logger.info("✓ Scheduler starting...")
        logger.info(f"✓ {len(scheduler.get_jobs())} jobs registered")
        await stop_event.wait()
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        await context.close()
        logger.info("✓ Scheduler stopped cleanly")
