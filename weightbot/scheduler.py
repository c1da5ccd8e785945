"""
Daily final-leaderboard job.

Once a day (09:00 by default) the job checks whether the challenge deadline was
yesterday. If so, and the final board has not gone out yet, it posts the full
standings and records ``final_leaderboard_sent=true``. That flag, not the date
check, is what stops a second send.
"""
from __future__ import annotations
import logging
from datetime import date, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from . import messages
from .leaderboard import compute_leaderboard
from .models import CompetitionConfig
from .storage import SheetStore

logger = logging.getLogger(__name__)

PostMessage = Callable[[str, str], object]   # (channel, text)

FINAL_LEADERBOARD_JOB = "final_leaderboard"


def should_send_final_leaderboard(config: CompetitionConfig, today: date) -> bool:
    if config.deadline is None:
        return False
    if config.deadline != today - timedelta(days=1):
        return False
    return not config.final_leaderboard_sent


def send_final_leaderboard(store: SheetStore, post: PostMessage, channel: Optional[str], today: date) -> bool:
    """Post the full final standings and mark them sent. Returns False if nothing was posted."""
    if not channel:
        logger.error("FITNESS_CHANNEL not configured; final leaderboard not sent")
        return False

    config = store.get_config()
    users = store.all_users()
    if not users:
        text = messages.final_no_participants_message()
    else:
        entries = compute_leaderboard(users, config.mode)
        text = messages.final_leaderboard_message(entries, config.mode, config.deadline)

    post(channel, text)
    # flag is set even when there were no participants
    store.set_final_leaderboard_sent(True)
    logger.info("Final leaderboard sent for deadline %s", config.deadline)
    return True


def run_final_leaderboard_check(store: SheetStore, post: PostMessage, channel: Optional[str], today: date) -> bool:
    logger.info("Daily check: should the final leaderboard be sent?")
    try:
        if not should_send_final_leaderboard(store.get_config(), today):
            logger.info("No final leaderboard needed today")
            return False
        logger.info("Challenge ended yesterday, sending final leaderboard")
        return send_final_leaderboard(store, post, channel, today)
    except Exception:
        # keep the scheduler job alive
        logger.exception("Error in final leaderboard job")
        return False


def build_scheduler(at: time, callback: Callable[[], object], tz: Optional[str] = None) -> BackgroundScheduler:
    """Scheduler with one daily cron job at ``at`` wall-clock time in ``tz`` (server local if None).

    The cron trigger keeps the wall-clock hour across DST changes.
    """
    zone = ZoneInfo(tz) if tz else None
    scheduler = BackgroundScheduler(timezone=zone) if zone else BackgroundScheduler()
    scheduler.add_job(
        callback,
        CronTrigger(hour=at.hour, minute=at.minute, timezone=zone),
        id=FINAL_LEADERBOARD_JOB,
        name="Final leaderboard check",
        coalesce=True,
        misfire_grace_time=3600,
        replace_existing=True,
    )
    return scheduler
