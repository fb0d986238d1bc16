import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from config.settings import settings
from crud.payment import expire_stale_pending
from db.session import SessionLocal

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def expiry_cutoff(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(minutes=settings.PENDING_TTL_MINUTES)


def expiry_tick() -> int:
    """Cancel pending checkouts older than PENDING_TTL_MINUTES"""
    db = SessionLocal()
    try:
        cancelled = expire_stale_pending(db, expiry_cutoff())
        if cancelled:
            logger.info("Expired %s abandoned pending payment(s)", cancelled)
        return cancelled
    except Exception as e:
        logger.warning("Pending expiry tick failed: %s", e)
        return 0
    finally:
        db.close()


def start_expiry_scheduler() -> Optional[BackgroundScheduler]:
    global _scheduler
    if _scheduler is not None:
        return _scheduler
    if not settings.PENDING_EXPIRY_ENABLED:
        logger.info("Pending payment expiry disabled")
        return None
    try:
        sched = BackgroundScheduler(timezone=str(timezone.utc))
        sched.add_job(
            expiry_tick, 'interval',
            seconds=settings.PENDING_SWEEP_INTERVAL_SECONDS,
            id='pending-expiry', max_instances=1, coalesce=True,
        )
        sched.start()
        _scheduler = sched
        logger.info(
            "Pending expiry scheduler started: every %ss, ttl=%smin",
            settings.PENDING_SWEEP_INTERVAL_SECONDS, settings.PENDING_TTL_MINUTES,
        )
        return sched
    except Exception as e:
        logger.warning("Failed to start pending expiry scheduler: %s", e)
        return None


def shutdown_expiry_scheduler():
    global _scheduler
    try:
        if _scheduler:
            _scheduler.shutdown(wait=False)
            _scheduler = None
            logger.info("Pending expiry scheduler stopped")
    except Exception as e:
        logger.warning("Error stopping scheduler: %s", e)
