from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from loguru import logger

from src.config import get_settings
from src.scheduler.jobs import run_listing_fetch

settings = get_settings()


def create_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    fetch_job_options = {}
    if settings.fetch_on_startup:
        fetch_job_options["next_run_time"] = datetime.now(timezone.utc)

    # 每 30 分鐘抓取一次 deal 列表（啟動時先跑一次）
    scheduler.add_job(
        run_listing_fetch,
        "interval",
        minutes=settings.fetch_interval_minutes,
        id="listing_fetch",
        name="Listing Fetch",
        max_instances=1,
        coalesce=True,
        **fetch_job_options,
    )

    logger.info("Scheduler configured with jobs")
    return scheduler


def start_scheduler() -> BackgroundScheduler:
    scheduler = create_scheduler()
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler
