from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Set

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import get_settings
from src.models import WatchQuery
from src.models.base import utcnow
from src.notifications.webhook import WebhookSender
from src.scheduler.jobs import run_watch_query
from src.stores.watch_queries import get_active_watch_queries, get_watch_query, record_run

JOB_ID_PREFIX = "watch_query"


class WatchQueryScheduler:
    """Owns one pending one-shot timer per active watch query.

    ``schedule`` and ``unschedule`` are the only mutators of the timer map.
    Each query cycles idle-scheduled -> executing -> idle-scheduled; the move
    back to idle-scheduled happens in a ``finally`` so a failed run still
    re-arms.
    """

    def __init__(
        self,
        scheduler: BaseScheduler,
        session_factory: Callable[[], Session],
        sender: Optional[WebhookSender] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.scheduler = scheduler
        self.session_factory = session_factory
        self.sender = sender
        self.clock = clock
        self.settings = get_settings()
        self._jobs: Dict[str, Job] = {}
        self._executing: Set[str] = set()
        self._lock = threading.RLock()

    # -- timer map -----------------------------------------------------

    def bootstrap(self) -> int:
        """Arm a timer for every active watch query; returns how many."""
        with self.session_factory() as session:
            queries = get_active_watch_queries(session)
            for query in queries:
                self.schedule(query)
        logger.info(f"Scheduled {len(queries)} active watch queries")
        return len(queries)

    def schedule(self, query: WatchQuery) -> None:
        """(Re-)arm the query's timer; past ``next_run`` fires immediately."""
        with self._lock:
            self._cancel(query.id)

            if not query.is_active:
                logger.info(f"Watch query {query.id} is inactive, not scheduling")
                return

            now = self.clock()
            delay = max(timedelta(0), query.next_run - now)
            run_date = (now + delay).replace(tzinfo=timezone.utc)
            job_id = f"{JOB_ID_PREFIX}:{query.id}:{uuid.uuid4().hex[:8]}"
            job = self.scheduler.add_job(
                self._fire,
                DateTrigger(run_date=run_date),
                args=[query.id, job_id],
                id=job_id,
                name=f"Watch Query {query.name}",
                misfire_grace_time=None,
                coalesce=True,
            )
            self._jobs[query.id] = job

        logger.info(
            f"Scheduling watch query {query.id} to run in "
            f"{round(delay.total_seconds() / 60)} minutes"
        )

    def unschedule(self, query_id: str) -> None:
        """Cancel the query's pending timer, if any."""
        with self._lock:
            if self._cancel(query_id):
                logger.info(f"Watch query {query_id} removed from scheduler")

    def scheduled_ids(self) -> Set[str]:
        with self._lock:
            return set(self._jobs)

    def is_executing(self, query_id: str) -> bool:
        with self._lock:
            return query_id in self._executing

    def _cancel(self, query_id: str) -> bool:
        job = self._jobs.pop(query_id, None)
        if job is None:
            return False
        try:
            job.remove()
        except JobLookupError:
            # already fired and dropped by APScheduler
            pass
        return True

    # -- execution -----------------------------------------------------

    def _fire(self, query_id: str, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(query_id)
            if job is None or job.id != job_id:
                logger.debug(f"Ignoring stale timer {job_id}")
                return
            del self._jobs[query_id]
            if query_id in self._executing:
                # the running execution re-arms on its own
                logger.info(f"Watch query {query_id} is already executing, skipping timer")
                return
            self._executing.add(query_id)

        try:
            self.execute(query_id)
        finally:
            with self._lock:
                self._executing.discard(query_id)

    def execute(self, query_id: str) -> None:
        """Run one watch query cycle: match, deliver, persist, re-arm."""
        now = self.clock()
        reschedule = True
        try:
            with self.session_factory() as session:
                query = get_watch_query(session, query_id)
                if query is None or not query.is_active:
                    logger.info(f"Watch query {query_id} not found or inactive, not rescheduling")
                    reschedule = False
                    return

                logger.info(f"Executing watch query: {query.name}")
                run_watch_query(session, query, now, sender=self.sender)
        except Exception as e:
            logger.error(f"Error executing watch query {query_id}: {e}")
        finally:
            if reschedule:
                self._reschedule(query_id, now)

    def _reschedule(self, query_id: str, ran_at: datetime) -> None:
        retries = max(1, self.settings.reschedule_max_retries)
        for attempt in range(retries):
            try:
                with self.session_factory() as session:
                    query = get_watch_query(session, query_id)
                    if query is None or not query.is_active:
                        # deleted or deactivated while running
                        self.unschedule(query_id)
                        return
                    record_run(session, query, ran_at)
                    self.schedule(query)
                return
            except SQLAlchemyError as e:
                logger.warning(
                    f"Reschedule attempt {attempt + 1}/{retries} failed for "
                    f"watch query {query_id}: {e}"
                )
                if attempt < retries - 1:
                    time.sleep(self.settings.reschedule_retry_delay * 2 ** attempt)
            except Exception as e:
                # not a database error: no retry
                logger.error(f"Could not re-arm watch query {query_id}: {e}")
                break

        logger.critical(
            f"Watch query {query_id} could not be rescheduled; "
            "it stays idle until the next restart"
        )
