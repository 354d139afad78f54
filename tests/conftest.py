from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import src.models  # noqa: F401
from src.db.database import Base
from src.models import Listing, WatchQuery

T0 = datetime(2025, 3, 1, 12, 0, 0)


@pytest.fixture
def engine():
    # one shared connection so every session sees the same in-memory database
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def mock_scheduler():
    """Stand-in for an APScheduler scheduler: add_job returns a handle with the given id."""
    scheduler = MagicMock()

    def _add_job(func, trigger=None, **kwargs):
        job = MagicMock()
        job.id = kwargs.get("id")
        job.func = func
        job.trigger = trigger
        job.args = kwargs.get("args", [])
        return job

    scheduler.add_job.side_effect = _add_job
    return scheduler


def make_listing(
    session,
    title="Nintendo Switch OLED $50 off",
    url=None,
    created=T0,
    category="Gaming",
    description="",
    votes=0,
    views=0,
    comment_count=0,
):
    listing = Listing(
        url=url or f"https://forums.redflagdeals.com/{abs(hash((title, created)))}/",
        title=title,
        description=description,
        category=category,
        created=created,
        last_activity=created,
        votes=votes,
        views=views,
        comment_count=comment_count,
    )
    session.add(listing)
    session.commit()
    return listing


def make_watch_query(
    session,
    keywords=("nintendo",),
    categories=(),
    interval_minutes=60,
    next_run=T0,
    last_run=None,
    is_active=True,
    owner_id="user-1",
    name="Nintendo deals",
    webhook_url="https://example.test/hook",
):
    query = WatchQuery(
        owner_id=owner_id,
        name=name,
        keywords=list(keywords),
        categories=list(categories),
        interval_minutes=interval_minutes,
        webhook_url=webhook_url,
        is_active=is_active,
        last_run=last_run,
        next_run=next_run,
    )
    session.add(query)
    session.commit()
    return query
