from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.db.database import get_sync_db
from src.scheduler.watch_scheduler import WatchQueryScheduler
from src.services import watch_queries as service

router = APIRouter(prefix="/api/queries", tags=["watch-queries"])


class WatchQueryCreate(BaseModel):
    name: str
    keywords: List[str]
    categories: Optional[List[str]] = None
    interval_minutes: int
    webhook_url: str


class WatchQueryUpdate(BaseModel):
    name: Optional[str] = None
    keywords: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    interval_minutes: Optional[int] = None
    webhook_url: Optional[str] = None
    is_active: Optional[bool] = None


class WatchQueryResponse(BaseModel):
    id: str
    name: str
    keywords: List[str]
    categories: List[str]
    interval_minutes: int
    webhook_url: str
    is_active: bool
    last_run: Optional[datetime] = None
    next_run: datetime

    model_config = {"from_attributes": True}


def get_watch_scheduler(request: Request) -> WatchQueryScheduler:
    scheduler = getattr(request.app.state, "watch_scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not running")
    return scheduler


def get_owner_id(x_owner_id: str = Header(None)) -> str:
    # Identity comes from the upstream auth layer.
    if not x_owner_id:
        raise HTTPException(status_code=401, detail="Missing owner")
    return x_owner_id


@router.post("", status_code=201, response_model=WatchQueryResponse)
def create_query(
    body: WatchQueryCreate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_sync_db),
    scheduler: WatchQueryScheduler = Depends(get_watch_scheduler),
):
    try:
        return service.create_watch_query(
            db,
            scheduler,
            owner_id,
            name=body.name,
            keywords=body.keywords,
            categories=body.categories,
            interval_minutes=body.interval_minutes,
            webhook_url=body.webhook_url,
        )
    except service.WatchQueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=List[WatchQueryResponse])
def list_queries(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_sync_db)):
    return service.list_watch_queries(db, owner_id)


@router.get("/{query_id}", response_model=WatchQueryResponse)
def get_query(
    query_id: str, owner_id: str = Depends(get_owner_id), db: Session = Depends(get_sync_db)
):
    try:
        return service.get_watch_query(db, query_id, owner_id)
    except service.WatchQueryNotFoundError:
        raise HTTPException(status_code=404, detail="Query not found")


@router.put("/{query_id}", response_model=WatchQueryResponse)
def update_query(
    query_id: str,
    body: WatchQueryUpdate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_sync_db),
    scheduler: WatchQueryScheduler = Depends(get_watch_scheduler),
):
    try:
        return service.update_watch_query(
            db, scheduler, query_id, owner_id, **body.model_dump(exclude_unset=True)
        )
    except service.WatchQueryNotFoundError:
        raise HTTPException(status_code=404, detail="Query not found")
    except service.WatchQueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{query_id}", status_code=204)
def delete_query(
    query_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_sync_db),
    scheduler: WatchQueryScheduler = Depends(get_watch_scheduler),
):
    try:
        service.delete_watch_query(db, scheduler, query_id, owner_id)
    except service.WatchQueryNotFoundError:
        raise HTTPException(status_code=404, detail="Query not found")
