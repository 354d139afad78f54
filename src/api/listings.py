from __future__ import annotations

from datetime import datetime
from typing import Optional

import requests
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from src.crawlers.base import FetchInProgressError
from src.db.database import get_db, get_sync_db
from src.services.listings import trigger_fetch_now
from src.stores.listings import ListingQueryError, listings_statement

router = APIRouter(prefix="/api", tags=["listings"])


class ListingResponse(BaseModel):
    id: int
    title: str
    url: str
    description: str
    category: str
    created: datetime
    last_activity: datetime
    votes: int
    views: int
    comment_count: int
    dealer_name: Optional[str] = None
    savings_text: Optional[str] = None
    source_thread_id: Optional[str] = None
    image_url: Optional[str] = None

    model_config = {"from_attributes": True}


@router.get("/listings")
async def get_listings(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: str = Query("created"),
    page: int = Query(1),
    limit: int = Query(100),
    db: AsyncSession = Depends(get_db),
):
    try:
        stmt = listings_statement(category, search, sort, page, limit)
    except ListingQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = await db.execute(stmt)
    listings = result.scalars().all()
    return {
        "page": max(1, page),
        "count": len(listings),
        "items": [ListingResponse.model_validate(listing) for listing in listings],
    }


@router.post("/listings/fetch")
def fetch_listings_now(db: Session = Depends(get_sync_db)):
    try:
        new_listings = trigger_fetch_now(db)
    except FetchInProgressError:
        raise HTTPException(status_code=409, detail="A fetch is already in progress")
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Source fetch failed: {e}")

    return {
        "message": f"Successfully fetched {len(new_listings)} new listings",
        "count": len(new_listings),
        "items": [ListingResponse.model_validate(listing) for listing in new_listings],
    }
