from fastapi import APIRouter

from src.api.listings import router as listings_router
from src.api.watch_queries import router as watch_queries_router

api_router = APIRouter()
api_router.include_router(listings_router)
api_router.include_router(watch_queries_router)
