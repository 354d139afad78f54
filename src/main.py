from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.api.router import api_router
from src.config import get_settings
from src.db.database import SessionLocal, init_db
from src.scheduler.runner import start_scheduler
from src.scheduler.watch_scheduler import WatchQueryScheduler

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Deal Watch starting")
    await init_db()

    # 計時器必須在接受任何 watch query 異動之前重建完成
    scheduler = start_scheduler()
    watch_scheduler = WatchQueryScheduler(scheduler, SessionLocal)
    armed = watch_scheduler.bootstrap()
    app.state.scheduler = scheduler
    app.state.watch_scheduler = watch_scheduler
    logger.info(f"Deal Watch ready with {armed} armed watch queries")

    try:
        yield
    finally:
        # 進行中的 webhook 不等待；重啟後由 next_run 補跑
        scheduler.shutdown(wait=False)
        logger.info("Deal Watch stopped")


def _allowed_origins() -> List[str]:
    if not settings.cors_origins:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


app = FastAPI(
    title="Deal Watch API",
    description="Deal listing ingestion with scheduled watch query webhooks",
    version="0.1.0",
    lifespan=lifespan,
    # interactive docs only outside production
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Owner-Id"],
)

app.include_router(api_router)


def require_admin(x_admin_key: str = Header(None)) -> None:
    if not settings.is_production:
        return
    if not settings.admin_api_key:
        raise HTTPException(status_code=503, detail="Admin API not configured")
    if x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid admin key")


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/api/admin/status", dependencies=[Depends(require_admin)])
async def admin_status(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    watch_scheduler = getattr(request.app.state, "watch_scheduler", None)

    jobs = []
    if scheduler is not None:
        jobs = [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time) if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ]

    return {
        "scheduler_running": bool(scheduler is not None and scheduler.running),
        "jobs": jobs,
        "scheduled_watch_queries": (
            len(watch_scheduler.scheduled_ids()) if watch_scheduler is not None else 0
        ),
    }
