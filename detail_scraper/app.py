"""
Status API for the detail scraper: backlog progress, active leases and
manual lease recovery.
"""
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from detail_scraper.config import LEASE_TTL_SECONDS
from detail_scraper.coordinator import ClaimCoordinator
from detail_scraper.database import build_engine, build_session_factory
from detail_scraper.errors import StoreUnavailable
from detail_scraper.repository import GameRepository

logger = logging.getLogger(__name__)

app = FastAPI(title="Detail Scraper Service", version="1.0.0")


class ReleaseResponse(BaseModel):
    released: int


class SweepRequest(BaseModel):
    ttl_seconds: Optional[int] = None


class LeaseInfo(BaseModel):
    id: int
    name: str
    lease_owner: str
    lease_at: Optional[str] = None


@lru_cache
def get_session_factory() -> sessionmaker:
    return build_session_factory(build_engine())


def get_coordinator(session_factory: sessionmaker = Depends(get_session_factory)) -> ClaimCoordinator:
    return ClaimCoordinator(session_factory)


def get_repository(session_factory: sessionmaker = Depends(get_session_factory)) -> GameRepository:
    return GameRepository(session_factory)


@app.get("/")
def root():
    return {"service": "Detail Scraper Service", "version": "1.0.0"}


@app.get("/health")
def health(session_factory: sessionmaker = Depends(get_session_factory)):
    db = session_factory()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
    finally:
        db.close()


@app.get("/stats")
def stats(repository: GameRepository = Depends(get_repository)) -> Dict[str, int]:
    try:
        return repository.get_stats()
    except StoreUnavailable as e:
        logger.error(f"Failed to get stats: {str(e)}")
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/leases", response_model=List[LeaseInfo])
def leases(repository: GameRepository = Depends(get_repository)) -> List[Dict[str, Any]]:
    try:
        return repository.list_leases()
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/leases/release", response_model=ReleaseResponse)
def release_all(coordinator: ClaimCoordinator = Depends(get_coordinator)):
    """
    Release every lease. Only safe while no workers are running.
    """
    try:
        return ReleaseResponse(released=coordinator.release_all())
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/leases/release/{worker_id}", response_model=ReleaseResponse)
def release_worker(worker_id: str, coordinator: ClaimCoordinator = Depends(get_coordinator)):
    try:
        return ReleaseResponse(released=coordinator.release_worker(worker_id))
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/leases/sweep", response_model=ReleaseResponse)
def sweep(request: SweepRequest, coordinator: ClaimCoordinator = Depends(get_coordinator)):
    ttl = request.ttl_seconds if request.ttl_seconds is not None else LEASE_TTL_SECONDS
    if ttl <= 0:
        raise HTTPException(status_code=400, detail="ttl_seconds must be positive")
    try:
        return ReleaseResponse(released=coordinator.release_expired(ttl))
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    from detail_scraper.config import API_HOST, API_PORT

    uvicorn.run("detail_scraper.app:app", host=API_HOST, port=API_PORT)
