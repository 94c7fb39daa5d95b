"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from bountytriage import __version__
from bountytriage.errors.exceptions import QueueUnavailableError

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "bounty-triage", "version": __version__}


@router.get("/health/live")
async def liveness():
    """Liveness probe: 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness probe: checks the database and the queue store."""
    checks: dict[str, str] = {}
    overall_ok = True

    try:
        session_factory = request.app.state.db_session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"
        overall_ok = False

    queue = getattr(request.app.state, "triage_queue", None)
    if queue is not None:
        try:
            await queue.store.ping()
            checks["queue"] = "ok"
        except QueueUnavailableError as exc:
            checks["queue"] = f"error: {exc.message}"
            overall_ok = False
    else:
        checks["queue"] = "disabled"
        overall_ok = False

    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content={"status": "ready" if overall_ok else "not_ready", "checks": checks},
    )
