import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from servicedesk.services import resolve_services

router = APIRouter()
logger = logging.getLogger(__name__)

_DB_CHECK_TIMEOUT_SECONDS = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    services = resolve_services(request.app)
    checks: dict[str, object] = {"services": services is not None}
    database_ok = False
    if services is not None:
        try:
            async with services.session_factory() as session:
                await asyncio.wait_for(session.execute(text("SELECT 1")), timeout=_DB_CHECK_TIMEOUT_SECONDS)
            database_ok = True
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            logger.warning("readyz_db_check_failed", extra={"extra": {"reason": type(exc).__name__}})
    checks["database"] = database_ok
    checks["realtime_listeners"] = services.broadcaster.listener_count if services is not None else 0
    ready = bool(checks["services"]) and database_ok
    return JSONResponse(status_code=200 if ready else 503, content={"ok": ready, "checks": checks})
