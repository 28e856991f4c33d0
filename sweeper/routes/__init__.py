"""
API Routes — cleanup trigger, health.
"""

import logging
import secrets

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from sweeper.config import settings
from sweeper.schemas import HealthResponse, render_sweep
from sweeper.services.runner import SweepAlreadyRunning, execute_sweep

logger = logging.getLogger(__name__)

router = APIRouter()


def _presented_token(request: Request) -> str:
    token = request.headers.get("x-auth-token", "")
    if token:
        return token
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return ""


# ── Health ──────────────────────────────────────────────

@router.get("/", include_in_schema=False)
async def root():
    return PlainTextResponse("Service is up")


@router.get("/healthz", response_model=HealthResponse, tags=["system"])
async def healthz(request: Request):
    stores = getattr(request.app.state, "stores", None) or []
    instances = {s.label: s.is_ready() for s in stores}
    ready = bool(instances) and all(instances.values())
    lock = getattr(request.app.state, "sweep_lock", None)
    body = HealthResponse(
        ok=ready,
        dbReady=ready,
        instances=instances,
        sweepRunning=bool(lock and lock.is_running),
    )
    return JSONResponse(body.model_dump(), status_code=200 if ready else 503)


# ── Cleanup trigger ─────────────────────────────────────
# Mounted in main.py at settings.effective_trigger_path (GET and POST).

async def cleanup(request: Request):
    if settings.auth_token and not secrets.compare_digest(
        _presented_token(request).encode("utf-8"), settings.auth_token.encode("utf-8")
    ):
        logger.warning("Rejected cleanup trigger from %s — bad token",
                       request.client.host if request.client else "unknown")
        return JSONResponse({"ok": False, "error": "unauthorized"}, status_code=401)

    stores = getattr(request.app.state, "stores", None)
    lock = getattr(request.app.state, "sweep_lock", None)
    if not stores or lock is None:
        return JSONResponse({"ok": False, "error": "store not initialized"}, status_code=503)

    try:
        payload = await execute_sweep(stores, settings, lock, trigger="http")
    except SweepAlreadyRunning as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=409)
    except Exception as e:
        logger.exception("Cleanup failed")
        return JSONResponse({"ok": False, "error": str(e)}, status_code=500)

    return JSONResponse(render_sweep(payload))
