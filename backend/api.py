"""
DriftGuard API Endpoints
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from loguru import logger

from backend.deps import (
    get_event_log,
    get_netatmo,
    get_scheduler,
    get_settings,
    require_check_secret,
)
from core.driftguard.control_loop import run_check
from core.driftguard.event_log import EventLog
from core.driftguard.exceptions import VendorAPIError
from core.driftguard.netatmo_client import NetatmoClient
from core.driftguard.reset_handler import handle_reset
from core.driftguard.scheduler import ResetScheduler
from core.driftguard.settings import DriftGuardSettings

router = APIRouter()

SIGNATURE_HEADER = "Upstash-Signature"


@router.get("/health")
async def health_check():
    """Liveness endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/check", dependencies=[Depends(require_check_secret)])
def check(
    settings: DriftGuardSettings = Depends(get_settings),
    netatmo: NetatmoClient = Depends(get_netatmo),
    event_log: EventLog = Depends(get_event_log),
    scheduler: ResetScheduler = Depends(get_scheduler),
):
    """Run one drift check cycle over every thermostat."""
    try:
        summary = run_check(netatmo, event_log, scheduler, settings)
    except VendorAPIError as e:
        logger.error(f"Error during temperature check: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to check temperature", "details": str(e), "vendorStatus": e.status_code},
        )

    if summary.overages:
        logger.warning(f"⚠️ {summary.overages} overage(s) detected, resets scheduled")
    return summary.to_dict()


@router.post("/reset")
async def reset(
    request: Request,
    netatmo: NetatmoClient = Depends(get_netatmo),
    event_log: EventLog = Depends(get_event_log),
    scheduler: ResetScheduler = Depends(get_scheduler),
):
    """Phase-two reset callback delivered by QStash."""
    logger.info("Received reset callback")
    raw_body = (await request.body()).decode("utf-8", errors="replace")
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        return await run_in_threadpool(handle_reset, signature, raw_body, scheduler, netatmo, event_log)
    except VendorAPIError as e:
        logger.error(f"Error during reset: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to reset room", "details": str(e), "vendorStatus": e.status_code},
        )


@router.get("/events", dependencies=[Depends(require_check_secret)])
def list_events(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    event_log: EventLog = Depends(get_event_log),
):
    """Audit log, most recent first."""
    events = event_log.get_all_events(offset=offset, limit=limit)
    return {"offset": offset, "limit": limit, "events": [e.to_dict() for e in events]}


@router.get("/events/counts", dependencies=[Depends(require_check_secret)])
def event_counts(
    start: int | None = Query(None, description="Start timestamp (ms), defaults to 24 hours ago"),
    end: int | None = Query(None, description="End timestamp (ms), defaults to now"),
    event_log: EventLog = Depends(get_event_log),
):
    """Event counts by type in a time range."""
    return {"counts": event_log.get_event_counts(start, end)}
