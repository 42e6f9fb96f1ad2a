"""
REST endpoints for the monitoring session.
"""
from typing import List
import logging

from fastapi import APIRouter, HTTPException, Query

from instructor.config import Settings
from instructor.errors import StartupResourceError
from instructor.models import LogRecord, StatusSnapshot
from instructor.monitor import MonitoringSession


router = APIRouter(prefix="/monitor")
settings = Settings()
session = MonitoringSession(settings)
logger = logging.getLogger(__name__)


@router.post("/start")
def monitor_start():
    """
    Acquire models and start the 5-second monitoring loop.

    Returns:
        dict: {"status": "started" | "already_running"}

    Raises:
        HTTPException(503): a cascade or model resource could not be acquired.
    """
    logger.debug("[api] /monitor/start")
    try:
        started = session.start()
    except StartupResourceError as e:
        logger.error(f"[api] start failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {"status": "started" if started else "already_running"}


@router.post("/stop")
def monitor_stop():
    if not session.stop():
        return {"status": "not_running"}
    return {"status": "stopped"}


@router.get("/status", response_model=StatusSnapshot)
def monitor_status():
    return session.status()


@router.get("/log", response_model=List[LogRecord])
def monitor_log(limit: int | None = Query(None, ge=0)):
    """Newest-first operator log, optionally truncated to `limit` records."""
    return session.records(limit)


@router.post("/log/clear")
def monitor_clear_log():
    session.clear_log()
    return {"status": "cleared"}


@router.post("/alert/acknowledge")
def monitor_acknowledge_alert():
    session.acknowledge_alert()
    return {"status": "acknowledged"}


@router.post("/logging/detailed")
def monitor_toggle_detailed_logging():
    return {"detailed_logging": session.toggle_detailed_logging()}
