from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from pricedrop.core.errors import MonitorBusyError, PriceDropError
from pricedrop.jobs.periodic import PeriodicTrigger

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class RunResultOut(BaseModel):
    checked: int
    notified: int
    failed: int = 0
    batches: int = 0


class TriggerResponse(BaseModel):
    ok: bool = True
    result: RunResultOut


class TriggerStatus(BaseModel):
    periodic_running: bool
    run_in_progress: bool
    interval_seconds: float
    runs: int
    last_result: RunResultOut | None = None


def get_trigger(request: Request) -> PeriodicTrigger:
    trigger = getattr(request.app.state, "trigger", None)
    if trigger is None:
        raise HTTPException(status_code=503, detail="monitor_not_configured")
    return trigger


@router.post("/trigger-notify", response_model=TriggerResponse)
async def trigger_notification(trigger: PeriodicTrigger = Depends(get_trigger)):
    try:
        result = await trigger.trigger_now()
    except MonitorBusyError:
        raise HTTPException(status_code=409, detail="monitor_busy")
    except PriceDropError as e:
        logger.error("admin.trigger_failed", error=str(e))
        raise HTTPException(status_code=500, detail="server_error")

    return TriggerResponse(result=RunResultOut(**result.as_dict()))


@router.get("/status", response_model=TriggerStatus)
def monitor_status(trigger: PeriodicTrigger = Depends(get_trigger)):
    last = trigger.last_result
    return TriggerStatus(
        periodic_running=trigger.is_running,
        run_in_progress=trigger.monitor.is_running,
        interval_seconds=trigger.interval_seconds,
        runs=trigger.runs,
        last_result=RunResultOut(**last.as_dict()) if last else None,
    )
