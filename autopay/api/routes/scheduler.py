"""Scheduler — manual tick trigger for operations and testing.

Invariants:
    - POST /tick runs the general tick then the conditional tick and returns both
      outcomes; it never raises (errors are reported in the summary)
"""

from fastapi import APIRouter, Depends

from autopay.api.dependencies import ticker
from autopay.schemas.schedule import TickSummary
from autopay.services.ticker import Ticker

router = APIRouter(prefix="/api/v1/scheduler", tags=["scheduler"])


@router.post("/tick", response_model=TickSummary)
async def trigger_tick(runner: Ticker = Depends(ticker)):
    return await runner.run_manual_tick()
