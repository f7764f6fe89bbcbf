"""
Solar Ops Hub — Dashboard Router
==================================
Serves the aggregated dashboard view model and drives refresh cycles.

Endpoints:
  GET  /api/dashboard          - Latest Ready view model (builds one on first call)
  POST /api/dashboard/refresh  - Run a new refresh cycle
  GET  /api/dashboard/status   - Refresh state and latest cycle metadata
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from dashboard.aggregation.orchestrator import DashboardRefresher
from dashboard.api.websocket import ws_manager
from models.dashboard_models import RefreshResult, RefreshState
from scripts.lib.logger import setup_logger

logger = setup_logger("dashboard_router")

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _refresher(request: Request) -> DashboardRefresher:
    refresher = getattr(request.app.state, "refresher", None)
    if refresher is None:
        raise HTTPException(status_code=503, detail="Dashboard engine not loaded")
    return refresher


async def _run_refresh(refresher: DashboardRefresher) -> RefreshResult:
    """Run one cycle and push the outcome to live-feed clients."""
    result = await refresher.refresh()
    event = "dashboard_refreshed" if result.state is RefreshState.READY else "dashboard_failed"
    await ws_manager.broadcast({"event": event, "data": result.summary()})
    return result


@router.get("")
async def get_dashboard(request: Request):
    """Latest dashboard view model."""
    refresher = _refresher(request)
    latest = refresher.latest
    if latest is None:
        latest = await _run_refresh(refresher)

    if latest.state is RefreshState.FAILED:
        raise HTTPException(status_code=503, detail=latest.error or "Dashboard refresh failed")
    return latest.view_model.to_payload()


@router.post("/refresh")
async def refresh_dashboard(request: Request):
    """Run a new refresh cycle and return its outcome."""
    result = await _run_refresh(_refresher(request))
    body = result.summary()

    if result.state is RefreshState.FAILED:
        return JSONResponse(status_code=503, content=body)

    body["dashboard"] = result.view_model.to_payload()
    return body


@router.get("/status")
async def dashboard_status(request: Request):
    """Refresh state machine status."""
    refresher = _refresher(request)
    latest = refresher.latest
    return {
        "state": refresher.state.value,
        "inFlight": refresher.in_flight,
        "latest": latest.summary() if latest else None,
    }
