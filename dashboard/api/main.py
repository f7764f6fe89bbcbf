"""
Solar Ops Hub — API Server
============================

Serves the business dashboard aggregated from the Solar CRM API, with a
WebSocket live feed for refresh events.

Route groups:
  /api/health              - Health check
  /api/crm/status          - CRM integration + circuit breaker status
  /api/dashboard/*         - Aggregated dashboard view model and refresh cycles
  /ws/dashboard            - WebSocket live feed
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from dashboard.aggregation.orchestrator import DashboardOrchestrator, DashboardRefresher
from dashboard.api.routers.dashboard import router as dashboard_router
from dashboard.api.websocket import websocket_endpoint, ws_manager
from integrations.solar_crm import SolarCRMClient
from scripts.lib.logger import setup_logger

load_dotenv()

logger = setup_logger("solar_hub_api")

VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Solar Ops Hub...")

    if getattr(app.state, "crm", None) is None:
        app.state.crm = SolarCRMClient()
    status = "configured" if app.state.crm.is_configured else "not configured"
    logger.info("Solar CRM integration: %s", status)

    if getattr(app.state, "refresher", None) is None:
        app.state.refresher = DashboardRefresher(DashboardOrchestrator(app.state.crm))

    logger.info("Solar Ops Hub ready")
    yield
    logger.info("Shutting down Solar Ops Hub...")


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8001"
).split(",")

app = FastAPI(
    title="Solar Ops Hub",
    version=VERSION,
    description="Business dashboard for solar installation operations",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dashboard_router)
app.add_api_websocket_route("/ws/dashboard", websocket_endpoint)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check with service status."""
    crm = getattr(app.state, "crm", None)
    refresher = getattr(app.state, "refresher", None)

    return {
        "status": "healthy",
        "service": "Solar Ops Hub",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "solar_crm": bool(crm and crm.is_configured),
        },
        "dashboard_state": refresher.state.value if refresher else None,
        "websocket_connections": ws_manager.connection_count,
    }


@app.get("/api/crm/status", tags=["system"])
async def crm_status():
    """Solar CRM integration status, including circuit breakers."""
    crm = getattr(app.state, "crm", None)
    if crm is None:
        raise HTTPException(status_code=503, detail="Solar CRM integration not loaded")
    return crm.get_status()
