"""
Solar Ops Hub — Dashboard Orchestrator
========================================
Builds the dashboard view model in one refresh cycle.

Paths:
    1. Summary  — the CRM's combined /api/reports/dashboard report, used as-is
                  when it validates as a complete view model.
    2. Sources  — otherwise fan out to the four source adapters concurrently,
                  join, then compute metrics and the recent-leads preview.

Failure contract:
    - Unavailable or malformed sources  → empty collection, cycle still Ready
    - Anything else raised while building → DashboardBuildError, cycle Failed

DashboardRefresher runs cycles and tracks Idle → Loading → Ready | Failed.
Concurrent cycles are independent; the newest cycle's result always wins.

Usage:
    refresher = DashboardRefresher(DashboardOrchestrator(SolarCRMClient()))
    result = await refresher.refresh()
    if result.state is RefreshState.READY:
        payload = result.view_model.to_payload()
"""
from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Set, Tuple

from dashboard.aggregation import metrics
from dashboard.aggregation.recency import recent_leads
from dashboard.aggregation.sources import NormalizedCollection, SourceAdapter, SourceKind
from models.dashboard_models import (
    CapacityStats,
    DashboardStats,
    DashboardViewModel,
    EntityCount,
    ProjectStats,
    RefreshResult,
    RefreshState,
)
from scripts.lib.errors import DashboardBuildError, HubError, SchemaValidationError
from scripts.lib.logger import setup_logger

logger = setup_logger("dashboard_orchestrator")

SOURCE_SUMMARY = "summary"
SOURCE_COMPOSED = "sources"


@dataclass(frozen=True)
class DashboardBuild:
    """A view model plus where it came from."""
    view_model: DashboardViewModel
    source: str
    degraded_sources: Tuple[str, ...] = ()


def compose_view_model(sources: Dict[SourceKind, NormalizedCollection]) -> DashboardViewModel:
    """Assemble the view model from one consistent snapshot of all four sources."""
    customers = sources[SourceKind.CUSTOMERS]
    proposals = sources[SourceKind.PROPOSALS]
    projects = sources[SourceKind.PROJECTS]
    leads = sources[SourceKind.LEADS]

    stats = DashboardStats(
        customers=EntityCount(total=len(customers), active=metrics.count_active(customers)),
        proposals=EntityCount(
            total=len(proposals), active=metrics.count_active_proposals(proposals),
        ),
        projects=ProjectStats(
            total=len(projects),
            active=metrics.count_active_projects(projects),
            avg_completion_days=metrics.average_completion_days(projects),
            avg_value=metrics.average_contract_value(projects),
            avg_size=metrics.average_system_size(projects),
        ),
        capacity=CapacityStats(total=metrics.total_capacity(projects)),
    )

    return DashboardViewModel(
        stats=stats,
        project_statuses=tuple(metrics.group_by_status(projects)),
        recent_leads=tuple(recent_leads(leads)),
        lead_conversion_rate=metrics.conversion_rate(leads),
    )


class DashboardOrchestrator:
    """Decides between the summary and the sources path and builds one view model."""

    def __init__(self, client, use_summary: bool = True):
        self.client = client
        self.use_summary = use_summary
        self.adapters: Dict[SourceKind, SourceAdapter] = {
            kind: SourceAdapter(kind, client) for kind in SourceKind
        }

    async def fetch_summary(self) -> Optional[DashboardViewModel]:
        """The combined report as a view model, or None to fall through to the sources path."""
        if not self.use_summary:
            return None
        try:
            payload = await self.client.get_dashboard_summary()
        except (HubError, OSError, asyncio.TimeoutError) as e:
            logger.info("Dashboard summary unavailable, composing from sources: %s", e)
            return None
        try:
            return DashboardViewModel.from_summary(payload)
        except SchemaValidationError as e:
            logger.info("Dashboard summary malformed, composing from sources: %s", e)
            return None

    async def collect_sources(self) -> Dict[SourceKind, NormalizedCollection]:
        """Fetch all sources concurrently and wait for every one of them to settle."""
        kinds = list(self.adapters)
        results = await asyncio.gather(*(self.adapters[kind].fetch() for kind in kinds))
        return dict(zip(kinds, results))

    async def build(self) -> DashboardBuild:
        """
        Run one aggregation cycle.

        Raises:
            DashboardBuildError: For any failure the adapters don't absorb.
        """
        try:
            summary = await self.fetch_summary()
            if summary is not None:
                logger.info("Dashboard built from combined summary")
                return DashboardBuild(view_model=summary, source=SOURCE_SUMMARY)

            sources = await self.collect_sources()
            degraded = tuple(kind.value for kind, coll in sources.items() if coll.degraded)
            if degraded:
                logger.warning("Dashboard built with degraded sources: %s", ", ".join(degraded))

            view_model = compose_view_model(sources)
            return DashboardBuild(
                view_model=view_model, source=SOURCE_COMPOSED, degraded_sources=degraded,
            )
        except DashboardBuildError:
            raise
        except Exception as e:
            logger.error("Dashboard build failed: %s", e, exc_info=True)
            raise DashboardBuildError(e) from e

    async def build_dashboard(self) -> DashboardViewModel:
        return (await self.build()).view_model


class DashboardRefresher:
    """
    Runs refresh cycles and keeps the newest finished result.

    Re-invoking while a cycle is in flight starts another independent cycle;
    nothing is cancelled or coalesced. A cycle that finishes after a newer
    one never replaces it.
    """

    def __init__(self, orchestrator: DashboardOrchestrator):
        self.orchestrator = orchestrator
        self._cycle_ids = itertools.count(1)
        self._in_flight: Set[int] = set()
        self._latest: Optional[RefreshResult] = None

    @property
    def latest(self) -> Optional[RefreshResult]:
        return self._latest

    @property
    def state(self) -> RefreshState:
        if self._in_flight:
            return RefreshState.LOADING
        if self._latest is None:
            return RefreshState.IDLE
        return self._latest.state

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def refresh(self) -> RefreshResult:
        cycle_id = next(self._cycle_ids)
        started_at = datetime.now(timezone.utc)
        start = time.time()
        self._in_flight.add(cycle_id)
        logger.info("Dashboard refresh #%d started", cycle_id)

        try:
            build = await self.orchestrator.build()
        except DashboardBuildError as e:
            result = RefreshResult(
                cycle_id=cycle_id,
                state=RefreshState.FAILED,
                error=str(e),
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )
            logger.error(
                "Dashboard refresh #%d failed in %.2fs: %s", cycle_id, time.time() - start, e,
            )
        else:
            result = RefreshResult(
                cycle_id=cycle_id,
                state=RefreshState.READY,
                view_model=build.view_model,
                source=build.source,
                degraded_sources=build.degraded_sources,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )
            logger.info(
                "Dashboard refresh #%d ready in %.2fs (%s)",
                cycle_id, time.time() - start, build.source,
            )
        finally:
            self._in_flight.discard(cycle_id)

        self._publish(result)
        return result

    def _publish(self, result: RefreshResult):
        if self._latest is not None and result.cycle_id < self._latest.cycle_id:
            logger.info(
                "Discarding refresh #%d — #%d already finished",
                result.cycle_id, self._latest.cycle_id,
            )
            return
        self._latest = result
