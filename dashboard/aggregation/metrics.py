"""
Solar Ops Hub — Dashboard Metrics
===================================
Pure functions over normalized records: counts, sums, averages and the
project status breakdown.

Nothing here does I/O or keeps state, and nothing raises on a bad record:
a field that failed to parse is None on the record and is simply left out
of the computation it would have poisoned. Every result is finite.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Sequence

from models.dashboard_models import (
    CustomerRecord,
    LeadRecord,
    ProjectRecord,
    ProjectStatusBucket,
    ProposalRecord,
)
from scripts.lib.utils import days_between, round_half_up

ACTIVE_CUSTOMER_STATUS = "Active"
COMPLETE_STATUS = "Complete"
CANCELLED_STATUS = "Cancelled"
UNKNOWN_STATUS = "Unknown"

STATUS_COLORS: Dict[str, str] = {
    "Planning": "#42a5f5",
    "Design": "#673ab7",
    "Permitting": "#9c27b0",
    "Installation": "#ff9800",
    "Inspection": "#ab47bc",
    COMPLETE_STATUS: "#4caf50",
    CANCELLED_STATUS: "#f44336",
}
FALLBACK_COLOR = "#9e9e9e"


def _finite_sum(values: Sequence[float]) -> Optional[float]:
    """Exact float sum, or None when it would leave the float range."""
    try:
        total = math.fsum(values)
    except OverflowError:
        return None
    return total if math.isfinite(total) else None


def _mean(values: Sequence[float]) -> Optional[float]:
    """Arithmetic mean, or None for an empty input (never divides by zero)."""
    if not values:
        return None
    total = _finite_sum(values)
    if total is not None:
        return total / len(values)
    # scale first so values near the float limit can't overflow the sum
    return _finite_sum([v / len(values) for v in values])


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, FALLBACK_COLOR)


# ─── Counts ─────────────────────────────────────────────────

def count_active(customers: Iterable[CustomerRecord]) -> int:
    """Customers whose status is exactly "Active"."""
    return sum(1 for c in customers if c.status == ACTIVE_CUSTOMER_STATUS)


def count_active_proposals(proposals: Iterable[ProposalRecord]) -> int:
    """Proposals still pending: neither accepted nor rejected."""
    return sum(1 for p in proposals if not p.accepted and not p.rejected)


def count_active_projects(projects: Iterable[ProjectRecord]) -> int:
    """Projects not yet closed out as Complete or Cancelled."""
    return sum(
        1 for p in projects if p.status not in (COMPLETE_STATUS, CANCELLED_STATUS)
    )


# ─── Capacity & Averages ────────────────────────────────────

def total_capacity(projects: Iterable[ProjectRecord]) -> float:
    """
    Sum of installed system sizes (kW); unparseable sizes are skipped, not zeroed.

    A total beyond the float range is reported as 0.
    """
    sizes = [p.system_size for p in projects if p.system_size is not None]
    total = _finite_sum(sizes)
    return round_half_up(total, 2) if total is not None else 0.0


def average_system_size(projects: Iterable[ProjectRecord]) -> float:
    sizes = [
        p.system_size for p in projects
        if p.system_size is not None and p.system_size >= 0
    ]
    mean = _mean(sizes)
    return round_half_up(mean, 1) if mean is not None else 0.0


def average_contract_value(projects: Iterable[ProjectRecord]) -> int:
    values = [p.contract_value for p in projects if p.contract_value is not None]
    mean = _mean(values)
    return int(round_half_up(mean)) if mean is not None else 0


def average_completion_days(projects: Iterable[ProjectRecord]) -> int:
    """
    Mean days from creation to close across completed projects.

    Each project contributes ``ceil(|closed - created|)`` days, so a closed
    date entered before the created date still yields a positive duration.
    Projects missing either date are excluded.
    """
    durations: List[float] = []
    for p in projects:
        if p.status != COMPLETE_STATUS:
            continue
        days = days_between(p.created_at, p.closed_at)
        if days is None:
            continue
        durations.append(math.ceil(days))

    mean = _mean(durations)
    return int(round_half_up(mean)) if mean is not None else 0


# ─── Breakdown & Rates ──────────────────────────────────────

def group_by_status(projects: Iterable[ProjectRecord]) -> List[ProjectStatusBucket]:
    """
    One bucket per distinct status, in order of first occurrence.

    Missing statuses land in "Unknown"; bucket counts always add up to the
    number of projects.
    """
    counts: Dict[str, int] = {}
    for p in projects:
        status = p.status or UNKNOWN_STATUS
        counts[status] = counts.get(status, 0) + 1

    return [
        ProjectStatusBucket(status=status, count=count, color=status_color(status))
        for status, count in counts.items()
    ]


def conversion_rate(leads: Sequence[LeadRecord]) -> int:
    """Whole-number percentage of converted leads; 0 when there are none."""
    total = len(leads)
    if total == 0:
        return 0
    converted = sum(1 for lead in leads if lead.converted)
    return int(round_half_up(converted / total * 100))
