"""
Solar Ops Hub — Dashboard Pydantic Models
===========================================

Upstream record models (normalized once, at the source boundary) and the
immutable view model produced by every dashboard refresh.

Record models accept whatever the CRM returns. Every field is optional and
coerced leniently, so a single malformed record never fails a batch. View
models are strict: they serialize with camelCase aliases and reject
non-finite numbers.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from scripts.lib.errors import SchemaValidationError
from scripts.lib.utils import parse_ts, safe_float


def _text(value: Any) -> Optional[str]:
    """Non-empty string form of a scalar, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value != "":
        return value
    return None


def _identity(data: Mapping) -> Optional[str]:
    return _text(data.get("id")) or _text(data.get("_id"))


def _nested(data: Mapping, *path: str) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


# ─── Upstream Records ───────────────────────────────────────

class SourceRecord(BaseModel):
    """Base for normalized upstream records. Anything that isn't a mapping becomes an empty record."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        if not isinstance(data, Mapping):
            return {}
        return cls._from_raw(data)

    @classmethod
    def _from_raw(cls, data: Mapping) -> dict:
        raise NotImplementedError


class CustomerRecord(SourceRecord):
    """Customer as seen by the dashboard: identity and status only."""
    id: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def _from_raw(cls, data: Mapping) -> dict:
        return {"id": _identity(data), "status": _text(data.get("status"))}


class ProposalRecord(SourceRecord):
    """Proposal acceptance flags; neither flag set means pending."""
    id: Optional[str] = None
    accepted: bool = False
    rejected: bool = False

    @classmethod
    def _from_raw(cls, data: Mapping) -> dict:
        return {
            "id": _identity(data),
            "accepted": bool(data.get("accepted")),
            "rejected": bool(data.get("rejected")),
        }


class ProjectRecord(SourceRecord):
    """Installation project with the numeric and date fields the metrics need."""
    id: Optional[str] = None
    status: Optional[str] = None
    system_size: Optional[float] = None
    contract_value: Optional[float] = None
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @classmethod
    def _from_raw(cls, data: Mapping) -> dict:
        created = data.get("createdAt")
        if created is None:
            created = _nested(data, "dates", "createdAt")
        return {
            "id": _identity(data),
            "status": _text(data.get("status")),
            "system_size": safe_float(data.get("systemSize")),
            "contract_value": safe_float(_nested(data, "financials", "totalContractValue")),
            "created_at": parse_ts(created),
            "closed_at": parse_ts(_nested(data, "dates", "projectClosed")),
        }


class LeadRecord(SourceRecord):
    """Sales lead; upstream returns these newest-first."""
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    converted: bool = False

    @classmethod
    def _from_raw(cls, data: Mapping) -> dict:
        return {
            "id": _identity(data),
            "name": _text(data.get("name")),
            "email": _text(data.get("email")),
            "status": _text(data.get("status")),
            "created_at": parse_ts(data.get("createdAt")),
            "converted": bool(data.get("converted")),
        }


# ─── View Model ─────────────────────────────────────────────

class _ViewModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
    )


class EntityCount(_ViewModel):
    total: int = Field(ge=0)
    active: int = Field(ge=0)
    change_percent: float = 0


class ProjectStats(EntityCount):
    avg_completion_days: int = 0
    avg_value: int = 0
    avg_size: float = 0


class CapacityStats(_ViewModel):
    total: float
    change_percent: float = 0


class DashboardStats(_ViewModel):
    customers: EntityCount
    proposals: EntityCount
    projects: ProjectStats
    capacity: CapacityStats


class ProjectStatusBucket(_ViewModel):
    status: str
    count: int = Field(ge=0)
    color: str


class RecentLeadSummary(_ViewModel):
    id: str
    name: str
    email: str
    date: str
    status: str


class DashboardViewModel(_ViewModel):
    """Everything the dashboard renders, produced by one refresh cycle."""
    stats: DashboardStats
    project_statuses: Tuple[ProjectStatusBucket, ...]
    recent_leads: Tuple[RecentLeadSummary, ...]
    lead_conversion_rate: int = Field(ge=0, le=100)

    @classmethod
    def from_summary(cls, payload: Any) -> "DashboardViewModel":
        """
        Validate a combined-summary response body.

        Accepts the view model itself or the API envelope
        ``{"status": "success", "data": {...}}``.

        Raises:
            SchemaValidationError: If the payload isn't a complete view model.
        """
        if isinstance(payload, Mapping) and "stats" not in payload:
            inner = payload.get("data")
            if isinstance(inner, Mapping):
                payload = inner
        if not isinstance(payload, Mapping):
            raise SchemaValidationError(
                f"Dashboard summary must be an object, got {type(payload).__name__}",
            )
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise SchemaValidationError(
                f"Malformed dashboard summary ({e.error_count()} errors)",
                field=field or None,
            ) from e

    def to_payload(self) -> dict:
        """JSON-ready dict in the wire (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True)


# ─── Refresh Cycle ──────────────────────────────────────────

class RefreshState(str, Enum):
    IDLE = "Idle"
    LOADING = "Loading"
    READY = "Ready"
    FAILED = "Failed"


class RefreshResult(_ViewModel):
    """Outcome of one refresh cycle. Ready carries a view model, Failed an error message."""
    cycle_id: int
    state: RefreshState
    view_model: Optional[DashboardViewModel] = None
    error: Optional[str] = None
    source: Optional[str] = None
    degraded_sources: Tuple[str, ...] = ()
    started_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def duration_ms(self) -> Optional[int]:
        if self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds() * 1000)

    def summary(self) -> dict:
        """Cycle metadata without the view model body."""
        return {
            "cycleId": self.cycle_id,
            "state": self.state.value,
            "error": self.error,
            "source": self.source,
            "degradedSources": list(self.degraded_sources),
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "durationMs": self.duration_ms,
        }
