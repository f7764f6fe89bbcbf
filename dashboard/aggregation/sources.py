"""
Solar Ops Hub — Source Adapters
=================================
One adapter per upstream collection (customers, proposals, projects, leads).

An adapter turns whatever its endpoint returns into a NormalizedCollection of
typed records and never raises. A failed or malformed source contributes an
empty, ``degraded`` collection instead of failing the dashboard.

Usage:
    adapter = SourceAdapter(SourceKind.PROJECTS, client)
    projects = await adapter.fetch()
    if projects.degraded:
        ...
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Type

from pydantic import ValidationError

from models.dashboard_models import (
    CustomerRecord,
    LeadRecord,
    ProjectRecord,
    ProposalRecord,
    SourceRecord,
)
from scripts.lib.logger import setup_logger

logger = setup_logger("dashboard_sources")

ITEMS_KEY = "data"


class SourceKind(str, Enum):
    CUSTOMERS = "customers"
    PROPOSALS = "proposals"
    PROJECTS = "projects"
    LEADS = "leads"


@dataclass(frozen=True)
class SourceSpec:
    """How to call one source and what its records normalize into."""
    record_type: Type[SourceRecord]
    fetch_method: str
    params: Dict[str, Any] = field(default_factory=dict)
    unique_by_id: bool = False


SOURCE_SPECS: Dict[SourceKind, SourceSpec] = {
    SourceKind.CUSTOMERS: SourceSpec(CustomerRecord, "get_customers", {"limit": 1000}, unique_by_id=True),
    SourceKind.PROPOSALS: SourceSpec(ProposalRecord, "get_proposals", {"limit": 100}),
    SourceKind.PROJECTS: SourceSpec(ProjectRecord, "get_projects", {"limit": 100}),
    SourceKind.LEADS: SourceSpec(LeadRecord, "get_leads", {"limit": 100, "sort": "-createdAt"}),
}


@dataclass(frozen=True)
class NormalizedCollection:
    """Ordered, immutable records from one source."""
    kind: SourceKind
    items: Tuple[SourceRecord, ...] = ()
    degraded: bool = False

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[SourceRecord]:
        return iter(self.items)

    @classmethod
    def empty(cls, kind: SourceKind, degraded: bool = True) -> "NormalizedCollection":
        return cls(kind=kind, items=(), degraded=degraded)


def extract_items(body: Any, key: str = ITEMS_KEY) -> Optional[List[Any]]:
    """
    Pull the record list out of a response body.

    Returns None when the body is unusable (missing or null field, scalar);
    a single object under ``key`` is wrapped into a one-element list.
    """
    if not isinstance(body, Mapping):
        return None
    data = body.get(key)
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping):
        return [data]
    return None


def normalize_records(kind: SourceKind, raw_items: List[Any]) -> Tuple[SourceRecord, ...]:
    """Convert raw items to records; one bad item becomes an empty record, never an error."""
    spec = SOURCE_SPECS[kind]
    records: List[SourceRecord] = []
    seen_ids = set()

    for raw in raw_items:
        try:
            record = spec.record_type.model_validate(raw)
        except ValidationError as e:
            logger.debug("%s: unreadable record replaced with empty one: %s", kind.value, e)
            record = spec.record_type()

        if spec.unique_by_id and record.id is not None:
            if record.id in seen_ids:
                continue
            seen_ids.add(record.id)
        records.append(record)

    return tuple(records)


class SourceAdapter:
    """Fetches and normalizes one upstream collection. Stateless; safe to share."""

    def __init__(self, kind: SourceKind, client, params: Optional[Dict[str, Any]] = None):
        self.kind = SourceKind(kind)
        self.client = client
        self.params = dict(SOURCE_SPECS[self.kind].params)
        if params:
            self.params.update(params)

    async def fetch(self) -> NormalizedCollection:
        spec = SOURCE_SPECS[self.kind]
        try:
            body = await getattr(self.client, spec.fetch_method)(**self.params)
            raw_items = extract_items(body)
            if raw_items is None:
                logger.warning(
                    "%s source returned no '%s' list — using empty collection",
                    self.kind.value, ITEMS_KEY,
                )
                return NormalizedCollection.empty(self.kind)
            items = normalize_records(self.kind, raw_items)
        except Exception as e:
            logger.warning(
                "%s source unavailable — using empty collection: %s", self.kind.value, e,
            )
            return NormalizedCollection.empty(self.kind)

        logger.debug("%s source: %d records", self.kind.value, len(items))
        return NormalizedCollection(kind=self.kind, items=items, degraded=False)
