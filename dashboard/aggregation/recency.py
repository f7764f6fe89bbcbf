"""
Recent-leads preview for the dashboard.

Takes the first ``limit`` leads as delivered. The leads source is requested
newest-first (``sort=-createdAt``) and no re-sorting happens here.
"""
from __future__ import annotations

from datetime import timezone
from itertools import islice
from typing import Iterable, List, Optional

from models.dashboard_models import LeadRecord, RecentLeadSummary

RECENT_LEADS_LIMIT = 3

PLACEHOLDER_ID = "0"
PLACEHOLDER_NAME = "Unknown"
PLACEHOLDER_EMAIL = "No email"
PLACEHOLDER_STATUS = "New"
PLACEHOLDER_DATE = "Unknown date"

# Rendered in UTC, e.g. "Mar 05, 2024"
DATE_FORMAT = "%b %d, %Y"


def summarize_lead(lead: Optional[LeadRecord]) -> RecentLeadSummary:
    if lead is None:
        lead = LeadRecord()
    return RecentLeadSummary(
        id=lead.id or PLACEHOLDER_ID,
        name=lead.name or PLACEHOLDER_NAME,
        email=lead.email or PLACEHOLDER_EMAIL,
        date=(
            lead.created_at.astimezone(timezone.utc).strftime(DATE_FORMAT)
            if lead.created_at else PLACEHOLDER_DATE
        ),
        status=lead.status or PLACEHOLDER_STATUS,
    )


def recent_leads(
    leads: Iterable[Optional[LeadRecord]], limit: int = RECENT_LEADS_LIMIT,
) -> List[RecentLeadSummary]:
    return [summarize_lead(lead) for lead in islice(leads, max(0, limit))]
