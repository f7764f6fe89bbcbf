"""Tests for the dashboard metrics calculator."""

import math

import pytest

from dashboard.aggregation import metrics
from models.dashboard_models import CustomerRecord, LeadRecord, ProjectRecord, ProposalRecord


def customers(*raw):
    return [CustomerRecord.model_validate(r) for r in raw]


def proposals(*raw):
    return [ProposalRecord.model_validate(r) for r in raw]


def projects(*raw):
    return [ProjectRecord.model_validate(r) for r in raw]


def leads(*raw):
    return [LeadRecord.model_validate(r) for r in raw]


MIXED_PROJECTS = projects(
    {"status": "Planning", "systemSize": "6.2", "financials": {"totalContractValue": 18000}},
    {"status": "Complete", "systemSize": 9, "createdAt": "2024-01-01T00:00:00Z",
     "dates": {"projectClosed": "2024-02-15T00:00:00Z"}},
    None,
    {"status": "Cancelled", "systemSize": "not a number"},
    {"systemSize": "NaN", "financials": {"totalContractValue": "Infinity"}},
    {"status": "", "financials": None, "dates": "garbage"},
)


class TestCounts:
    def test_count_active_customers_is_exact_match(self):
        records = customers(
            {"status": "Active"}, {"status": "active"}, {"status": "Inactive"},
            {"status": "Active "}, {}, None,
        )
        assert metrics.count_active(records) == 1

    def test_count_active_proposals_counts_pending_only(self):
        records = proposals(
            {"accepted": True}, {"rejected": True}, {"accepted": False, "rejected": False},
            {}, {"accepted": True, "rejected": True}, {"status": "withdrawn"},
        )
        # "withdrawn" carries neither flag, so it still counts as active
        assert metrics.count_active_proposals(records) == 3

    def test_scenario_active_projects_excludes_complete_and_cancelled(self):
        records = projects({"status": "Complete"}, {"status": "Cancelled"}, {"status": "Installation"})
        assert metrics.count_active_projects(records) == 1

    def test_project_without_status_counts_as_active(self):
        assert metrics.count_active_projects(projects({}, None)) == 2

    @pytest.mark.parametrize("func, records", [
        (metrics.count_active, customers({"status": "Active"}, {"status": "Active"}, None)),
        (metrics.count_active_proposals, proposals({}, {}, {"accepted": True})),
        (metrics.count_active_projects, MIXED_PROJECTS),
        (metrics.count_active, []),
    ])
    def test_counts_are_bounded_by_collection_size(self, func, records):
        count = func(records)
        assert 0 <= count <= len(records)


class TestCapacity:
    def test_scenario_malformed_size_is_skipped(self):
        records = projects({"systemSize": "7.5"}, {"systemSize": "bad"}, {"systemSize": "2.5"})
        assert metrics.total_capacity(records) == 10.0
        assert metrics.average_system_size(records) == 5.0

    def test_non_finite_sizes_are_skipped(self):
        records = projects({"systemSize": "NaN"}, {"systemSize": "Infinity"}, {"systemSize": 4})
        assert metrics.total_capacity(records) == 4.0

    def test_adding_valid_project_never_decreases_capacity(self):
        base = projects({"systemSize": "3.3"}, {"systemSize": "bad"})
        before = metrics.total_capacity(base)
        after = metrics.total_capacity(base + projects({"systemSize": "0.1"}))
        assert after >= before

    def test_adding_malformed_project_leaves_capacity_unchanged(self):
        base = projects({"systemSize": "3.3"}, {"systemSize": 5})
        before = metrics.total_capacity(base)
        after = metrics.total_capacity(base + projects({"systemSize": "n/a"}, None, {}))
        assert after == before

    def test_float_noise_is_rounded_away(self):
        records = projects({"systemSize": 0.1}, {"systemSize": 0.2})
        assert metrics.total_capacity(records) == 0.3

    def test_empty_capacity_is_zero(self):
        assert metrics.total_capacity([]) == 0


class TestAverages:
    def test_average_system_size_rounds_to_one_decimal(self):
        records = projects({"systemSize": 7.5}, {"systemSize": "8"}, {"systemSize": -3}, {"systemSize": "x"})
        assert metrics.average_system_size(records) == 7.8

    def test_average_system_size_empty_is_zero(self):
        assert metrics.average_system_size(projects({"systemSize": "bad"})) == 0

    def test_average_contract_value_rounds_to_whole_units(self):
        records = projects(
            {"financials": {"totalContractValue": 30000}},
            {"financials": {"totalContractValue": "32450.5"}},
            {"financials": {"totalContractValue": "oops"}},
            {"financials": None},
            {},
        )
        assert metrics.average_contract_value(records) == 31225

    def test_average_contract_value_empty_is_zero(self):
        assert metrics.average_contract_value([]) == 0

    def test_average_completion_days_uses_ceiling_and_absolute_difference(self):
        records = projects(
            {"status": "Complete", "createdAt": "2024-01-01T00:00:00Z",
             "dates": {"projectClosed": "2024-01-11T12:00:00Z"}},   # 10.5 -> 11
            {"status": "Complete", "createdAt": "2024-03-10T00:00:00Z",
             "dates": {"projectClosed": "2024-03-01T00:00:00Z"}},   # inverted, 9
        )
        assert metrics.average_completion_days(records) == 10

    def test_average_completion_days_ignores_incomplete_or_undated(self):
        records = projects(
            {"status": "Installation", "createdAt": "2024-01-01",
             "dates": {"projectClosed": "2024-06-01"}},
            {"status": "Complete", "createdAt": "2024-01-01"},
            {"status": "Complete", "dates": {"projectClosed": "2024-06-01"}},
            {"status": "Complete", "createdAt": "not a date", "dates": {"projectClosed": "2024-06-01"}},
        )
        result = metrics.average_completion_days(records)
        assert result == 0
        assert math.isfinite(result)

    def test_created_date_falls_back_to_dates_block(self):
        records = projects({
            "status": "Complete",
            "dates": {"createdAt": "2024-05-01T00:00:00Z", "projectClosed": "2024-05-31T00:00:00Z"},
        })
        assert metrics.average_completion_days(records) == 30


class TestGroupByStatus:
    def test_buckets_in_first_occurrence_order_with_colors(self):
        records = projects(
            {"status": "Planning"}, {}, {"status": "Planning"}, {"status": "Warranty"},
            {"status": "Complete"},
        )
        buckets = metrics.group_by_status(records)
        assert [(b.status, b.count, b.color) for b in buckets] == [
            ("Planning", 2, "#42a5f5"),
            ("Unknown", 1, metrics.FALLBACK_COLOR),
            ("Warranty", 1, metrics.FALLBACK_COLOR),
            ("Complete", 1, "#4caf50"),
        ]

    def test_bucket_counts_sum_to_collection_size(self):
        buckets = metrics.group_by_status(MIXED_PROJECTS)
        assert sum(b.count for b in buckets) == len(MIXED_PROJECTS)

    def test_every_known_status_has_its_own_color(self):
        for status, color in metrics.STATUS_COLORS.items():
            assert metrics.status_color(status) == color
            assert color != metrics.FALLBACK_COLOR

    def test_unknown_bucket_uses_fallback_color(self):
        assert metrics.status_color(metrics.UNKNOWN_STATUS) == metrics.FALLBACK_COLOR

    def test_empty_input_has_no_buckets(self):
        assert metrics.group_by_status([]) == []


class TestConversionRate:
    def test_empty_leads_is_zero(self):
        assert metrics.conversion_rate([]) == 0

    def test_scenario_two_of_three_converted(self):
        records = leads({"converted": True}, {"converted": False}, {"converted": True})
        assert metrics.conversion_rate(records) == 67

    def test_half_rounds_up(self):
        records = leads({"converted": True}, *([{}] * 7))
        assert metrics.conversion_rate(records) == 13

    @pytest.mark.parametrize("converted, total", [(0, 5), (5, 5), (1, 3), (99, 100)])
    def test_rate_is_integer_percentage(self, converted, total):
        records = leads(*([{"converted": True}] * converted + [{}] * (total - converted)))
        rate = metrics.conversion_rate(records)
        assert isinstance(rate, int)
        assert 0 <= rate <= 100


class TestPurity:
    def test_repeated_calls_give_identical_results(self):
        first = (
            metrics.total_capacity(MIXED_PROJECTS),
            metrics.average_system_size(MIXED_PROJECTS),
            metrics.average_contract_value(MIXED_PROJECTS),
            metrics.average_completion_days(MIXED_PROJECTS),
            metrics.group_by_status(MIXED_PROJECTS),
        )
        second = (
            metrics.total_capacity(MIXED_PROJECTS),
            metrics.average_system_size(MIXED_PROJECTS),
            metrics.average_contract_value(MIXED_PROJECTS),
            metrics.average_completion_days(MIXED_PROJECTS),
            metrics.group_by_status(MIXED_PROJECTS),
        )
        assert first == second

    def test_mixed_input_yields_finite_numbers(self):
        values = [
            metrics.total_capacity(MIXED_PROJECTS),
            metrics.average_system_size(MIXED_PROJECTS),
            metrics.average_contract_value(MIXED_PROJECTS),
            metrics.average_completion_days(MIXED_PROJECTS),
        ]
        assert all(math.isfinite(v) for v in values)


class TestLargeValues:
    def test_huge_but_finite_size_does_not_break_averages(self):
        records = projects({"systemSize": 8}, {"systemSize": "1e30"})
        assert metrics.total_capacity(records) == 1e30
        assert metrics.average_system_size(records) == 5e29

    def test_huge_contract_value_averages_to_whole_number(self):
        records = projects({"financials": {"totalContractValue": "1e30"}})
        value = metrics.average_contract_value(records)
        assert isinstance(value, int)
        assert value == int(1e30)

    def test_capacity_beyond_float_range_is_zero(self):
        records = projects({"systemSize": 1e308}, {"systemSize": 1e308})
        assert metrics.total_capacity(records) == 0

    def test_average_near_float_limit_stays_finite(self):
        records = projects({"systemSize": 1e308}, {"systemSize": 1e308})
        result = metrics.average_system_size(records)
        assert math.isfinite(result)
        assert result == 1e308
