"""Tests for the allocation calculator."""

import pytest

from pnl_import.allocation import (
    benchmark_status,
    calculate_allocation,
    format_currency,
    gap_status,
    get_quarter_number,
    inputs_from_totals,
)
from pnl_import.models import DEFAULT_TARGETS, AllocationInputs, AllocationTargets, CategoryTotals, ReportedTotals


@pytest.fixture
def full_year_inputs():
    return AllocationInputs(
        quarter="Q4",
        revenue_ytd=400000,
        cogs=100000,
        profit_ytd=20000,
        draw_ytd=150000,
        tax_ytd=30000,
        total_expenses=380000,
    )


class TestCalculateAllocation:
    """Test cases for calculate_allocation."""

    def test_revenue_figures(self, full_year_inputs):
        result = calculate_allocation(full_year_inputs, DEFAULT_TARGETS)

        assert result.quarter_number == 4
        assert result.months_in_data == 12
        assert result.monthly_revenue == pytest.approx(400000 / 12)
        assert result.annual_revenue == pytest.approx(400000)
        assert result.per_transfer == pytest.approx(400000 / 24)
        assert result.real_revenue == 300000
        assert result.annual_real_revenue == pytest.approx(300000)
        assert result.has_data is True

    def test_transfers(self, full_year_inputs):
        result = calculate_allocation(full_year_inputs, DEFAULT_TARGETS)

        profit = result.buckets["profit"]
        assert profit.transfer == pytest.approx(400000 / 24 * 0.10)
        assert profit.annual == pytest.approx(40000)
        assert result.buckets["owner_pay"].annual == pytest.approx(200000)

    def test_gaps_and_statuses(self, full_year_inputs):
        result = calculate_allocation(full_year_inputs, DEFAULT_TARGETS)
        buckets = result.buckets

        assert buckets["profit"].current_pct == pytest.approx(20000 / 300000 * 100)
        assert buckets["profit"].gap == pytest.approx(20000 / 300000 * 100 - 10)
        assert buckets["profit"].status == "warning"
        assert buckets["owner_pay"].gap == pytest.approx(0)
        assert buckets["owner_pay"].status == "good"
        assert buckets["tax"].gap == pytest.approx(-5)
        assert buckets["tax"].status == "warning"
        assert buckets["opex"].current_pct == pytest.approx(100000 / 300000 * 100)
        assert buckets["opex"].status == "danger"

    def test_benchmarks(self, full_year_inputs):
        result = calculate_allocation(full_year_inputs, DEFAULT_TARGETS)

        assert {name: bucket.benchmark for name, bucket in result.buckets.items()} == {
            "profit": "on-track",
            "owner_pay": "good",
            "tax": "on-track",
            "opex": "review",
        }

    def test_impact(self, full_year_inputs):
        result = calculate_allocation(full_year_inputs, DEFAULT_TARGETS)

        assert result.buckets["profit"].impact == pytest.approx(-10000)
        assert result.buckets["opex"].impact == pytest.approx(25000)

    def test_only_opex_insight(self, full_year_inputs):
        result = calculate_allocation(full_year_inputs, DEFAULT_TARGETS)

        assert len(result.insights) == 1
        insight = result.insights[0]
        assert insight.bucket == "opex"
        assert insight.type == "danger"
        assert insight.title == "Operating expenses are $25,000 over target"

    def test_owner_pay_insights(self):
        low = AllocationInputs(revenue_ytd=100000, draw_ytd=10000, total_expenses=10000)
        high = AllocationInputs(revenue_ytd=100000, draw_ytd=80000, total_expenses=80000)

        low_insights = {i.bucket: i for i in calculate_allocation(low, DEFAULT_TARGETS).insights}
        high_insights = {i.bucket: i for i in calculate_allocation(high, DEFAULT_TARGETS).insights}

        assert low_insights["owner_pay"].type == "warning"
        assert low_insights["owner_pay"].title == "Your Owner's Pay is below target by $40,000"
        assert high_insights["owner_pay"].type == "info"
        assert high_insights["owner_pay"].title == "Your Owner's Pay exceeds target by $30,000"

    def test_profit_and_tax_insights(self):
        inputs = AllocationInputs(revenue_ytd=100000, draw_ytd=50000, total_expenses=50000)

        insights = {i.bucket: i for i in calculate_allocation(inputs, DEFAULT_TARGETS).insights}

        assert insights["profit"].title == "You're leaving $10,000/year on the table in PROFIT"
        assert insights["tax"].title == "Your TAX reserves are underfunded by $15,000"

    def test_no_revenue_has_no_data(self):
        result = calculate_allocation(AllocationInputs(), DEFAULT_TARGETS)

        assert result.has_data is False
        assert result.insights == []
        assert result.monthly_revenue == 0
        assert all(bucket.current_pct == 0 for bucket in result.buckets.values())

    def test_explicit_month_count(self):
        inputs = AllocationInputs(quarter="Q2", revenue_ytd=90000, month_count=3)

        result = calculate_allocation(inputs, DEFAULT_TARGETS)

        assert result.months_in_data == 3
        assert result.monthly_revenue == pytest.approx(30000)
        assert result.annual_revenue == pytest.approx(360000)
        # 12-month impact annualizes from the quarter, not the month count
        assert result.annual_real_revenue == pytest.approx(180000)

    def test_zero_months_never_divides(self):
        result = calculate_allocation(AllocationInputs(quarter="Q0", revenue_ytd=1000), DEFAULT_TARGETS)

        assert result.months_in_data == 0
        assert result.monthly_revenue == 0
        assert result.monthly_real_revenue == 0
        assert result.annual_real_revenue == 0

    def test_negative_opex_displays_as_zero(self):
        inputs = AllocationInputs(revenue_ytd=100000, draw_ytd=60000, tax_ytd=20000, total_expenses=50000)

        opex = calculate_allocation(inputs, DEFAULT_TARGETS).buckets["opex"]

        assert opex.current_pct == 0
        assert opex.gap == pytest.approx(-30 - 25)
        assert opex.status == "good"

    def test_custom_targets(self, full_year_inputs):
        targets = AllocationTargets(profit=5, owner_pay=50, tax=10, opex=35)

        result = calculate_allocation(full_year_inputs, targets)

        assert result.buckets["profit"].target_pct == 5
        assert result.buckets["profit"].status == "good"


def test_format_currency():
    assert format_currency(1234.6) == "$1,235"
    assert format_currency(-500) == "-$500"
    assert format_currency(0) == "$0"
    assert format_currency(1000000) == "$1,000,000"


@pytest.mark.parametrize(
    "quarter,expected",
    [("Q1", 1), ("Q2 2025", 2), ("FY25 Q3", 3), ("q3", 4), ("Q4", 4), (None, 4), ("annual", 4)],
)
def test_get_quarter_number(quarter, expected):
    assert get_quarter_number(quarter) == expected


@pytest.mark.parametrize(
    "gap,lower_is_better,expected",
    [
        (0, False, "good"),
        (-2, False, "good"),
        (-3, False, "warning"),
        (-5, False, "warning"),
        (-5.1, False, "danger"),
        (8, False, "good"),
        (2, True, "good"),
        (4, True, "warning"),
        (6, True, "danger"),
        (-10, True, "good"),
    ],
)
def test_gap_status(gap, lower_is_better, expected):
    assert gap_status(gap, lower_is_better) == expected


@pytest.mark.parametrize(
    "actual,target,lower_is_better,expected",
    [
        (12, 10, False, "good"),
        (7, 10, False, "on-track"),
        (4, 10, False, "review"),
        (20, 25, True, "good"),
        (28, 25, True, "on-track"),
        (31, 25, True, "review"),
    ],
)
def test_benchmark_status(actual, target, lower_is_better, expected):
    assert benchmark_status(actual, target, lower_is_better) == expected


def test_inputs_from_totals_uses_magnitudes():
    totals = CategoryTotals(
        gross_revenue=500000,
        materials_subs=-100000,
        owner_pay=120000,
        tax=20000,
        opex=-80000,
        exclude=9999,
    )

    inputs = inputs_from_totals(totals, quarter="Q3", month_count=9)

    assert inputs.quarter == "Q3"
    assert inputs.month_count == 9
    assert inputs.revenue_ytd == 500000
    assert inputs.cogs == 100000
    assert inputs.draw_ytd == 120000
    assert inputs.total_expenses == 320000
    assert inputs.profit_ytd == 180000


def test_inputs_from_totals_falls_back_to_reported_revenue():
    """A report with only a "Total Income" line still has revenue to allocate."""
    totals = CategoryTotals(materials_subs=120000, owner_pay=85000, opex=24000)

    inputs = inputs_from_totals(totals, reported=ReportedTotals(revenue=450000, net_profit=85000))

    assert inputs.revenue_ytd == 450000
    assert inputs.profit_ytd == 450000 - 120000 - 85000 - 24000
    assert calculate_allocation(inputs, DEFAULT_TARGETS).has_data is True


def test_mapped_revenue_beats_reported_revenue():
    totals = CategoryTotals(gross_revenue=100000)

    inputs = inputs_from_totals(totals, reported=ReportedTotals(revenue=450000))

    assert inputs.revenue_ytd == 100000
