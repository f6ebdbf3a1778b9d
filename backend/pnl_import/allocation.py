"""
Cash-flow allocation and gap analysis.

Given year-to-date figures and target percentages for the four allocation
buckets (profit, owner's pay, tax, operating expenses) this computes:

- the bi-monthly transfer per bucket (two transfers a month) and its annual sum
- each bucket's current share of real revenue (revenue less materials/COGS)
- the gap to target, a good/warning/danger status and the 12-month dollar impact
- plain-language insights for the gaps that matter

Revenue figures are annualized from the number of months in the data; the
12-month impact is annualized from the quarter (real revenue x 4 / quarter).
The two bases differ whenever the imported month count does not match the
selected quarter; both are reported on the result.
"""

import logging
import re
from typing import Dict, List, Optional

from .models import (
    AllocationInputs,
    AllocationResult,
    AllocationTargets,
    BucketAllocation,
    CategoryTotals,
    Insight,
    ReportedTotals,
)

logger = logging.getLogger(__name__)

TRANSFERS_PER_MONTH = 2
TRANSFERS_PER_YEAR = TRANSFERS_PER_MONTH * 12

GOOD_BAND = 2
WARNING_BAND = 5
INSIGHT_THRESHOLD = 5

BUCKETS = ["profit", "owner_pay", "tax", "opex"]


def format_currency(value: float) -> str:
    """Whole-dollar currency text: 1234.5 -> "$1,235", -500 -> "-$500"."""
    rounded = round(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.0f}"


def get_quarter_number(quarter: Optional[str]) -> int:
    """Quarter from labels like "Q2" or "FY25 Q3"; a lower-case "q" or no quarter means Q4."""
    match = re.search(r"Q(\d)", quarter or "")
    return int(match.group(1)) if match else 4


def gap_status(gap: float, lower_is_better: bool = False) -> str:
    if lower_is_better:
        if gap <= GOOD_BAND:
            return "good"
        if gap <= WARNING_BAND:
            return "warning"
        return "danger"
    if gap >= -GOOD_BAND:
        return "good"
    if gap >= -WARNING_BAND:
        return "warning"
    return "danger"


def benchmark_status(actual: float, target: float, lower_is_better: bool = False) -> str:
    """Status of a bucket against a target: "good", "on-track" (within 5 points) or "review"."""
    diff = target - actual if lower_is_better else actual - target
    if diff >= 0:
        return "good"
    if diff >= -WARNING_BAND:
        return "on-track"
    return "review"


def _safe_divide(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def build_insights(buckets: Dict[str, BucketAllocation]) -> List[Insight]:
    """Independent rules; every one that fires adds an insight."""
    insights: List[Insight] = []

    profit = buckets["profit"]
    if profit.gap < -INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="danger",
                bucket="profit",
                title=f"You're leaving {format_currency(abs(profit.impact))}/year on the table in PROFIT",
                description=(
                    "This could fund a Solo 401(k) + Cash Balance Plan for "
                    "tax-deferred retirement savings."
                ),
                action="Review Solo 401(k) and Cash Balance Plan strategies",
            )
        )

    owner = buckets["owner_pay"]
    if owner.gap < -INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="warning",
                bucket="owner_pay",
                title=f"Your Owner's Pay is below target by {format_currency(abs(owner.impact))}",
                description="Risk: IRS may consider you underpaid, increasing audit risk for S-Corps.",
                action="Review Reasonable Compensation",
            )
        )
    elif owner.gap > INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="info",
                bucket="owner_pay",
                title=f"Your Owner's Pay exceeds target by {format_currency(owner.impact)}",
                description=(
                    "You may be overpaying payroll taxes. Consider shifting to "
                    "distributions after reasonable comp."
                ),
                action="Review Reasonable Compensation",
            )
        )

    tax = buckets["tax"]
    if tax.gap < -INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="warning",
                bucket="tax",
                title=f"Your TAX reserves are underfunded by {format_currency(abs(tax.impact))}",
                description="Risk: You may scramble at tax time or miss PTET election opportunities.",
                action="Build reserves for the PTET election",
            )
        )

    opex = buckets["opex"]
    if opex.gap > INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="danger",
                bucket="opex",
                title=f"Operating expenses are {format_currency(opex.impact)} over target",
                description="Review expenses for optimization opportunities and potential deductions.",
                action="See Accountable Plan and Depreciation strategies",
            )
        )

    return insights


def calculate_allocation(inputs: AllocationInputs, targets: AllocationTargets) -> AllocationResult:
    """
    Compute transfers, current percentages, gaps and impacts.

    Args:
        inputs: Year-to-date figures; missing values count as zero
        targets: Target percentage of real revenue per bucket

    Returns:
        AllocationResult; insights are only produced when there is revenue
    """
    quarter_number = get_quarter_number(inputs.quarter)
    revenue = inputs.revenue_ytd or 0.0
    cogs = inputs.cogs or 0.0
    profit = inputs.profit_ytd or 0.0
    draw = inputs.draw_ytd or 0.0
    tax = inputs.tax_ytd or 0.0
    expenses = inputs.total_expenses or 0.0

    months_in_data = inputs.month_count or quarter_number * 3

    monthly_revenue = _safe_divide(revenue, months_in_data)
    annual_revenue = monthly_revenue * 12
    per_transfer = monthly_revenue / TRANSFERS_PER_MONTH

    real_revenue = revenue - cogs
    monthly_real_revenue = _safe_divide(real_revenue, months_in_data)
    annual_real_revenue = real_revenue * (4 / quarter_number) if quarter_number else 0.0

    current = {
        "profit": _safe_divide(profit, real_revenue) * 100,
        "owner_pay": _safe_divide(draw, real_revenue) * 100,
        "tax": _safe_divide(tax, real_revenue) * 100,
        "opex": _safe_divide(expenses - cogs - draw - tax, real_revenue) * 100,
    }
    target_values = {
        "profit": targets.profit,
        "owner_pay": targets.owner_pay,
        "tax": targets.tax,
        "opex": targets.opex,
    }

    buckets: Dict[str, BucketAllocation] = {}
    for bucket in BUCKETS:
        transfer = per_transfer * (target_values[bucket] / 100)
        gap = current[bucket] - target_values[bucket]
        lower_is_better = bucket == "opex"
        current_pct = max(0.0, current[bucket]) if lower_is_better else current[bucket]
        buckets[bucket] = BucketAllocation(
            transfer=transfer,
            annual=transfer * TRANSFERS_PER_YEAR,
            # Negative opex (expenses below cogs + draw + tax) displays as 0; the gap keeps the raw value
            current_pct=current_pct,
            target_pct=target_values[bucket],
            gap=gap,
            status=gap_status(gap, lower_is_better),
            impact=(gap / 100) * annual_real_revenue,
            benchmark=benchmark_status(current_pct, target_values[bucket], lower_is_better),
        )

    has_data = revenue > 0
    return AllocationResult(
        quarter_number=quarter_number,
        months_in_data=months_in_data,
        monthly_revenue=monthly_revenue,
        annual_revenue=annual_revenue,
        per_transfer=per_transfer,
        real_revenue=real_revenue,
        monthly_real_revenue=monthly_real_revenue,
        annual_real_revenue=annual_real_revenue,
        buckets=buckets,
        insights=build_insights(buckets) if has_data else [],
        has_data=has_data,
    )


def inputs_from_totals(
    totals: CategoryTotals,
    quarter: str = "Q4",
    month_count: Optional[int] = None,
    reported: Optional[ReportedTotals] = None,
) -> AllocationInputs:
    """
    Year-to-date allocation inputs from applied category totals.

    Expense-side categories are taken as magnitudes so reports that export
    costs as negatives and reports that export them as positives agree.
    When no account is mapped to gross revenue (a report that only shows
    "Total Income"), the report's own revenue figure is used instead.
    """
    revenue = totals.gross_revenue
    if revenue == 0 and reported is not None and reported.revenue:
        logger.info("No gross revenue mapped; using reported revenue %s", format_currency(reported.revenue))
        revenue = reported.revenue

    cogs = abs(totals.materials_subs)
    draw = abs(totals.owner_pay)
    tax = abs(totals.tax)
    opex = abs(totals.opex)
    real_revenue = revenue - cogs
    return AllocationInputs(
        quarter=quarter,
        revenue_ytd=revenue,
        cogs=cogs,
        draw_ytd=draw,
        tax_ytd=tax,
        total_expenses=cogs + draw + tax + opex,
        profit_ytd=real_revenue - draw - tax - opex,
        month_count=month_count,
    )
