"""
Project finance rollup.

Turns time entries and owner-entered settings into the KPI figures shown
for a project. Everything here is a pure function of its inputs and is
recomputed on every read.
"""

from collections.abc import Iterable
from decimal import Decimal

from core.models.project_kpi import (
    SECONDS_PER_HOUR, FinanceStats, ProjectKpiSettings, TimeEntry, TimeEntryAggregate, TimeStats,
)
from core.money import HUNDRED, Money, round_decimal

UNKNOWN_EMPLOYEE = "Unknown"


def aggregate_time_entries(entries: Iterable[TimeEntry]) -> list[TimeEntryAggregate]:
    """
    Group time entries by employee.

    Entries without a countable duration are skipped. The hourly rate of the
    last entry seen for an employee wins, a missing rate counts as zero.

    Returns:
        One aggregate per employee, in first-seen order
    """
    seconds: dict = {}
    names: dict = {}
    rates: dict = {}

    for entry in entries:
        worked = entry.seconds
        if worked is None:
            continue
        key = entry.employee_id
        seconds[key] = seconds.get(key, Decimal("0")) + worked
        if entry.employee_name or key not in names:
            names[key] = entry.employee_name or UNKNOWN_EMPLOYEE
        if entry.hourly_rate is not None or key not in rates:
            rates[key] = entry.hourly_rate if entry.hourly_rate is not None else Decimal("0")

    aggregates = []
    for key, total in seconds.items():
        rate = rates[key]
        aggregates.append(TimeEntryAggregate(
            employee_id=key,
            name=names[key],
            seconds=total,
            hours=total / SECONDS_PER_HOUR,
            hourly_rate=rate,
            cost=Money.of(total * rate / SECONDS_PER_HOUR).round().amount,
        ))
    return aggregates


def summarize_time(aggregates: list[TimeEntryAggregate]) -> TimeStats:
    """
    Totals across employees.

    Hours are summed from exact worked seconds; labour cost is the sum of
    rounded per-employee costs.
    """
    total_seconds = sum((a.seconds for a in aggregates), Decimal("0"))
    return TimeStats(
        total_hours=total_seconds / SECONDS_PER_HOUR,
        total_labor_cost=Money.sum(Money.of(a.cost) for a in aggregates).amount,
        by_employee=aggregates,
    )


def compute_finance(settings: ProjectKpiSettings, time_stats: TimeStats) -> FinanceStats:
    """
    Derive the finance figures.

    Ratios that need a budget are None unless the budget is positive; hourly
    rates are None unless hours were booked. None must be displayed as "no
    data", never as zero.
    """
    budget = settings.budget
    extra_costs = settings.extra_costs or Decimal("0")
    hours = time_stats.total_hours

    total_cost = Money.of(time_stats.total_labor_cost) + Money.of(extra_costs)

    profit = None
    margin_percent = None
    budget_usage_percent = None
    budget_rate = None
    cost_rate = None

    if budget is not None:
        profit = (Money.of(budget) - total_cost).round().amount

    if budget is not None and budget > 0:
        margin_percent = round_decimal(profit / budget * HUNDRED)
        budget_usage_percent = round_decimal(total_cost.amount / budget * HUNDRED)

    if hours > 0:
        cost_rate = round_decimal(total_cost.amount / hours)
        if budget is not None and budget > 0:
            budget_rate = round_decimal(budget / hours)

    return FinanceStats(
        budget=budget,
        extra_costs=extra_costs,
        total_labor_cost=time_stats.total_labor_cost,
        total_cost=total_cost.round().amount,
        profit=profit,
        margin_percent=margin_percent,
        budget_usage_percent=budget_usage_percent,
        effective_hourly_rate_budget_based=budget_rate,
        effective_hourly_rate_cost_based=cost_rate,
    )


class MarginWatch:
    """Edge trigger for the zero-margin notification."""

    @staticmethod
    def is_positive(margin_percent: Decimal | None) -> bool | None:
        """Sign to persist between recomputations. None when there is no margin."""
        if margin_percent is None:
            return None
        return margin_percent > 0

    @staticmethod
    def crossed_to_zero(previous_positive: bool | None, margin_percent: Decimal | None) -> bool:
        """
        True only on a positive -> <= 0 transition.

        Staying at or below zero, or having had no margin before, does not
        fire again.
        """
        if previous_positive is not True or margin_percent is None:
            return False
        return margin_percent <= 0
