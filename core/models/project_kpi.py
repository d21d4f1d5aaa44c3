"""Project KPI domain models.

Settings are entered by the project owner; time statistics and finance
figures are derived on every read and never stored. A None ratio means
"no data" and must never be shown as 0.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.errors import NoBudgetData

SECONDS_PER_HOUR = Decimal(3600)


def _parse_localized_number(value: Any) -> Any:
    """Form input may use a decimal comma ("1500,50")."""
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return None
        return text
    return value


class ProjectKpiSettings(BaseModel):
    """Owner-entered project targets. All optional."""

    budget: Decimal | None = None
    target_margin_percent: Decimal | None = None
    planned_duration_days: int | None = Field(None, ge=0)
    extra_costs: Decimal | None = None
    notify_on_zero_margin: bool = False
    notify_email: str | None = Field(None, max_length=254)

    @field_validator("budget", "target_margin_percent", "extra_costs", mode="before")
    @classmethod
    def parse_number(cls, value: Any) -> Any:
        return _parse_localized_number(value)

    @field_validator("notify_email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        return value.strip() or None


class TimeEntry(BaseModel):
    """
    One time-tracking record joined with its employee.

    Either `duration_hours` is given, or it is derived from start/end minus
    the break.
    """

    employee_id: UUID
    employee_name: str | None = None
    hourly_rate: Decimal | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    break_minutes: int | None = Field(None, ge=0)
    duration_hours: Decimal | None = None

    model_config = {"from_attributes": True}

    @property
    def seconds(self) -> Decimal | None:
        """Worked seconds, or None when the entry can't be counted."""
        if self.duration_hours is not None:
            return self.duration_hours * SECONDS_PER_HOUR if self.duration_hours > 0 else None

        if self.start_time is None or self.end_time is None:
            return None

        seconds = Decimal(str((self.end_time - self.start_time).total_seconds()))
        seconds -= Decimal(self.break_minutes or 0) * 60
        if seconds <= 0:
            return None
        return seconds

    @property
    def hours(self) -> Decimal | None:
        """Worked hours, or None when the entry can't be counted."""
        seconds = self.seconds
        return None if seconds is None else seconds / SECONDS_PER_HOUR


class TimeEntryAggregate(BaseModel):
    """
    Per-employee rollup: cost = hours x hourly_rate.

    `seconds` is the exact worked time; `hours` is derived from it unrounded.
    """

    employee_id: UUID
    name: str
    seconds: Decimal
    hours: Decimal
    hourly_rate: Decimal
    cost: Decimal


class TimeStats(BaseModel):
    total_hours: Decimal
    total_labor_cost: Decimal
    by_employee: list[TimeEntryAggregate]


class FinanceStats(BaseModel):
    """Derived project finance figures. None = unavailable (no budget / no hours)."""

    budget: Decimal | None
    extra_costs: Decimal
    total_labor_cost: Decimal
    total_cost: Decimal
    profit: Decimal | None
    margin_percent: Decimal | None
    budget_usage_percent: Decimal | None
    effective_hourly_rate_budget_based: Decimal | None
    effective_hourly_rate_cost_based: Decimal | None

    @property
    def unavailable(self) -> list[str]:
        """Names of the figures that have no data."""
        optional = (
            "profit", "margin_percent", "budget_usage_percent",
            "effective_hourly_rate_budget_based", "effective_hourly_rate_cost_based",
        )
        return [name for name in optional if getattr(self, name) is None]

    def require(self, field: str) -> Decimal:
        """
        Value of a ratio that the caller cannot do without.

        Raises:
            NoBudgetData: If the figure is unavailable
        """
        value = getattr(self, field)
        if value is None:
            raise NoBudgetData(field)
        return value


class KpiReport(BaseModel):
    """Everything the KPI view shows for one project."""

    project_id: UUID
    settings: ProjectKpiSettings
    time_stats: TimeStats
    finance: FinanceStats
