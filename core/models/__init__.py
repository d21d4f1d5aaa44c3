"""Core domain models."""

from core.models.billing_profile import (
    DocumentKind, NumberingConfig, TenantBillingProfile, BillingProfileUpdate,
    OnboardingState, Unconfigured, PartiallyConfigured, Ready, onboarding_state,
)
from core.models.position import (
    Position, ItemPosition, HeadingPosition, DescriptionPosition, SubtotalPosition, SeparatorPosition,
    Discount, DiscountType, DiscountBase,
)
from core.models.document import (
    DocumentStatus, DocumentTotals, LineTotal, SubtotalMarker,
    DocumentDraft, FinancialDocument, DocumentPreview,
)
from core.models.project_kpi import (
    ProjectKpiSettings, TimeEntry, TimeEntryAggregate, TimeStats, FinanceStats, KpiReport,
)

__all__ = [
    # Billing profile
    "DocumentKind", "NumberingConfig", "TenantBillingProfile", "BillingProfileUpdate",
    "OnboardingState", "Unconfigured", "PartiallyConfigured", "Ready", "onboarding_state",
    # Positions
    "Position", "ItemPosition", "HeadingPosition", "DescriptionPosition", "SubtotalPosition",
    "SeparatorPosition", "Discount", "DiscountType", "DiscountBase",
    # Documents
    "DocumentStatus", "DocumentTotals", "LineTotal", "SubtotalMarker",
    "DocumentDraft", "FinancialDocument", "DocumentPreview",
    # Project KPI
    "ProjectKpiSettings", "TimeEntry", "TimeEntryAggregate", "TimeStats", "FinanceStats", "KpiReport",
]
