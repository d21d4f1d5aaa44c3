"""
Domain events for billing.

Immutable event objects that represent state changes in the billing domain.
A service publishes what happened, and handlers react without the publisher
knowing who's listening.

Event Categories:
- DocumentEvent: Financial document lifecycle (issued, updated)
- BillingProfileEvent: Tenant billing configuration changes
- ProjectEvent: Project finance signals (margin depleted)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class BillingEvent:
    """Base class for all billing domain events."""
    tenant_id: UUID | None = None
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# DOCUMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class DocumentEvent(BillingEvent):
    """Events related to financial document lifecycle."""
    pass


@dataclass(frozen=True)
class DocumentIssued(DocumentEvent):
    """A document received its number and was stored."""
    document: Any = None  # FinancialDocument

    @classmethod
    def create(cls, document: Any) -> "DocumentIssued":
        return cls(tenant_id=document.tenant_id, document=document)


@dataclass(frozen=True)
class DocumentUpdated(DocumentEvent):
    """An issued document was edited; its number is unchanged."""
    document: Any = None
    changes: dict = field(default_factory=dict)

    @classmethod
    def create(cls, document: Any, changes: dict) -> "DocumentUpdated":
        return cls(tenant_id=document.tenant_id, document=document, changes=changes)


# =============================================================================
# BILLING PROFILE EVENTS
# =============================================================================


@dataclass(frozen=True)
class BillingProfileUpdated(BillingEvent):
    """Tenant billing profile changed. `ready` reflects the new onboarding state."""
    profile: Any = None
    changed_fields: frozenset = frozenset()
    ready: bool = False

    @classmethod
    def create(cls, profile: Any, changed_fields, ready: bool) -> "BillingProfileUpdated":
        return cls(
            tenant_id=profile.tenant_id,
            profile=profile,
            changed_fields=frozenset(changed_fields),
            ready=ready,
        )


# =============================================================================
# PROJECT EVENTS
# =============================================================================


@dataclass(frozen=True)
class MarginDepleted(BillingEvent):
    """A project's margin crossed from positive to zero or below."""
    project_id: UUID | None = None
    margin_percent: Decimal | None = None
    notify_email: str | None = None
    finance: Any = None  # FinanceStats

    @classmethod
    def create(cls, tenant_id: UUID, project_id: UUID, finance: Any, notify_email: str | None) -> "MarginDepleted":
        return cls(
            tenant_id=tenant_id,
            project_id=project_id,
            margin_percent=finance.margin_percent,
            notify_email=notify_email,
            finance=finance,
        )
