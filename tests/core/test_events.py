"""Tests for domain event models."""

from dataclasses import FrozenInstanceError
from datetime import datetime
from decimal import Decimal
from uuid import uuid4, UUID

import pytest

from core.events import (
    BillingEvent,
    DocumentEvent, DocumentIssued, DocumentUpdated,
    BillingProfileUpdated,
    MarginDepleted,
)
from core.finance import compute_finance
from core.models import ProjectKpiSettings, TimeStats
from tests.fakes import make_document, make_profile


class TestBaseFields:

    def test_event_id_and_timestamp_generated(self):
        event = DocumentIssued.create(make_document(uuid4()))

        UUID(event.event_id)
        assert isinstance(event.occurred_at, datetime)
        assert event.occurred_at.tzinfo is not None

    def test_events_are_frozen(self):
        event = DocumentIssued.create(make_document(uuid4()))

        with pytest.raises(FrozenInstanceError):
            event.document = None

    def test_hierarchy(self):
        event = DocumentUpdated.create(make_document(uuid4()), {})

        assert isinstance(event, DocumentEvent)
        assert isinstance(event, BillingEvent)


class TestDocumentEvents:

    def test_issued_carries_tenant_and_document(self):
        tenant_id = uuid4()
        document = make_document(tenant_id)
        event = DocumentIssued.create(document)

        assert event.tenant_id == tenant_id
        assert event.document is document

    def test_updated_carries_changes(self):
        changes = {"title": {"old": "A", "new": "B"}}
        event = DocumentUpdated.create(make_document(uuid4()), changes)
        assert event.changes == changes


class TestBillingProfileUpdated:

    def test_changed_fields_frozen(self):
        profile = make_profile(uuid4())
        event = BillingProfileUpdated.create(profile, ["iban", "bic"], ready=True)

        assert event.changed_fields == frozenset({"iban", "bic"})
        assert event.ready is True
        assert event.tenant_id == profile.tenant_id


class TestMarginDepleted:

    def test_copies_margin_from_finance(self):
        finance = compute_finance(
            ProjectKpiSettings(budget=Decimal("100")),
            TimeStats(total_hours=Decimal("1"), total_labor_cost=Decimal("120"), by_employee=[]),
        )
        project_id = uuid4()
        event = MarginDepleted.create(uuid4(), project_id, finance, "owner@example.com")

        assert event.project_id == project_id
        assert event.margin_percent == Decimal("-20")
        assert event.notify_email == "owner@example.com"
        assert event.finance is finance
