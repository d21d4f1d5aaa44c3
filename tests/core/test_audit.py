"""Tests for the billing audit trail."""

import pytest
from uuid import uuid4


class TestAuditAction:
    """Tests for AuditAction enum."""

    def test_has_create_update(self):
        """Issued numbers are never deleted, so there is no DELETE action."""
        from core.audit import AuditAction

        assert AuditAction.CREATE.value == "create"
        assert AuditAction.UPDATE.value == "update"
        assert {a.value for a in AuditAction} == {"create", "update"}


class TestComputeChanges:
    """Tests for compute_changes utility function."""

    def test_detects_changed_fields(self):
        """Different values for same key detected."""
        from core.audit import compute_changes

        old = {"invoice_prefix": "RE-", "iban": "DE89370400440532013000"}
        new = {"invoice_prefix": "RE-", "iban": "DE02120300000000202051"}

        changes = compute_changes(old, new)

        assert changes == {"iban": {"old": "DE89370400440532013000", "new": "DE02120300000000202051"}}

    def test_detects_added_and_removed_fields(self):
        from core.audit import compute_changes

        changes = compute_changes({"bic": "COBADEFF"}, {"billing_phone": "+49 30 1"})

        assert changes["bic"] == {"old": "COBADEFF", "new": None}
        assert changes["billing_phone"] == {"old": None, "new": "+49 30 1"}

    def test_excludes_updated_at_by_default(self):
        """updated_at not reported as change."""
        from core.audit import compute_changes

        changes = compute_changes({"updated_at": "2024-01-01"}, {"updated_at": "2024-01-02"})

        assert changes == {}

    def test_custom_exclude_fields(self):
        from core.audit import compute_changes

        old = {"title": "A", "gross_total": "1.00"}
        new = {"title": "B", "gross_total": "2.00"}

        changes = compute_changes(old, new, exclude_fields={"gross_total"})

        assert set(changes) == {"title"}


class TestAuditLogger:
    """Tests for AuditLogger against the database."""

    def test_log_change_creates_entry(self, db, tenant):
        from core.audit import AuditLogger, AuditAction

        audit = AuditLogger(db)
        entity_id = uuid4()

        audit.log_change(
            tenant,
            entity_type="financial_document",
            entity_id=entity_id,
            action=AuditAction.CREATE,
            changes={"created": {"number": "RE-2024-0001"}},
        )

        entries = audit.get_entity_history(tenant, "financial_document", entity_id)
        assert len(entries) == 1
        assert entries[0]["action"] == "create"
        assert entries[0]["tenant_id"] == tenant.tenant_id
        assert entries[0]["user_id"] == tenant.actor_id
        assert entries[0]["changes"] == {"created": {"number": "RE-2024-0001"}}

    def test_history_newest_first(self, db, tenant):
        from core.audit import AuditLogger, AuditAction
        import time

        audit = AuditLogger(db)
        entity_id = uuid4()

        audit.log_change(tenant, "billing_profile", entity_id, AuditAction.CREATE, {"created": {}})
        time.sleep(0.01)  # Ensure different timestamps
        audit.log_change(tenant, "billing_profile", entity_id, AuditAction.UPDATE, {"iban": {"old": None, "new": "X"}})

        history = audit.get_entity_history(tenant, "billing_profile", entity_id)

        assert [h["action"] for h in history] == ["update", "create"]

    def test_history_is_tenant_scoped(self, db, tenant, tenant_b):
        from core.audit import AuditLogger, AuditAction

        audit = AuditLogger(db)
        entity_id = uuid4()
        audit.log_change(tenant, "billing_profile", entity_id, AuditAction.CREATE, {"created": {}})

        assert audit.get_entity_history(tenant_b, "billing_profile", entity_id) == []

    def test_recent_activity(self, db, tenant, tenant_b):
        from core.audit import AuditLogger, AuditAction
        import time

        audit = AuditLogger(db)
        audit.log_change(tenant, "billing_profile", uuid4(), AuditAction.UPDATE, {"iban": {"old": None, "new": "X"}})
        time.sleep(0.01)
        audit.log_change(tenant, "financial_document", uuid4(), AuditAction.CREATE, {"created": {}})
        audit.log_change(tenant_b, "financial_document", uuid4(), AuditAction.CREATE, {"created": {}})

        feed = audit.recent_activity(tenant)

        assert [e["entity_type"] for e in feed] == ["financial_document", "billing_profile"]

    def test_recent_activity_filter_and_limit(self, db, tenant):
        from core.audit import AuditLogger, AuditAction

        audit = AuditLogger(db)
        for _ in range(3):
            audit.log_change(tenant, "financial_document", uuid4(), AuditAction.CREATE, {"created": {}})
        audit.log_change(tenant, "billing_profile", uuid4(), AuditAction.UPDATE, {})

        assert len(audit.recent_activity(tenant, limit=2)) == 2
        assert len(audit.recent_activity(tenant, entity_type="financial_document")) == 3
