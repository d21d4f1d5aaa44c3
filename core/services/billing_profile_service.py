"""
Billing profile service.

One profile per tenant, created lazily with safe defaults on first access.
All queries run with the tenant's RLS context.
"""

import logging

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import BillingConfig
from core.errors import ConfigurationIncomplete
from core.event_bus import EventBus
from core.events import BillingProfileUpdated
from core.models import BillingProfileUpdate, OnboardingState, TenantBillingProfile, onboarding_state
from core.models.billing_profile import NUMBERING_FIELDS
from utils.tenant_context import TenantContext
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {
    *(name for names in NUMBERING_FIELDS.values() for name in names),
    "account_holder", "iban", "bic", "billing_phone", "billing_email",
    "template", "agb_url", "privacy_url",
}


class BillingProfileService:
    """Service for tenant billing profile operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        config: BillingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or BillingConfig()

    def get(self, ctx: TenantContext) -> TenantBillingProfile | None:
        """Profile for the tenant, or None if it was never created."""
        row = self.postgres.execute_single(
            "SELECT * FROM billing_profiles WHERE tenant_id = %s",
            (ctx.tenant_id,),
            tenant_id=ctx.tenant_id,
        )
        if row is None:
            return None
        return TenantBillingProfile.model_validate(row)

    def get_or_create(self, ctx: TenantContext) -> TenantBillingProfile:
        """
        Read the tenant's profile, creating it on first access.

        The created profile has no numbering configured (so the tenant is
        Unconfigured) and the default template.
        """
        existing = self.get(ctx)
        if existing is not None:
            return existing

        now = now_utc()
        # Concurrent first access: the loser's insert is a no-op
        self.postgres.execute(
            """
            INSERT INTO billing_profiles (tenant_id, template, created_at, updated_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (tenant_id) DO NOTHING
            """,
            (ctx.tenant_id, self.config.default_template, now, now),
            tenant_id=ctx.tenant_id,
        )
        logger.info(f"Created billing profile for tenant {ctx.tenant_id}")

        profile = self.get(ctx)
        if profile is None:
            raise ValueError(f"Billing profile for tenant {ctx.tenant_id} not found")
        return profile

    def onboarding_state(self, ctx: TenantContext) -> OnboardingState:
        """Completion state of the tenant's billing setup."""
        return onboarding_state(self.get_or_create(ctx))

    def update(self, ctx: TenantContext, data: BillingProfileUpdate) -> TenantBillingProfile:
        """
        Apply a settings update.

        Numbering is all-or-nothing: after the update the prefix/start/suffix
        of every document kind must be set, or none of them.

        Args:
            ctx: Tenant context
            data: Fields to update (only fields the caller sent are changed)

        Returns:
            Updated profile

        Raises:
            ConfigurationIncomplete: If the update leaves numbering partially configured
        """
        current = self.get_or_create(ctx)

        updates = data.changes()
        if updates.get("template") == "":
            updates["template"] = self.config.default_template

        valid_updates = {k: v for k, v in updates.items() if k in _UPDATABLE_COLUMNS}
        if not valid_updates:
            return current

        merged = current.model_copy(update=valid_updates)
        missing = merged.missing_numbering_fields()
        all_numbering = {name for names in NUMBERING_FIELDS.values() for name in names}
        if missing and missing != all_numbering:
            raise ConfigurationIncomplete(missing)

        set_parts = []
        params = []
        for field, value in valid_updates.items():
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(ctx.tenant_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE billing_profiles
            SET {', '.join(set_parts)}
            WHERE tenant_id = %s
            RETURNING *
            """,
            tuple(params),
            tenant_id=ctx.tenant_id,
        )[0]

        updated = TenantBillingProfile.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="billing_profile",
                entity_id=ctx.tenant_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        state = onboarding_state(updated)
        self.event_bus.publish(BillingProfileUpdated.create(updated, changes.keys(), state.ready))

        return updated
