"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, today_utc, to_utc, parse_iso, parse_document_date, add_days
from utils.tenant_context import TenantContext
