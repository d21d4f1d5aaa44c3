"""Application assembly: service wiring and the FastAPI app."""

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware, TenantContextMiddleware
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_email_config, get_valkey_url
from core.audit import AuditLogger
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import MarginDepleted
from core.handlers.margin_alert_handler import handle_margin_depleted
from core.services.billing_profile_service import BillingProfileService
from core.services.document_service import DocumentService
from core.services.numbering_service import DocumentNumberAllocator, PostgresSequenceStore
from core.services.preview_service import PreviewService
from core.services.project_kpi_service import ProjectKpiService


def build_services(
    postgres: PostgresClient,
    valkey=None,
    email_client=None,
    config: BillingConfig | None = None,
) -> dict:
    """
    Wire services around one database client.

    Args:
        postgres: Database client
        valkey: ValkeyClient; enables superseding previews when given
        email_client: EmailGatewayClient; enables zero-margin alerts when given
        config: Billing configuration
    """
    config = config or BillingConfig()
    audit = AuditLogger(postgres)
    event_bus = EventBus()

    profiles = BillingProfileService(postgres, audit, event_bus, config)
    allocator = DocumentNumberAllocator(profiles, PostgresSequenceStore(postgres), config)
    documents = DocumentService(postgres, audit, event_bus, allocator, config)

    if email_client is not None:
        event_bus.subscribe(MarginDepleted, handle_margin_depleted(email_client))

    return {
        "event_bus": event_bus,
        "audit": audit,
        "billing_profile": profiles,
        "allocator": allocator,
        "document": documents,
        "preview": PreviewService(valkey, documents, config) if valkey is not None else None,
        "project_kpi": ProjectKpiService(postgres, audit, event_bus),
    }


def create_app(services: dict) -> FastAPI:
    """FastAPI app exposing /api/data and /api/actions."""
    app = FastAPI(title="Billing")

    # Last added runs first: request id must exist before the tenant check
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def create_app_from_vault(config: BillingConfig | None = None) -> FastAPI:
    """Production app: infrastructure credentials come from Vault."""
    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    email_client = EmailGatewayClient(**get_email_config())
    return create_app(build_services(postgres, valkey, email_client, config))
