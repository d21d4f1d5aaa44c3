"""API test fixtures: TestClient over in-memory and mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.audit import AuditLogger
from core.event_bus import EventBus
from core.models import Ready
from core.services.billing_profile_service import BillingProfileService
from core.services.document_service import DocumentService
from core.services.numbering_service import DocumentNumberAllocator
from core.services.preview_service import PreviewService
from core.services.project_kpi_service import ProjectKpiService
from tests.fakes import FakeValkey, InMemorySequenceStore, StubProfiles, make_profile


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def profile_service(tenant):
    """BillingProfileService mock serving a fully configured profile."""
    service = Mock(spec=BillingProfileService)
    service.get_or_create.return_value = make_profile(tenant.tenant_id)
    service.onboarding_state.return_value = Ready()
    return service


@pytest.fixture
def sequence_store():
    return InMemorySequenceStore()


@pytest.fixture
def allocator(tenant, sequence_store):
    return DocumentNumberAllocator(StubProfiles(make_profile(tenant.tenant_id)), sequence_store)


@pytest.fixture
def document_service(allocator):
    """
    DocumentService without a database.

    Previews and render payloads work as-is; tests replace the
    database-backed methods (commit, get, ...) with mocks.
    """
    return DocumentService(None, None, EventBus(), allocator)


@pytest.fixture
def kpi_service():
    return Mock(spec=ProjectKpiService)


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def services(profile_service, allocator, document_service, kpi_service, audit):
    return {
        "event_bus": EventBus(),
        "audit": audit,
        "billing_profile": profile_service,
        "allocator": allocator,
        "document": document_service,
        "preview": PreviewService(FakeValkey(), document_service),
        "project_kpi": kpi_service,
    }


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    return create_app(services)


@pytest.fixture
def client(app, tenant):
    """TestClient acting as the primary test tenant."""
    return TestClient(
        app,
        raise_server_exceptions=False,
        headers={"X-Tenant-ID": str(tenant.tenant_id), "X-User-ID": str(tenant.user_id)},
    )


@pytest.fixture
def unauthed_client(app):
    """TestClient without tenant headers."""
    return TestClient(app, raise_server_exceptions=False)
