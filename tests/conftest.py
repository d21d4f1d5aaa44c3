"""Shared test fixtures for the billing test suite."""

import os
from pathlib import Path
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module.reset()

from utils.tenant_context import TenantContext


SCHEMA_PATH = Path(__file__).parent.parent / "db" / "schema.sql"


# =============================================================================
# TEST TENANT CONSTANTS
# =============================================================================

# Primary test tenant - use for single-tenant tests
TEST_TENANT_ID = UUID("00000000-0000-0000-0000-00000000000a")
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary test tenant - use for isolation tests
TEST_TENANT_B_ID = UUID("00000000-0000-0000-0000-00000000000b")


# =============================================================================
# TENANT CONTEXT FIXTURES
# =============================================================================


@pytest.fixture
def tenant() -> TenantContext:
    """Context of the primary test tenant, acting as the test user."""
    return TenantContext(tenant_id=TEST_TENANT_ID, user_id=TEST_USER_ID)


@pytest.fixture
def tenant_b() -> TenantContext:
    """Context of the secondary test tenant (for isolation tests)."""
    return TenantContext(tenant_id=TEST_TENANT_B_ID)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def _db_client():
    """
    Session-scoped PostgresClient against BILLING_TEST_DATABASE_URL.

    Tests that need the database are skipped when the variable is unset.
    The schema is applied once per session.
    """
    url = os.getenv("BILLING_TEST_DATABASE_URL")
    if not url:
        pytest.skip("BILLING_TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient

    client = PostgresClient(url)
    client.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient against BILLING_TEST_VALKEY_URL."""
    url = os.getenv("BILLING_TEST_VALKEY_URL")
    if not url:
        pytest.skip("BILLING_TEST_VALKEY_URL not set")

    from clients.valkey_client import ValkeyClient

    client = ValkeyClient(url)
    yield client
    client.close()


@pytest.fixture
def db(_db_client):
    """PostgresClient with all billing tables emptied before the test."""
    _db_client.execute("""
        TRUNCATE
            billing_profiles, document_sequences, financial_documents,
            project_kpi_settings, time_entries, employees, projects, audit_log
        CASCADE
    """)
    return _db_client
