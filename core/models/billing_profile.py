"""Tenant billing profile domain models.

A profile holds the numbering configuration for every document kind plus
the bank/contact details printed on documents. Numbering fields are
nullable: None means "not set up yet", an empty prefix/suffix is a
deliberate choice and counts as set.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class DocumentKind(str, Enum):
    """Numbering namespace of a financial document."""

    INVOICE = "invoice"
    QUOTE = "quote"
    ORDER_CONFIRMATION = "order_confirmation"


IBAN_PATTERN = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{1,30}$")
BIC_PATTERN = re.compile(r"^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")

NUMBERING_FIELDS: dict[DocumentKind, tuple[str, str, str]] = {
    kind: (f"{kind.value}_prefix", f"{kind.value}_start", f"{kind.value}_suffix")
    for kind in DocumentKind
}
BANK_FIELDS = ("account_holder", "iban", "bic", "billing_phone", "billing_email")
TEMPLATE_FIELDS = ("template",)


class NumberingConfig(BaseModel):
    """Prefix/start/suffix triple for one document kind."""

    prefix: str
    start: int = Field(..., ge=0)
    suffix: str


class TenantBillingProfile(BaseModel):
    """Full billing profile as stored."""

    tenant_id: UUID

    invoice_prefix: str | None = None
    invoice_suffix: str | None = None
    invoice_start: int | None = None
    quote_prefix: str | None = None
    quote_suffix: str | None = None
    quote_start: int | None = None
    order_confirmation_prefix: str | None = None
    order_confirmation_suffix: str | None = None
    order_confirmation_start: int | None = None

    account_holder: str | None = None
    iban: str | None = None
    bic: str | None = None
    billing_phone: str | None = None
    billing_email: str | None = None
    template: str | None = None

    agb_url: str | None = None
    privacy_url: str | None = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    def numbering(self, kind: DocumentKind) -> NumberingConfig | None:
        """Numbering triple for kind, or None unless all three parts are set."""
        prefix_field, start_field, suffix_field = NUMBERING_FIELDS[kind]
        prefix = getattr(self, prefix_field)
        start = getattr(self, start_field)
        suffix = getattr(self, suffix_field)
        if prefix is None or start is None or suffix is None:
            return None
        return NumberingConfig(prefix=prefix, start=start, suffix=suffix)

    def missing_numbering_fields(self, kind: DocumentKind | None = None) -> set[str]:
        """Unset numbering fields, for one kind or for all kinds."""
        kinds = [kind] if kind is not None else list(DocumentKind)
        return {
            name
            for k in kinds
            for name in NUMBERING_FIELDS[k]
            if getattr(self, name) is None
        }


class BillingProfileUpdate(BaseModel):
    """
    Fields that can be updated on a billing profile. All optional.

    Omitted fields are left untouched. Prefix/suffix never store None
    (None becomes ""), nullable texts store None instead of "".
    """

    invoice_prefix: str | None = None
    invoice_suffix: str | None = None
    invoice_start: int | None = Field(None, ge=0)
    quote_prefix: str | None = None
    quote_suffix: str | None = None
    quote_start: int | None = Field(None, ge=0)
    order_confirmation_prefix: str | None = None
    order_confirmation_suffix: str | None = None
    order_confirmation_start: int | None = Field(None, ge=0)

    account_holder: str | None = Field(None, max_length=200)
    iban: str | None = None
    bic: str | None = None
    billing_phone: str | None = Field(None, max_length=50)
    billing_email: str | None = Field(None, max_length=254)
    template: str | None = Field(None, max_length=255)

    agb_url: str | None = Field(None, max_length=2000)
    privacy_url: str | None = Field(None, max_length=2000)

    @field_validator(
        "invoice_prefix", "invoice_suffix",
        "quote_prefix", "quote_suffix",
        "order_confirmation_prefix", "order_confirmation_suffix",
        mode="before",
    )
    @classmethod
    def normalize_affix(cls, value: Any) -> str:
        """Prefixes and suffixes are always strings once sent."""
        if value is None:
            return ""
        return str(value).strip()

    @field_validator(
        "account_holder", "billing_phone", "billing_email", "agb_url", "privacy_url",
        mode="before",
    )
    @classmethod
    def normalize_nullable_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("invoice_start", "quote_start", "order_confirmation_start", mode="before")
    @classmethod
    def parse_start(cls, value: Any) -> Any:
        """Start numbers arrive as numbers or numeric strings from forms."""
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            return int(text)
        return value

    @field_validator("iban", mode="before")
    @classmethod
    def validate_iban(cls, value: Any) -> str | None:
        if value is None:
            return None
        raw = re.sub(r"\s+", "", str(value)).upper()
        if not raw:
            return None
        if not IBAN_PATTERN.match(raw):
            raise ValueError("IBAN format is invalid")
        return raw

    @field_validator("bic", mode="before")
    @classmethod
    def validate_bic(cls, value: Any) -> str | None:
        if value is None:
            return None
        raw = str(value).strip().upper()
        if not raw:
            return None
        if not BIC_PATTERN.match(raw):
            raise ValueError("BIC format is invalid")
        return raw

    @field_validator("template", mode="before")
    @classmethod
    def normalize_template(cls, value: Any) -> str | None:
        # Blank template resets to the configured default (resolved by the service)
        if value is None:
            return ""
        return str(value).strip()

    @model_validator(mode="after")
    def require_some_field(self) -> "BillingProfileUpdate":
        if not self.model_fields_set:
            raise ValueError("No updates provided")
        return self

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, normalized."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# =============================================================================
# ONBOARDING STATE
# =============================================================================


@dataclass(frozen=True)
class Unconfigured:
    """Nothing required has been set up yet."""

    missing: frozenset[str] = field(default_factory=frozenset)
    ready: bool = False


@dataclass(frozen=True)
class PartiallyConfigured:
    """Some required fields are set; `missing` names the rest."""

    missing: frozenset[str]
    ready: bool = False


@dataclass(frozen=True)
class Ready:
    """Every required field is set; documents can be issued."""

    missing: frozenset[str] = frozenset()
    ready: bool = True


OnboardingState = Unconfigured | PartiallyConfigured | Ready

REQUIRED_FIELDS: tuple[str, ...] = (
    *(name for kind in DocumentKind for name in NUMBERING_FIELDS[kind]),
    *BANK_FIELDS,
    *TEMPLATE_FIELDS,
)


def _is_missing(profile: TenantBillingProfile, name: str) -> bool:
    value = getattr(profile, name)
    if name in BANK_FIELDS or name in TEMPLATE_FIELDS:
        return not value
    return value is None


def onboarding_state(profile: TenantBillingProfile) -> OnboardingState:
    """Classify a profile once; callers branch on the returned type."""
    missing = frozenset(name for name in REQUIRED_FIELDS if _is_missing(profile, name))
    if not missing:
        return Ready()
    # Template is defaulted on creation, so it doesn't count as progress
    if missing.issuperset(name for name in REQUIRED_FIELDS if name not in TEMPLATE_FIELDS):
        return Unconfigured(missing=missing)
    return PartiallyConfigured(missing=missing)
