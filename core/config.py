"""Billing configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Billing configuration.

    Durations are in days, the natural unit for payment terms and quote
    validity.
    """

    # Numbering
    number_padding: int = Field(
        default=4,
        description="Zero-padding width of the sequence part of document numbers",
        ge=1,
        le=12,
    )

    # Document dates
    invoice_due_days: int = Field(
        default=14,
        description="Days from invoice date until payment is due",
        ge=0,
        le=365,
    )
    order_confirmation_due_days: int = Field(
        default=14,
        description="Days from order confirmation date until payment is due",
        ge=0,
        le=365,
    )
    quote_validity_days: int = Field(
        default=30,
        description="Days a quote remains valid",
        ge=1,
        le=365,
    )

    # Presentation defaults
    default_template: str = Field(
        default="invoice_template_standard.pdf",
        description="Template used when a tenant has not picked one",
    )
    default_discount_label: str = Field(
        default="Discount",
        description="Label printed for discounts without an explicit label",
    )
    default_currency: str = Field(
        default="EUR",
        description="ISO 4217 currency code for rendered documents",
        min_length=3,
        max_length=3,
    )

    # Previews
    preview_ttl_seconds: int = Field(
        default=600,
        description="How long preview generation counters live in Valkey",
        ge=60,
        le=86400,
    )
