"""Typed exceptions for billing and project-finance failures."""

from collections.abc import Iterable


class BillingError(Exception):
    """Base class for billing domain errors."""


class ConfigurationIncomplete(BillingError):
    """
    Numbering or billing fields are missing for the tenant.

    Surfaced to the user as an onboarding prompt, not a generic error.
    `missing` names the profile fields that still need a value.
    """

    def __init__(self, missing: Iterable[str], kind: str | None = None):
        self.missing = frozenset(missing)
        self.kind = kind
        scope = f" for {kind}" if kind else ""
        super().__init__(
            f"Billing configuration incomplete{scope}: missing {', '.join(sorted(self.missing))}"
        )


class InvalidAmount(BillingError):
    """Negative or non-finite monetary value where one is not allowed."""


class SequenceCollision(BillingError):
    """
    A freshly allocated document number is already taken.

    Raised after the single automatic retry has also collided.
    """

    def __init__(self, kind: str, number: str, sequence: int):
        self.kind = kind
        self.number = number
        self.sequence = sequence
        super().__init__(f"Document number {number} ({kind}) is already in use")


class NoBudgetData(BillingError):
    """A KPI ratio was required but the project has no budget (or no hours) to base it on."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"'{field}' is unavailable: no budget data")
