"""Document position and discount models.

Positions are an ordered, user-controlled list. Only `item` positions carry
money; headings, free-text descriptions, subtotal markers and separators are
layout.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, Field, model_validator


class ItemPosition(BaseModel):
    """Billable line: quantity x unit price. Negative values are credit lines."""

    type: Literal["item"] = "item"
    description: str = Field("", max_length=2000)
    quantity: Decimal = Decimal("0")
    unit: str | None = Field(None, max_length=50)
    unit_price: Decimal = Field(
        Decimal("0"),
        validation_alias=AliasChoices("unit_price", "unitPrice"),
    )

    model_config = {"populate_by_name": True}


class HeadingPosition(BaseModel):
    type: Literal["heading"] = "heading"
    description: str = Field("", max_length=500)


class DescriptionPosition(BaseModel):
    type: Literal["description"] = "description"
    description: str = Field("", max_length=5000)


class SubtotalPosition(BaseModel):
    """Prints the running sum of all item lines above it."""

    type: Literal["subtotal"] = "subtotal"


class SeparatorPosition(BaseModel):
    type: Literal["separator"] = "separator"


Position = Annotated[
    Union[ItemPosition, HeadingPosition, DescriptionPosition, SubtotalPosition, SeparatorPosition],
    Field(discriminator="type"),
]


class DiscountType(str, Enum):
    PERCENT = "percent"
    AMOUNT = "amount"


class DiscountBase(str, Enum):
    """Whether a discount is measured against the net or the gross total."""

    NET = "net"
    GROSS = "gross"


class Discount(BaseModel):
    """Document-level discount. Disabled by default."""

    enabled: bool = False
    label: str = Field("Discount", max_length=200)
    type: DiscountType = DiscountType.PERCENT
    base: DiscountBase = DiscountBase.NET
    value: Decimal = Field(Decimal("0"), ge=0, decimal_places=4)

    @model_validator(mode="after")
    def validate_percent_range(self) -> "Discount":
        """Percent discounts are 0-100."""
        if self.type == DiscountType.PERCENT and self.value > 100:
            raise ValueError("Percent discount must be between 0 and 100")
        return self

    @property
    def applies(self) -> bool:
        return self.enabled and self.value > 0
