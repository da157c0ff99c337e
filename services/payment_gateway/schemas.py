from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InvoiceItem(BaseModel):
    name: str
    quantity: int
    price: int


class Invoice(BaseModel):
    """The parts of a gateway invoice this storefront relies on."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    status: str | None = None
    invoice_url: str | None = None
    external_id: str | None = None
    amount: float | None = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
