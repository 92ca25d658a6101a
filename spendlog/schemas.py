"""Typed request bodies accepted by the HTTP API."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from spendlog.core.models import Transaction


class TransactionPayload(BaseModel):
    transaction_date: date = Field(validation_alias=AliasChoices("transaction_date", "date"))
    item_name: str = Field(min_length=1)
    amount: float = Field(allow_inf_nan=False)
    item_category_id: int = Field(gt=0)
    payment_category_id: int = Field(gt=0)
    notes: Optional[str] = None
    user_id: Optional[str] = None

    @field_validator("item_name")
    @classmethod
    def _strip_item_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("item_name must not be blank")
        return value

    @field_validator("notes")
    @classmethod
    def _blank_notes_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    def to_transaction(self) -> Transaction:
        return Transaction(
            date=self.transaction_date,
            item_name=self.item_name,
            amount=self.amount,
            item_category_id=self.item_category_id,
            payment_category_id=self.payment_category_id,
            notes=self.notes,
        )


class CategoryPayload(BaseModel):
    # Left optional so a blank name surfaces as the store's own error message.
    name: Optional[str] = None
    user_id: Optional[str] = None
