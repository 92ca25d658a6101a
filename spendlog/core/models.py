# spendlog/core/models.py
from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

CategoryKind = Literal["item", "payment"]


@dataclass
class Transaction:
    date: date
    item_name: str
    amount: float
    item_category_id: int
    payment_category_id: int
    notes: Optional[str] = None
