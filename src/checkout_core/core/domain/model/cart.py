from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Tuple
from uuid import UUID

from checkout_core.core.domain.model.order import (
    DEFAULT_CURRENCY,
    Money,
    fold_money,
)

# RFC-4122 textual shape, versions 1-5 only.
_UUID_SHAPE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ProductId:
    value: UUID

    @staticmethod
    def is_well_formed(raw: Any) -> bool:
        return isinstance(raw, str) and _UUID_SHAPE.fullmatch(raw) is not None

    @staticmethod
    def of(raw: str) -> "ProductId":
        if not ProductId.is_well_formed(raw):
            raise ValueError(f"not a well-formed product id: {raw!r}")
        return ProductId(UUID(raw))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CartLine:
    product_id: ProductId
    quantity: int
    unit_price: Money

    def subtotal(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CartSnapshot:
    lines: Tuple[CartLine, ...]
    taken_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def __len__(self) -> int:
        return len(self.lines)

    def subtotal(self) -> Money:
        currency = self.lines[0].unit_price.currency if self.lines else DEFAULT_CURRENCY
        return fold_money((ln.subtotal() for ln in self.lines), currency=currency)
