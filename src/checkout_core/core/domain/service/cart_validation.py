from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Sequence

from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.cart import CartLine, CartSnapshot, ProductId
from checkout_core.core.domain.model.errors import (
    CheckoutError,
    InvalidProductId,
    ValidationError,
)
from checkout_core.core.domain.model.order import DEFAULT_CURRENCY, Money, now_utc
from checkout_core.core.ports.inbound.checkout import RawCartLine


def validate_cart(
    lines: Sequence[RawCartLine], currency: str = DEFAULT_CURRENCY
) -> Result[CartSnapshot, CheckoutError]:
    """Freeze raw cart lines into a snapshot.

    Stops at the first bad line. A malformed product id is never repaired:
    an order line must reference a product that exists.
    """
    frozen: list[CartLine] = []
    for i, ln in enumerate(lines):
        if not ProductId.is_well_formed(ln.product_id):
            return Failure(
                InvalidProductId(
                    f"cart item {i + 1} has a malformed product id",
                    product_id=str(ln.product_id),
                    index=i,
                )
            )
        quantity = ln.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return Failure(ValidationError(f"lines[{i}].quantity must be > 0"))
        try:
            price = Decimal(str(ln.unit_price))
        except InvalidOperation:
            return Failure(ValidationError(f"lines[{i}].unit_price is not a number"))
        if not price.is_finite() or price < 0:
            return Failure(ValidationError(f"lines[{i}].unit_price must be >= 0"))

        frozen.append(
            CartLine(
                product_id=ProductId.of(ln.product_id),
                quantity=ln.quantity,
                unit_price=Money.of(price, currency=currency),
            )
        )
    return Success(CartSnapshot(lines=tuple(frozen), taken_at=now_utc()))


def ensure_well_formed(cart: CartSnapshot) -> Result[CartSnapshot, CheckoutError]:
    for i, ln in enumerate(cart.lines):
        if not ProductId.is_well_formed(str(ln.product_id)):
            return Failure(
                InvalidProductId(
                    f"cart item {i + 1} has a malformed product id",
                    product_id=str(ln.product_id),
                    index=i,
                )
            )
        if ln.quantity <= 0:
            return Failure(ValidationError(f"lines[{i}].quantity must be > 0"))
    return Success(cart)
