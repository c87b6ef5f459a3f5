from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Sequence, Tuple

from returns.result import Failure, Result, Success

from checkout_core.core.domain.model.cart import CartSnapshot
from checkout_core.core.domain.model.errors import CheckoutError, ValidationError
from checkout_core.core.domain.model.order import Money
from checkout_core.core.domain.model.payment import PaymentMethod


@dataclass(frozen=True)
class Address:
    id: str
    label: str = ""
    is_default: bool = False


@dataclass(frozen=True)
class DeliveryMethod:
    id: str
    name: str
    cost: Money
    active: bool = True


@dataclass(frozen=True)
class Selection:
    delivery_address_id: str = ""
    billing_address_id: str = ""
    delivery_method_id: str = ""
    coupon_code: str | None = None
    customer_note: str | None = None
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER


SELECTION_FIELDS = frozenset(f.name for f in fields(Selection))

# Checked in this order so violations are always reported the same way.
REQUIREMENTS: Tuple[tuple[str, str], ...] = (
    ("delivery_address_id", "choose a delivery address"),
    ("billing_address_id", "choose a billing address"),
    ("delivery_method_id", "choose a delivery method"),
    ("cart", "the cart is empty"),
)


@dataclass
class SelectionStore:
    current: Selection = field(default_factory=Selection)
    addresses: Tuple[Address, ...] = ()
    delivery_methods: Tuple[DeliveryMethod, ...] = ()

    def apply_defaults(
        self,
        addresses: Sequence[Address],
        delivery_methods: Sequence[DeliveryMethod],
    ) -> Selection:
        """Pre-select what the customer most likely wants.

        Only empty fields are filled, so choices survive a reload. Nothing is
        forced: with no addresses or methods the fields stay empty and the
        Info step stays blocked.
        """
        self.addresses = tuple(addresses)
        self.delivery_methods = tuple(m for m in delivery_methods if m.active)

        address = next((a for a in self.addresses if a.is_default), None)
        if address is None and self.addresses:
            address = self.addresses[0]

        changes: dict[str, Any] = {}
        if address is not None:
            if not self.current.delivery_address_id:
                changes["delivery_address_id"] = address.id
            if not self.current.billing_address_id:
                changes["billing_address_id"] = address.id
        if self.delivery_methods and not self.current.delivery_method_id:
            changes["delivery_method_id"] = self.delivery_methods[0].id

        self.current = replace(self.current, **changes)
        return self.current

    def update(self, **changes: Any) -> Result[Selection, CheckoutError]:
        unknown = sorted(set(changes) - SELECTION_FIELDS)
        if unknown:
            return Failure(
                ValidationError("unknown selection fields", violations=tuple(unknown))
            )

        normalized: dict[str, Any] = {}
        for name, value in changes.items():
            if name == "payment_method":
                normalized[name] = PaymentMethod.parse(value)
            elif name in ("coupon_code", "customer_note"):
                text = (value or "").strip()
                normalized[name] = text or None
            else:
                normalized[name] = (value or "").strip()

        invalid = self._unknown_references(normalized)
        if invalid:
            return Failure(
                ValidationError("selection refers to unavailable options", violations=invalid)
            )

        self.current = replace(self.current, **normalized)
        return Success(self.current)

    def missing_requirements(self, cart: CartSnapshot) -> tuple[str, ...]:
        missing = []
        for name, _ in REQUIREMENTS:
            if name == "cart":
                if cart.is_empty:
                    missing.append(name)
            elif not getattr(self.current, name):
                missing.append(name)
        return tuple(missing)

    def can_advance_from_info(self, cart: CartSnapshot) -> bool:
        return not self.missing_requirements(cart)

    def require_advance(self, cart: CartSnapshot) -> Result[Selection, CheckoutError]:
        missing = self.missing_requirements(cart)
        if not missing:
            return Success(self.current)
        reasons = dict(REQUIREMENTS)
        return Failure(
            ValidationError(
                "; ".join(reasons[name] for name in missing),
                violations=missing,
            )
        )

    def delivery_method(self) -> DeliveryMethod | None:
        return next(
            (m for m in self.delivery_methods if m.id == self.current.delivery_method_id),
            None,
        )

    def _unknown_references(self, changes: dict[str, Any]) -> tuple[str, ...]:
        # Only checked against what the providers returned; an empty list
        # means the provider was unavailable, not that nothing is valid.
        known_addresses = {a.id for a in self.addresses}
        known_methods = {m.id for m in self.delivery_methods}
        invalid = []
        for name in ("delivery_address_id", "billing_address_id"):
            value = changes.get(name)
            if value and known_addresses and value not in known_addresses:
                invalid.append(name)
        value = changes.get("delivery_method_id")
        if value and known_methods and value not in known_methods:
            invalid.append("delivery_method_id")
        return tuple(invalid)
