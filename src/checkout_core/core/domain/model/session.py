from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List
from uuid import uuid4

from checkout_core.core.domain.model.cart import CartSnapshot
from checkout_core.core.domain.model.errors import PaymentError
from checkout_core.core.domain.model.order import CustomerId, Order, now_utc
from checkout_core.core.domain.model.payment import PaymentHandle
from checkout_core.core.domain.model.selection import SelectionStore

if TYPE_CHECKING:
    from checkout_core.core.domain.service.confirmation_listener import (
        ConfirmationListener,
    )


class CheckoutStep(str, Enum):
    INFO = "info"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


class NoticeKind(str, Enum):
    INFO = "info"
    ERROR = "error"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str
    created_at: datetime = field(default_factory=now_utc)


def new_attempt_token() -> str:
    return uuid4().hex


def new_session_id() -> str:
    return uuid4().hex


@dataclass
class CheckoutSession:
    """Everything one checkout flow owns, passed explicitly to every operation.

    At most one order and one payment handle exist at a time; only
    ``reset_for_new_order`` clears them.
    """

    customer_id: CustomerId
    cart: CartSnapshot
    selection: SelectionStore = field(default_factory=SelectionStore)
    session_id: str = field(default_factory=new_session_id)
    step: CheckoutStep = CheckoutStep.INFO
    order: Order | None = None
    payment_handle: PaymentHandle | None = None
    payment_confirmed: bool = False
    payment_error: PaymentError | None = None
    attempt_token: str = field(default_factory=new_attempt_token)
    notices: List[Notice] = field(default_factory=list)
    submitting: bool = False
    closed: bool = False
    listener: "ConfirmationListener | None" = field(
        default=None, repr=False, compare=False
    )

    def move_to(self, step: CheckoutStep) -> None:
        self.step = step

    def add_notice(self, kind: NoticeKind, message: str) -> Notice:
        notice = Notice(kind, message)
        self.notices.append(notice)
        return notice

    def confirm_payment(self) -> bool:
        """Returns True only on the transition to confirmed."""
        if self.payment_confirmed:
            return False
        self.payment_confirmed = True
        return True

    def record_payment_error(self, error: PaymentError) -> None:
        self.payment_error = error
        self.add_notice(NoticeKind.ERROR, error.message)

    def clear_payment_handle(self) -> None:
        self.payment_handle = None

    def reset_for_new_order(self, cart: CartSnapshot | None = None) -> None:
        if cart is not None:
            self.cart = cart
        self.step = CheckoutStep.INFO
        self.order = None
        self.payment_handle = None
        self.payment_confirmed = False
        self.payment_error = None
        self.attempt_token = new_attempt_token()
        self.notices.clear()
