from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationError(CheckoutError):
    violations: tuple[str, ...] = ()

    def __str__(self) -> str:
        if not self.violations:
            return self.message
        return f"{self.message} [{', '.join(self.violations)}]"


@dataclass(frozen=True)
class InvalidProductId(ValidationError):
    product_id: str = ""
    index: int = -1

    def __str__(self) -> str:
        return f"invalid_product_id: lines[{self.index}]={self.product_id!r} ({self.message})"


@dataclass(frozen=True)
class InvalidTransition(CheckoutError):
    step: str = ""
    action: str = ""

    def __str__(self) -> str:
        return f"invalid_transition: {self.action} from {self.step} ({self.message})"


@dataclass(frozen=True)
class SubmissionInProgress(CheckoutError):
    session_id: str = ""

    def __str__(self) -> str:
        return f"submission_in_progress: {self.session_id} ({self.message})"


@dataclass(frozen=True)
class SessionNotFound(CheckoutError):
    session_id: str = ""

    def __str__(self) -> str:
        return f"session_not_found: {self.session_id} ({self.message})"


# ---- service boundary --------------------------------------------------------


@dataclass(frozen=True)
class ServiceError(CheckoutError):
    """Failure reported by (or while reaching) an external service.

    Carries what support needs for triage: the order id when one is known and
    the upstream HTTP status when there was a response at all.
    """

    order_id: str | None = None
    status_code: int | None = None


@dataclass(frozen=True)
class OrderError(ServiceError):
    def __str__(self) -> str:
        return f"order_error: status={self.status_code} ({self.message})"


@dataclass(frozen=True)
class IdempotencyKeyConflict(OrderError):
    key: str = ""

    def __str__(self) -> str:
        return f"idempotency_key_conflict: {self.key} ({self.message})"


@dataclass(frozen=True)
class PaymentError(ServiceError):
    def __str__(self) -> str:
        return f"payment_error: order={self.order_id} status={self.status_code} ({self.message})"


@dataclass(frozen=True)
class ProviderError(ServiceError):
    pass


@dataclass(frozen=True)
class ConfirmationProvenanceError(CheckoutError):
    origin: str = ""

    def __str__(self) -> str:
        return f"untrusted_origin: {self.origin!r} ({self.message})"
