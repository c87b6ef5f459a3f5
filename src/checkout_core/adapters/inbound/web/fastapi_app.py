"""HTTP host for checkout sessions.

The confirmation route takes provenance from the ``Origin`` header. Browsers
set it honestly, but any other caller can send whatever it likes, so the
origin allow-list only filters; it does not authenticate. When a gateway
secret is configured, confirmations must also carry it in
``X-Gateway-Secret``.
"""

from __future__ import annotations

import hmac
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable
from uuid import uuid4

import structlog
from fastapi import Body, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from returns.result import Failure, Result

from checkout_core.adapters.inbound.web.sessions import SessionRegistry
from checkout_core.core.domain.model.confirmation import ConfirmationEnvelope
from checkout_core.core.domain.model.errors import (
    CheckoutError,
    IdempotencyKeyConflict,
    InvalidTransition,
    OrderError,
    PaymentError,
    ServiceError,
    SessionNotFound,
    SubmissionInProgress,
    ValidationError,
)
from checkout_core.core.domain.model.order import Money, Order
from checkout_core.core.domain.model.payment import PaymentHandle
from checkout_core.core.domain.model.session import CheckoutSession
from checkout_core.core.ports.inbound.checkout import CheckoutUseCase, RawCartLine
from checkout_core.core.ports.outbound.confirmation import ConfirmationChannel
from checkout_core.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)

# ---- HTTP DTOs (adapter layer) ---------------------------------------------


class CartLineIn(BaseModel):
    product_id: str = Field(
        min_length=1, examples=["3fa85f64-5717-4562-b3fc-2c963f66afa6"]
    )
    quantity: int = Field(gt=0, examples=[2])
    unit_price: Decimal = Field(ge=0, examples=["5000.00"])


class BeginCheckoutRequest(BaseModel):
    customer_id: str = Field(min_length=1, examples=["cust-001"])
    lines: list[CartLineIn] = Field(default_factory=list)


class SelectionPatch(BaseModel):
    delivery_address_id: str | None = None
    billing_address_id: str | None = None
    delivery_method_id: str | None = None
    coupon_code: str | None = None
    customer_note: str | None = None
    payment_method: str | None = Field(None, examples=["transfer", "multicaixa_express"])


class RestartRequest(BaseModel):
    lines: list[CartLineIn] | None = None


class MoneyOut(BaseModel):
    amount: str
    currency: str


class CartLineOut(BaseModel):
    product_id: str
    quantity: int
    unit_price: str
    subtotal: str


class SelectionOut(BaseModel):
    delivery_address_id: str
    billing_address_id: str
    delivery_method_id: str
    coupon_code: str | None
    customer_note: str | None
    payment_method: str


class OrderOut(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment_status: str
    subtotal: MoneyOut
    shipping: MoneyOut
    discount: MoneyOut
    tax: MoneyOut
    total: MoneyOut


class PaymentOut(BaseModel):
    payment_id: str
    status: str
    redirect_or_embed_url: str
    expires_at: str | None


class NoticeOut(BaseModel):
    kind: str
    message: str
    created_at: str


class SessionResponse(BaseModel):
    session_id: str
    customer_id: str
    step: str
    can_advance: bool
    missing: list[str]
    selection: SelectionOut
    cart: list[CartLineOut]
    cart_subtotal: MoneyOut
    order: OrderOut | None
    payment: PaymentOut | None
    payment_confirmed: bool
    payment_error: str | None
    listening: bool
    closed: bool
    notices: list[NoticeOut]


class ErrorResponse(BaseModel):
    type: str
    message: str
    violations: list[str] | None = None
    order_id: str | None = None
    upstream_status: int | None = None
    details: list[dict[str, Any]] | None = None


# ---- Mapping helpers -------------------------------------------------------


def _map_error_to_http(err: CheckoutError) -> tuple[int, ErrorResponse]:
    body = ErrorResponse(type=type(err).__name__, message=err.message)

    if isinstance(err, ValidationError):
        body.violations = list(err.violations) or None
        return 400, body

    if isinstance(err, SessionNotFound):
        return 404, body

    if isinstance(err, ServiceError):
        body.order_id = err.order_id
        body.upstream_status = err.status_code

    if isinstance(
        err, (InvalidTransition, SubmissionInProgress, IdempotencyKeyConflict)
    ):
        return 409, body

    if isinstance(err, (OrderError, PaymentError)):
        return 502, body

    return 500, body


def _errors(*codes: int) -> dict[int | str, dict[str, Any]]:
    return {code: {"model": ErrorResponse} for code in codes}


def _error_response(err: CheckoutError) -> JSONResponse:
    status, body = _map_error_to_http(err)
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def _caller_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    return request.client.host if request.client else ""


def _raw_lines(lines: list[CartLineIn]) -> tuple[RawCartLine, ...]:
    return tuple(
        RawCartLine(
            product_id=ln.product_id, quantity=ln.quantity, unit_price=ln.unit_price
        )
        for ln in lines
    )


def _money(m: Money) -> MoneyOut:
    return MoneyOut(amount=str(m.amount), currency=m.currency)


def _order_out(order: Order) -> OrderOut:
    return OrderOut(
        order_id=order.order_id.value,
        order_number=order.order_number,
        status=order.status.value,
        payment_status=order.payment_status.value,
        subtotal=_money(order.subtotal),
        shipping=_money(order.shipping),
        discount=_money(order.discount),
        tax=_money(order.tax),
        total=_money(order.total),
    )


def _payment_out(handle: PaymentHandle) -> PaymentOut:
    return PaymentOut(
        payment_id=handle.payment_id,
        status=handle.status.value,
        redirect_or_embed_url=handle.redirect_or_embed_url,
        expires_at=handle.expires_at.isoformat() if handle.expires_at else None,
    )


def _to_response(session: CheckoutSession) -> dict[str, Any]:
    sel = session.selection.current
    return SessionResponse(
        session_id=session.session_id,
        customer_id=session.customer_id.value,
        step=session.step.value,
        can_advance=session.selection.can_advance_from_info(session.cart),
        missing=list(session.selection.missing_requirements(session.cart)),
        selection=SelectionOut(
            delivery_address_id=sel.delivery_address_id,
            billing_address_id=sel.billing_address_id,
            delivery_method_id=sel.delivery_method_id,
            coupon_code=sel.coupon_code,
            customer_note=sel.customer_note,
            payment_method=sel.payment_method.value,
        ),
        cart=[
            CartLineOut(
                product_id=str(ln.product_id),
                quantity=ln.quantity,
                unit_price=str(ln.unit_price.amount),
                subtotal=str(ln.subtotal().amount),
            )
            for ln in session.cart.lines
        ],
        cart_subtotal=_money(session.cart.subtotal()),
        order=_order_out(session.order) if session.order else None,
        payment=_payment_out(session.payment_handle) if session.payment_handle else None,
        payment_confirmed=session.payment_confirmed,
        payment_error=session.payment_error.message if session.payment_error else None,
        listening=session.listener is not None and session.listener.active,
        closed=session.closed,
        notices=[
            NoticeOut(
                kind=n.kind.value,
                message=n.message,
                created_at=n.created_at.isoformat(),
            )
            for n in session.notices
        ],
    ).model_dump()


# ---- App factory -----------------------------------------------------------


def create_app(
    checkout_uc: CheckoutUseCase,
    channel: ConfirmationChannel,
    sessions: SessionRegistry | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
    confirmation_secret: str = "",
) -> FastAPI:
    registry = sessions if sessions is not None else SessionRegistry()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        for session in registry.all():
            checkout_uc.discard(session)
        if on_shutdown is not None:
            await on_shutdown()

    app = FastAPI(title="checkout_core", lifespan=lifespan)
    app.state.sessions = registry

    # --- middleware / exception handlers ------------------------------------

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next: Any) -> Any:
        clear_context()
        add_context(request_id=request.headers.get("X-Request-ID") or uuid4().hex)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            message="invalid request",
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                for e in exc.errors()
            ],
        )
        return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path)
        body = ErrorResponse(type=type(exc).__name__, message="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    def _reply(result: Result[Any, CheckoutError], session: CheckoutSession) -> Any:
        if isinstance(result, Failure):
            return _error_response(result.failure())
        return _to_response(session)

    # --- routes --------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(
        "/checkout",
        status_code=201,
        responses=_errors(400),
    )
    async def begin_checkout(req: BeginCheckoutRequest, response: Response) -> Any:
        result = await checkout_uc.begin(req.customer_id, _raw_lines(req.lines))
        if isinstance(result, Failure):
            return _error_response(result.failure())
        session = result.unwrap()
        registry.add(session)
        response.headers["Location"] = f"/checkout/{session.session_id}"
        return _to_response(session)

    @app.get("/checkout/{session_id}", responses=_errors(404))
    async def get_checkout(session_id: str) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        return _to_response(found.unwrap())

    @app.patch(
        "/checkout/{session_id}/selection",
        responses=_errors(400, 404, 409),
    )
    async def update_selection(session_id: str, patch: SelectionPatch) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        changes = patch.model_dump(exclude_unset=True)
        return _reply(checkout_uc.update_selection(session, **changes), session)

    @app.post(
        "/checkout/{session_id}/advance",
        responses=_errors(400, 404, 409),
    )
    async def advance(session_id: str) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        return _reply(checkout_uc.advance_to_payment(session), session)

    @app.post(
        "/checkout/{session_id}/place-order",
        responses=_errors(404, 409, 502),
    )
    async def place_order(
        session_id: str,
        request: Request,
        user_agent: str | None = Header(None, alias="User-Agent"),
    ) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        add_context(session_id=session_id)
        result = await checkout_uc.place_order(
            session,
            client_agent=user_agent or "",
            client_origin=_caller_address(request),
        )
        return _reply(result, session)

    @app.post(
        "/checkout/{session_id}/retry-payment",
        responses=_errors(404, 409, 502),
    )
    async def retry_payment(
        session_id: str,
        request: Request,
        user_agent: str | None = Header(None, alias="User-Agent"),
    ) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        add_context(session_id=session_id)
        result = await checkout_uc.retry_payment(
            session,
            client_agent=user_agent or "",
            client_origin=_caller_address(request),
        )
        return _reply(result, session)

    @app.post(
        "/checkout/{session_id}/reconcile",
        responses=_errors(404, 409, 502),
    )
    async def reconcile(session_id: str) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        return _reply(await checkout_uc.reconcile(session), session)

    @app.post(
        "/checkout/{session_id}/restart",
        responses=_errors(400, 404, 409),
    )
    async def restart(session_id: str, req: RestartRequest | None = Body(None)) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        lines = _raw_lines(req.lines) if req is not None and req.lines is not None else None
        return _reply(checkout_uc.restart(session, lines), session)

    @app.post(
        "/checkout/{session_id}/complete",
        responses=_errors(404, 409),
    )
    async def complete(session_id: str) -> Any:
        found = registry.get(session_id)
        if isinstance(found, Failure):
            return _error_response(found.failure())
        session = found.unwrap()
        result = checkout_uc.complete(session)
        if isinstance(result, Failure):
            return _error_response(result.failure())
        registry.remove(session_id)
        return _to_response(session)

    @app.delete("/checkout/{session_id}", status_code=204)
    async def discard(session_id: str) -> Response:
        session = registry.remove(session_id)
        if session is not None:
            checkout_uc.discard(session)
        return Response(status_code=204)

    @app.post("/checkout/{session_id}/confirmation", status_code=202)
    async def confirmation(
        session_id: str,
        request: Request,
        origin: str | None = Header(None),
        gateway_secret: str | None = Header(None, alias="X-Gateway-Secret"),
    ) -> dict[str, str]:
        # Answer is the same whatever happens; senders learn nothing.
        if confirmation_secret and not hmac.compare_digest(
            (gateway_secret or "").encode(), confirmation_secret.encode()
        ):
            logger.warning("Confirmation without valid gateway secret", session_id=session_id)
            return {"status": "accepted"}
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        envelope = ConfirmationEnvelope(
            origin=origin or "", payload=payload if isinstance(payload, dict) else {}
        )
        if channel.publish(session_id, envelope):
            await channel.drain(session_id)
        return {"status": "accepted"}

    return app
