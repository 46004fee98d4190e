from __future__ import annotations

import os
from dataclasses import asdict
from datetime import datetime
from typing import Iterator, List

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from . import schemas
from .availability import ScheduleFormatError, is_open_now, sanitize_schedule
from .checkout import BusinessClosedError, CheckoutCommand, CheckoutService, price_cart
from .hours_client import HoursSource, HTTPHoursClient, StaticHoursSource
from .order_status import (
    AlreadyFinalizedError,
    IllegalTransitionError,
    OrderStatus,
    allowed_transitions,
    apply_transition,
    is_terminal,
)
from .pricing import CartLine, InvalidLineError, PriceBreakdown


def build_hours_source() -> Iterator[HoursSource]:
    mode = os.environ.get("HOURS_MODE", "static").lower()
    if mode != "http":
        yield StaticHoursSource()
        return

    base_url = os.environ.get("HOURS_SERVICE_URL")
    if not base_url:
        raise RuntimeError("HOURS_SERVICE_URL muss gesetzt sein, wenn HOURS_MODE=http")
    timeout = float(os.environ.get("HOURS_TIMEOUT_SECONDS", "5.0"))
    client = HTTPHoursClient(base_url, timeout=timeout)
    try:
        yield client
    finally:
        client.close()


def get_checkout_service(
    hours_source: HoursSource = Depends(build_hours_source),
) -> CheckoutService:
    return CheckoutService(hours_source)


def _to_lines(items: List[schemas.CartLineIn]) -> list[CartLine]:
    return [
        CartLine.build(item.unit_price, item.quantity, item.option_modifiers)
        for item in items
    ]


def _breakdown_out(breakdown: PriceBreakdown) -> schemas.PriceBreakdownOut:
    return schemas.PriceBreakdownOut(
        subtotal=float(breakdown.subtotal),
        discount=float(breakdown.discount),
        discounted_subtotal=float(breakdown.discounted_subtotal),
        delivery_fee=float(breakdown.delivery_fee),
        tax=float(breakdown.tax),
        total=float(breakdown.total),
        promotion_code=breakdown.promotion_code,
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ordering Service",
        version="0.1.0",
        description="Bewertet Warenkoerbe, prueft Oeffnungszeiten und Bestellstatus.",
    )
    allowed_origins = [
        origin.strip() for origin in os.environ.get("ALLOWED_ORIGINS", "*").split(",")
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz", response_model=schemas.HealthResponse, tags=["system"])
    async def healthz() -> schemas.HealthResponse:
        return schemas.HealthResponse(status="ok")

    @app.post("/pricing/quote", response_model=schemas.PricingQuoteResponse, tags=["pricing"])
    async def quote_cart(payload: schemas.PricingQuoteRequest) -> schemas.PricingQuoteResponse:
        try:
            priced = price_cart(
                _to_lines(payload.items), payload.promotion_code, payload.is_first_order
            )
        except InvalidLineError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        return schemas.PricingQuoteResponse(
            breakdown=_breakdown_out(priced.breakdown),
            promotion_message=priced.promotion_message,
        )

    @app.post(
        "/availability/evaluate",
        response_model=schemas.AvailabilityResponse,
        tags=["availability"],
    )
    async def evaluate_availability(
        payload: schemas.AvailabilityRequest,
    ) -> schemas.AvailabilityResponse:
        verdict = is_open_now(payload.hours, payload.at)
        return schemas.AvailabilityResponse(**asdict(verdict))

    @app.get("/availability", response_model=schemas.AvailabilityResponse, tags=["availability"])
    async def current_availability(
        at: datetime | None = None,
        service: CheckoutService = Depends(get_checkout_service),
    ) -> schemas.AvailabilityResponse:
        verdict = service.availability(at or datetime.now())
        return schemas.AvailabilityResponse(**asdict(verdict))

    @app.post("/hours/sanitize", response_model=schemas.HoursResponse, tags=["availability"])
    async def sanitize_hours(payload: schemas.HoursDocument) -> schemas.HoursResponse:
        try:
            week = sanitize_schedule(payload.hours)
        except ScheduleFormatError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        return schemas.HoursResponse(
            hours={key: schemas.DayScheduleOut(**day.to_dict()) for key, day in week.items()}
        )

    @app.get(
        "/orders/status/{order_status}/transitions",
        response_model=schemas.AllowedTransitionsResponse,
        tags=["orders"],
    )
    async def list_transitions(order_status: OrderStatus) -> schemas.AllowedTransitionsResponse:
        return schemas.AllowedTransitionsResponse(
            status=order_status,
            terminal=is_terminal(order_status),
            allowed=list(allowed_transitions(order_status)),
        )

    @app.post(
        "/orders/status-transitions",
        response_model=schemas.StatusChangeOut,
        tags=["orders"],
    )
    async def change_status(payload: schemas.StatusTransitionRequest) -> schemas.StatusChangeOut:
        try:
            change = apply_transition(
                payload.current,
                payload.requested,
                payload.at or datetime.now(),
                payload.cancellation_reason,
            )
        except (AlreadyFinalizedError, IllegalTransitionError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        return schemas.StatusChangeOut(**asdict(change))

    @app.post("/checkout/quote", response_model=schemas.CheckoutQuoteResponse, tags=["checkout"])
    async def checkout_quote(
        payload: schemas.CheckoutQuoteRequest,
        service: CheckoutService = Depends(get_checkout_service),
    ) -> schemas.CheckoutQuoteResponse:
        if not payload.items:
            raise HTTPException(status_code=400, detail="Mindestens ein Menueeintrag ist erforderlich.")
        try:
            quote = service.quote(
                CheckoutCommand(
                    lines=_to_lines(payload.items),
                    now=payload.at or datetime.now(),
                    promotion_code=payload.promotion_code,
                    is_first_order=payload.is_first_order,
                )
            )
        except InvalidLineError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        except BusinessClosedError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

        return schemas.CheckoutQuoteResponse(
            breakdown=_breakdown_out(quote.breakdown),
            availability=schemas.AvailabilityResponse(**asdict(quote.availability)),
            estimated_delivery_time=quote.estimated_delivery_time,
            promotion_message=quote.promotion_message,
        )

    return app
