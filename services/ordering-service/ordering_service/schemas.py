from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .order_status import OrderStatus


class HealthResponse(BaseModel):
    status: Literal["ok"]


class CartLineIn(BaseModel):
    unit_price: Decimal = Field(..., description="Stueckpreis des Menueeintrags")
    quantity: int = Field(..., gt=0, description="Anzahl des Menueeintrags")
    option_modifiers: List[Decimal] = Field(
        default_factory=list, description="Preisaufschlaege der gewaehlten Optionen"
    )


class PricingQuoteRequest(BaseModel):
    items: List[CartLineIn]
    promotion_code: Optional[str] = None
    is_first_order: bool = False


class PriceBreakdownOut(BaseModel):
    subtotal: float
    discount: float
    discounted_subtotal: float
    delivery_fee: float
    tax: float
    total: float
    promotion_code: Optional[str] = None


class PricingQuoteResponse(BaseModel):
    breakdown: PriceBreakdownOut
    promotion_message: Optional[str] = None


class AvailabilityRequest(BaseModel):
    hours: Any = Field(..., description="Oeffnungszeiten pro Wochentag")
    at: datetime


class AvailabilityResponse(BaseModel):
    open: bool
    active_window_description: str
    day_key: Optional[str] = None
    fail_open: bool = False


class TimeIntervalOut(BaseModel):
    open: str
    close: str


class DayScheduleOut(BaseModel):
    closed: bool
    intervals: List[TimeIntervalOut]


class HoursDocument(BaseModel):
    hours: Dict[str, Any]


class HoursResponse(BaseModel):
    hours: Dict[str, DayScheduleOut]


class AllowedTransitionsResponse(BaseModel):
    status: OrderStatus
    terminal: bool
    allowed: List[OrderStatus]


class StatusTransitionRequest(BaseModel):
    current: OrderStatus
    requested: OrderStatus
    cancellation_reason: Optional[str] = Field(
        default=None, description="Nur bei Stornierung gespeichert"
    )
    at: Optional[datetime] = None


class StatusChangeOut(BaseModel):
    previous: OrderStatus
    status: OrderStatus
    changed_at: datetime
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class CheckoutQuoteRequest(BaseModel):
    items: List[CartLineIn]
    promotion_code: Optional[str] = None
    is_first_order: bool = False
    at: Optional[datetime] = None


class CheckoutQuoteResponse(BaseModel):
    breakdown: PriceBreakdownOut
    availability: AvailabilityResponse
    estimated_delivery_time: datetime
    promotion_message: Optional[str] = None
