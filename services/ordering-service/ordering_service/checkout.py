from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping, Optional, Sequence

from .availability import AvailabilityVerdict, is_open_now
from .hours_client import HoursServiceError, HoursSource
from .pricing import (
    CartLine,
    PriceBreakdown,
    PromotionInvalidError,
    PromotionRequest,
    compute_breakdown,
)

logger = logging.getLogger(__name__)

ESTIMATED_DELIVERY_MINUTES = 45


class BusinessClosedError(Exception):
    """Raised when an order is placed outside the opening hours."""

    def __init__(self, verdict: AvailabilityVerdict):
        super().__init__(
            f"Bestellungen sind gerade nicht moeglich. Heutige Zeiten: {verdict.active_window_description}"
        )
        self.verdict = verdict


@dataclass(frozen=True)
class PricedCart:
    breakdown: PriceBreakdown
    promotion_message: Optional[str] = None


@dataclass
class CheckoutCommand:
    lines: Sequence[CartLine]
    now: datetime
    promotion_code: str | None = None
    is_first_order: bool = False


@dataclass(frozen=True)
class CheckoutQuote:
    breakdown: PriceBreakdown
    availability: AvailabilityVerdict
    estimated_delivery_time: datetime
    promotion_message: Optional[str] = None


def price_cart(
    lines: Sequence[CartLine], promotion_code: str | None = None, is_first_order: bool = False
) -> PricedCart:
    """Price a cart, falling back to no discount when the code is rejected."""
    if not (promotion_code or "").strip():
        return PricedCart(compute_breakdown(lines))
    try:
        return PricedCart(compute_breakdown(lines, PromotionRequest(promotion_code, is_first_order)))
    except PromotionInvalidError as exc:
        logger.info("Promotion %s rejected: %s", exc.code, exc)
        return PricedCart(compute_breakdown(lines), promotion_message=str(exc))


class CheckoutService:
    def __init__(self, hours_source: HoursSource):
        self._hours = hours_source

    def load_schedule(self) -> Optional[Mapping]:
        try:
            return self._hours.fetch_hours()
        except HoursServiceError as exc:
            logger.warning("Opening hours unavailable: %s", exc)
            return None

    def availability(self, now: datetime) -> AvailabilityVerdict:
        return is_open_now(self.load_schedule(), now)

    def quote(self, command: CheckoutCommand) -> CheckoutQuote:
        verdict = self.availability(command.now)
        if verdict.fail_open:
            logger.warning("Skipping opening hours check for checkout")
        elif not verdict.open:
            logger.info(
                "Checkout rejected outside opening hours (%s: %s)",
                verdict.day_key,
                verdict.active_window_description,
            )
            raise BusinessClosedError(verdict)

        priced = price_cart(command.lines, command.promotion_code, command.is_first_order)
        return CheckoutQuote(
            breakdown=priced.breakdown,
            availability=verdict,
            estimated_delivery_time=command.now + timedelta(minutes=ESTIMATED_DELIVERY_MINUTES),
            promotion_message=priced.promotion_message,
        )
