from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

DELIVERY_FEE = Decimal("5.99")
NOMINAL_TAX_RATE = Decimal("0.08")
WELCOME_CODE = "WELCOME20"
WELCOME_DISCOUNT_RATE = Decimal("0.20")

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


class PricingError(Exception):
    """Base class for cart valuation failures."""


class InvalidLineError(PricingError):
    """Raised when a cart line carries a negative price or a bad quantity."""


class PromotionInvalidError(PricingError):
    """Raised when a promotion code is unknown or not applicable."""

    discount = _ZERO

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


def _to_decimal(value) -> Decimal:
    if isinstance(value, bool):
        raise InvalidLineError(f"Ungueltiger Betrag: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError as exc:
        raise InvalidLineError(f"Ungueltiger Betrag: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidLineError(f"Ungueltiger Betrag: {value!r}")
    return amount


def quantize_money(value) -> Decimal:
    amount = _to_decimal(value)
    try:
        return amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    except ArithmeticError as exc:
        # Amounts with more digits than the decimal context can hold.
        raise InvalidLineError(f"Betrag ist zu gross: {value}") from exc


def normalize_promotion_code(code: str | None) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class CartLine:
    unit_price: Decimal
    quantity: int
    option_modifiers: tuple[Decimal, ...] = ()

    @classmethod
    def build(cls, unit_price, quantity: int, option_modifiers: Iterable = ()) -> "CartLine":
        return cls(
            unit_price=_to_decimal(unit_price),
            quantity=quantity,
            option_modifiers=tuple(_to_decimal(m) for m in option_modifiers),
        )

    @property
    def effective_unit_price(self) -> Decimal:
        return _to_decimal(self.unit_price) + sum(
            (_to_decimal(m) for m in self.option_modifiers), _ZERO
        )


@dataclass(frozen=True)
class PromotionRequest:
    code: str
    is_first_order: bool = False


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    discount: Decimal
    discounted_subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal
    promotion_code: Optional[str] = field(default=None)


def validate_line(line: CartLine) -> None:
    quantity = line.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidLineError(f"Menge muss eine ganze Zahl sein, erhalten: {quantity!r}")
    if quantity < 1:
        raise InvalidLineError(f"Menge muss mindestens 1 sein, erhalten: {quantity}")
    if _to_decimal(line.unit_price) < 0:
        raise InvalidLineError(f"Negativer Stueckpreis: {line.unit_price}")
    if line.effective_unit_price < 0:
        raise InvalidLineError(
            f"Stueckpreis inklusive Optionen ist negativ: {line.effective_unit_price}"
        )


def line_total(line: CartLine) -> Decimal:
    validate_line(line)
    return line.effective_unit_price * line.quantity


def apply_promotion(code: str | None, subtotal, is_first_order: bool) -> Decimal:
    """Return the discount a promotion code grants on ``subtotal``.

    Only ``WELCOME20`` exists and only on a customer's first order; anything
    else raises :class:`PromotionInvalidError` so the caller can tell the
    customer instead of silently pricing without a discount.
    """
    normalized = normalize_promotion_code(code)
    if normalized != WELCOME_CODE:
        raise PromotionInvalidError(normalized, f"Unbekannter Aktionscode: {normalized or '-'}")
    if not is_first_order:
        raise PromotionInvalidError(
            normalized, f"{normalized} gilt nur fuer die erste Bestellung."
        )

    base = max(_ZERO, _to_decimal(subtotal))
    discount = quantize_money(base * WELCOME_DISCOUNT_RATE)
    return min(discount, quantize_money(base))


def compute_breakdown(
    lines: Sequence[CartLine], promotion: PromotionRequest | None = None
) -> PriceBreakdown:
    subtotal = sum((line_total(line) for line in lines), _ZERO)

    discount = _ZERO
    promotion_code = None
    if promotion is not None:
        discount = apply_promotion(promotion.code, subtotal, promotion.is_first_order)
        promotion_code = normalize_promotion_code(promotion.code)

    # Discount comes off before tax, so tax tracks the discounted base.
    discounted = max(_ZERO, subtotal - discount)
    delivery_fee = DELIVERY_FEE if lines else _ZERO
    tax = quantize_money(discounted * NOMINAL_TAX_RATE)

    discounted = quantize_money(discounted)
    delivery_fee = quantize_money(delivery_fee)
    return PriceBreakdown(
        subtotal=quantize_money(subtotal),
        discount=quantize_money(discount),
        discounted_subtotal=discounted,
        delivery_fee=delivery_fee,
        tax=tax,
        total=discounted + delivery_fee + tax,
        promotion_code=promotion_code,
    )
