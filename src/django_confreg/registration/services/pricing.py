"""Gateway-fee-inclusive pricing.

The buyer pays the gateway fee. Given a net amount the organiser must
receive, :func:`calculate_fee` finds the smallest gross amount (rounded up to
the cent) such that the gateway's percentage fee, fixed fee, and the tax on
both, deducted from the gross, still leave at least the net amount::

    gross = ceil((net + fixed * (1 + tax)) / (1 - rate * (1 + tax)), 2)
    fee = gross - net

Worked example (``thai_card``: 3.65% + 10 THB, 7% VAT, net 1000 THB)::

    (1000 + 10.70) / (1 - 0.039055) = 1051.7771...  ->  gross 1051.78, fee 51.78
"""

import enum
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from django_confreg.settings import FeeRate, get_config

_CENT = Decimal("0.01")


class FeeMethod(enum.StrEnum):
    """Gateway channels with distinct fee schedules."""

    PROMPTPAY = "promptpay"
    THAI_CARD = "thai_card"
    INTERNATIONAL_CARD = "international_card"

    @property
    def fee_rate(self) -> FeeRate:
        """The configured fee schedule for this channel."""
        return getattr(get_config().fees, self.value)


class PaymentMethod(enum.StrEnum):
    """Payment method the buyer picks at checkout."""

    CARD = "card"
    QR = "qr"


@dataclass(frozen=True, slots=True)
class FeeBreakdown:
    """Result of a fee calculation.

    Invariant: ``total - fee == net`` exactly.
    """

    net: Decimal
    fee: Decimal
    total: Decimal
    method: FeeMethod

    def as_dict(self) -> dict[str, str]:
        return {
            "subtotal": str(self.net),
            "fee": str(self.fee),
            "total": str(self.total),
            "feeMethod": self.method.value,
        }


def calculate_fee(net: Decimal, method: FeeMethod) -> FeeBreakdown:
    """Compute the gross amount that nets *net* after gateway fees.

    Args:
        net: The amount the organiser must receive (non-negative).
        method: The gateway channel whose fee schedule applies.

    Returns:
        A :class:`FeeBreakdown` whose ``total`` is rounded up to the cent.

    Raises:
        ValueError: If *net* is negative.
    """
    net = Decimal(net)
    if net < 0:
        msg = f"Net amount must be non-negative, got {net}"
        raise ValueError(msg)
    net = net.quantize(_CENT, rounding=ROUND_HALF_UP)

    fee_rate = method.fee_rate
    tax_factor = 1 + fee_rate.tax
    gross = (net + fee_rate.fixed_fee * tax_factor) / (1 - fee_rate.rate * tax_factor)
    total = gross.quantize(_CENT, rounding=ROUND_CEILING)
    fee = (total - net).quantize(_CENT, rounding=ROUND_HALF_UP)
    return FeeBreakdown(net=net, fee=fee, total=total, method=method)


def resolve_fee_method(payment_method: str, currency: str) -> FeeMethod:
    """Pick the fee schedule for a payment method and charge currency.

    Foreign-currency charges are always international cards; in the
    domestic currency a QR payment is PromptPay and anything else is a
    domestic card.
    """
    if currency.upper() != get_config().domestic_currency.upper():
        return FeeMethod.INTERNATIONAL_CARD
    if payment_method == PaymentMethod.QR:
        return FeeMethod.PROMPTPAY
    return FeeMethod.THAI_CARD


def payment_method_types(payment_method: str, currency: str) -> list[str]:
    """Return the Stripe ``payment_method_types`` to offer for a checkout."""
    if payment_method == PaymentMethod.QR and currency.upper() == get_config().domestic_currency.upper():
        return ["promptpay"]
    return ["card"]
