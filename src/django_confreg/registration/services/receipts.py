"""Receipt tokens and PDF receipts.

A receipt link must work from an email without a login, so it carries its
own proof: ``"<order id>.<hex HMAC-SHA256(secret, 'receipt:<order id>')>"``.
Tokens do not expire. :func:`verify_receipt_token` returns ``None`` for every
kind of bad token so callers cannot tell malformed from forged.
"""

import hashlib
import hmac
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from django.urls import reverse
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from django_confreg.registration.models import Order, OrderItem
from django_confreg.settings import get_config, get_receipt_secret

logger = logging.getLogger(__name__)

_TOKEN_PREFIX = "receipt"
_ACCENT = colors.HexColor("#00C853")
_MUTED = colors.HexColor("#888888")


def _signature(order_id: int) -> str:
    payload = f"{_TOKEN_PREFIX}:{order_id}".encode()
    return hmac.new(get_receipt_secret().encode(), payload, hashlib.sha256).hexdigest()


def generate_receipt_token(order_id: int) -> str:
    """Return the signed receipt token for an order id."""
    return f"{order_id}.{_signature(order_id)}"


def verify_receipt_token(token: str) -> int | None:
    """Return the order id a receipt token was issued for, or ``None``."""
    id_part, sep, signature = token.partition(".")
    if not sep or not (id_part.isascii() and id_part.isdigit()):
        return None
    order_id = int(id_part)
    if order_id <= 0:
        return None
    if not hmac.compare_digest(signature.encode(), _signature(order_id).encode()):
        return None
    return order_id


def receipt_url(order: Order) -> str:
    """Absolute URL of the public receipt download for *order*."""
    base = get_config().api_base_url.rstrip("/")
    return base + reverse("confreg_payments:receipt", args=[generate_receipt_token(order.pk)])


@dataclass(frozen=True, slots=True)
class ReceiptLine:
    name: str
    item_type: str
    price: Decimal
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class ReceiptData:
    """Everything printed on a receipt."""

    order_number: str
    paid_at: datetime | None
    payment_channel: str
    currency: str
    customer_name: str
    customer_email: str
    subtotal: Decimal
    fee: Decimal
    total: Decimal
    lines: tuple[ReceiptLine, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, object]:
        return {
            "orderNumber": self.order_number,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "paymentChannel": self.payment_channel,
            "currency": self.currency,
            "items": [
                {"name": line.name, "type": line.item_type, "price": str(line.price), "quantity": line.quantity}
                for line in self.lines
            ],
            "subtotal": str(self.subtotal),
            "fee": str(self.fee),
            "total": str(self.total),
        }


def build_receipt(order: Order) -> ReceiptData:
    """Collect the receipt contents of an order."""
    payment = getattr(order, "payment", None)
    user = order.user
    name = f"{getattr(user, 'first_name', '')} {getattr(user, 'last_name', '')}".strip()
    lines = tuple(
        ReceiptLine(
            name=item.ticket_type.name,
            item_type=item.item_type,
            price=item.price,
            quantity=item.quantity,
        )
        for item in order.items.select_related("ticket_type")
    )
    return ReceiptData(
        order_number=order.order_number,
        paid_at=payment.paid_at if payment else None,
        payment_channel=payment.payment_channel if payment else "",
        currency=order.currency,
        customer_name=name or user.get_username(),
        customer_email=user.email,
        subtotal=order.subtotal,
        fee=order.fee,
        total=order.total_amount,
        lines=lines,
    )


def _money(currency: str, amount: Decimal) -> str:
    return f"{currency} {amount:,.2f}"


def render_receipt_pdf(data: ReceiptData) -> bytes:
    """Render a one-page A4 receipt.

    The document is generated in ReportLab's invariant mode, so the same
    receipt data always yields byte-identical output.
    """
    config = get_config().receipts
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    pdf.setTitle(f"Receipt - {data.order_number}")
    pdf.setAuthor(config.issuer_name)
    pdf.setSubject("Payment Receipt")

    width, height = A4
    left = 20 * mm
    right = width - 20 * mm
    y = height - 25 * mm

    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawCentredString(width / 2, y, config.issuer_name)
    if config.issuer_address:
        y -= 6 * mm
        pdf.setFont("Helvetica", 9)
        pdf.setFillColor(_MUTED)
        pdf.drawCentredString(width / 2, y, config.issuer_address)
        pdf.setFillColor(colors.black)

    y -= 14 * mm
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawCentredString(width / 2, y, "PAYMENT RECEIPT")
    y -= 5 * mm
    pdf.setStrokeColor(_ACCENT)
    pdf.setLineWidth(2)
    pdf.line(left, y, right, y)

    def label_value(x: float, top: float, label: str, value: str) -> None:
        pdf.setFont("Helvetica", 8)
        pdf.setFillColor(_MUTED)
        pdf.drawString(x, top, label)
        pdf.setFont("Helvetica", 11)
        pdf.setFillColor(colors.black)
        pdf.drawString(x, top - 5 * mm, value)

    middle = left + (right - left) / 2
    y -= 10 * mm
    label_value(left, y, "RECEIPT NUMBER", data.order_number)
    paid = data.paid_at.strftime("%B %d, %Y %H:%M") if data.paid_at else "-"
    label_value(middle, y, "DATE PAID", paid)
    y -= 14 * mm
    label_value(left, y, "CUSTOMER", data.customer_name)
    label_value(middle, y, "PAYMENT METHOD", data.payment_channel.replace("_", " ").title() or "-")
    pdf.setFont("Helvetica", 9)
    pdf.setFillColor(_MUTED)
    pdf.drawString(left, y - 10 * mm, data.customer_email)

    y -= 22 * mm
    pdf.setFillColor(colors.black)
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(left, y, "ITEM")
    pdf.drawString(middle + 20 * mm, y, "QTY")
    pdf.drawRightString(right, y, "AMOUNT")
    y -= 3 * mm
    pdf.setStrokeColor(_MUTED)
    pdf.setLineWidth(0.5)
    pdf.line(left, y, right, y)

    pdf.setFont("Helvetica", 10)
    for line in data.lines:
        y -= 7 * mm
        suffix = " (Add-on)" if line.item_type == OrderItem.ItemType.ADDON else ""
        pdf.drawString(left, y, f"{line.name}{suffix}")
        pdf.drawString(middle + 20 * mm, y, str(line.quantity))
        pdf.drawRightString(right, y, _money(data.currency, line.price * line.quantity))

    y -= 5 * mm
    pdf.line(left, y, right, y)
    for label, amount in (("Subtotal", data.subtotal), ("Processing fee", data.fee)):
        y -= 7 * mm
        pdf.drawString(middle, y, label)
        pdf.drawRightString(right, y, _money(data.currency, amount))

    y -= 9 * mm
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(middle, y, "Total paid")
    pdf.drawRightString(right, y, _money(data.currency, data.total))

    pdf.setFont("Helvetica", 8)
    pdf.setFillColor(_MUTED)
    pdf.drawCentredString(width / 2, 15 * mm, "This receipt was generated electronically and is valid without signature.")

    pdf.showPage()
    pdf.save()
    logger.debug("Rendered receipt PDF for %s", data.order_number)
    return buffer.getvalue()
