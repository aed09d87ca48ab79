"""Tests for receipt tokens, receipt data and PDF rendering."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.test import override_settings

from django_confreg.conference.models import Event
from django_confreg.registration.models import Order, OrderItem, Payment, TicketType
from django_confreg.registration.services.receipts import (
    ReceiptData,
    ReceiptLine,
    build_receipt,
    generate_receipt_token,
    receipt_url,
    render_receipt_pdf,
    verify_receipt_token,
)

User = get_user_model()


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def paid_order(db):
    event = Event.objects.create(name="ACCP", slug="accp-receipt", start_date="2027-05-01", end_date="2027-05-03")
    user = User.objects.create_user(
        username="grace", email="grace@example.com", password="x", first_name="Grace", last_name="Hopper"
    )
    primary = TicketType.objects.create(
        event=event,
        category=TicketType.Category.PRIMARY,
        name="Thai Professional",
        slug="thpro",
        price=Decimal("6500.00"),
        quota=10,
    )
    gala = TicketType.objects.create(
        event=event,
        category=TicketType.Category.ADDON,
        group_name="gala",
        name="Gala Dinner",
        slug="gala",
        price=Decimal("1200.00"),
        quota=10,
    )
    order = Order.objects.create(
        user=user,
        event=event,
        order_number="ORD-RCPT-0001",
        currency="THB",
        subtotal=Decimal("7700.00"),
        fee=Decimal("398.00"),
        total_amount=Decimal("8098.00"),
        fee_method="thai_card",
        status=Order.Status.PAID,
    )
    OrderItem.objects.create(order=order, item_type=OrderItem.ItemType.TICKET, ticket_type=primary, price=primary.price)
    OrderItem.objects.create(order=order, item_type=OrderItem.ItemType.ADDON, ticket_type=gala, price=gala.price)
    Payment.objects.create(
        order=order,
        amount=order.total_amount,
        currency="THB",
        status=Payment.Status.PAID,
        stripe_payment_intent_id="pi_receipt",
        payment_channel="card",
        paid_at=datetime(2027, 3, 1, 10, 30, tzinfo=UTC),
    )
    return order


@pytest.fixture
def receipt_data():
    return ReceiptData(
        order_number="ORD-RCPT-0002",
        paid_at=datetime(2027, 3, 1, 10, 30, tzinfo=UTC),
        payment_channel="promptpay",
        currency="THB",
        customer_name="Grace Hopper",
        customer_email="grace@example.com",
        subtotal=Decimal("3500.00"),
        fee=Decimal("62.93"),
        total=Decimal("3562.93"),
        lines=(ReceiptLine(name="Thai Student", item_type="ticket", price=Decimal("3500.00")),),
    )


# =============================================================================
# TestReceiptToken
# =============================================================================


@pytest.mark.unit
class TestReceiptToken:
    def test_round_trip(self):
        token = generate_receipt_token(42)

        assert token.startswith("42.")
        assert len(token.split(".", 1)[1]) == 64
        assert verify_receipt_token(token) == 42

    def test_token_is_deterministic(self):
        assert generate_receipt_token(7) == generate_receipt_token(7)

    def test_signature_for_other_order_is_rejected(self):
        signature = generate_receipt_token(42).split(".", 1)[1]

        assert verify_receipt_token(f"43.{signature}") is None

    def test_tampered_signature_is_rejected(self):
        token = generate_receipt_token(42)
        tampered = token[:-1] + ("0" if token[-1] != "0" else "1")

        assert verify_receipt_token(tampered) is None

    @pytest.mark.parametrize("token", ["", "42", "abc.def", "-1.abc", "0.abc", "42.", ".abc"])
    def test_malformed_tokens_are_rejected(self, token):
        assert verify_receipt_token(token) is None

    def test_non_ascii_digits_are_rejected(self):
        signature = generate_receipt_token(12).partition(".")[2]

        assert verify_receipt_token(f"١٢.{signature}") is None
        assert verify_receipt_token(f"12.{signature}") == 12

    def test_secret_rotation_invalidates_tokens(self, settings):
        token = generate_receipt_token(42)

        with override_settings(DJANGO_CONFREG={**settings.DJANGO_CONFREG, "receipts": {"secret": "rotated"}}):
            assert verify_receipt_token(token) is None


# =============================================================================
# TestReceiptUrl
# =============================================================================


@pytest.mark.django_db
class TestReceiptUrl:
    def test_absolute_url_carries_token(self, paid_order):
        url = receipt_url(paid_order)

        token = generate_receipt_token(paid_order.pk)
        assert url == f"https://api.test.example.com/api/payments/receipt/{token}"


# =============================================================================
# TestBuildReceipt
# =============================================================================


@pytest.mark.django_db
class TestBuildReceipt:
    def test_collects_order_payment_and_lines(self, paid_order):
        data = build_receipt(paid_order)

        assert data.order_number == "ORD-RCPT-0001"
        assert data.customer_name == "Grace Hopper"
        assert data.customer_email == "grace@example.com"
        assert data.payment_channel == "card"
        assert data.total == Decimal("8098.00")
        assert [(line.name, line.item_type) for line in data.lines] == [
            ("Thai Professional", "ticket"),
            ("Gala Dinner", "addon"),
        ]

    def test_as_dict_uses_string_amounts(self, paid_order):
        payload = build_receipt(paid_order).as_dict()

        assert payload["orderNumber"] == "ORD-RCPT-0001"
        assert payload["paidAt"] == "2027-03-01T10:30:00+00:00"
        assert payload["subtotal"] == "7700.00"
        assert payload["fee"] == "398.00"
        assert payload["total"] == "8098.00"
        assert payload["items"][1] == {"name": "Gala Dinner", "type": "addon", "price": "1200.00", "quantity": 1}

    def test_name_falls_back_to_username(self, paid_order):
        User.objects.filter(pk=paid_order.user_id).update(first_name="", last_name="")
        paid_order.refresh_from_db()

        assert build_receipt(paid_order).customer_name == "grace"

    def test_order_without_payment(self, paid_order):
        Payment.objects.filter(order=paid_order).delete()
        order = Order.objects.get(pk=paid_order.pk)

        data = build_receipt(order)

        assert data.paid_at is None
        assert data.payment_channel == ""
        assert data.as_dict()["paidAt"] is None


# =============================================================================
# TestRenderReceiptPdf
# =============================================================================


@pytest.mark.unit
class TestRenderReceiptPdf:
    def test_produces_pdf_document(self, receipt_data):
        pdf = render_receipt_pdf(receipt_data)

        assert pdf.startswith(b"%PDF")
        assert pdf.rstrip().endswith(b"%%EOF")

    def test_rendering_is_deterministic(self, receipt_data):
        assert render_receipt_pdf(receipt_data) == render_receipt_pdf(receipt_data)

    def test_unpaid_receipt_still_renders(self, receipt_data):
        unpaid = ReceiptData(
            order_number="ORD-RCPT-0003",
            paid_at=None,
            payment_channel="",
            currency="USD",
            customer_name="Guest",
            customer_email="guest@example.com",
            subtotal=Decimal("0.00"),
            fee=Decimal("0.00"),
            total=Decimal("0.00"),
        )

        assert render_receipt_pdf(unpaid).startswith(b"%PDF")
