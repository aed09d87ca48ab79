"""Tests for the StripeClient wrapper in django_confreg.registration.stripe_client."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth import get_user_model

from django_confreg.conference.models import Event
from django_confreg.registration.models import Order
from django_confreg.registration.stripe_client import StripeClient
from django_confreg.settings import get_config

User = get_user_model()


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    return Event.objects.create(
        name="ACCP Test",
        slug="accp-stripe",
        start_date="2027-05-01",
        end_date="2027-05-03",
        stripe_secret_key="sk_test_abc123",
        stripe_publishable_key="pk_test_xyz789",
    )


@pytest.fixture
def event_no_key(db):
    return Event.objects.create(
        name="No Key",
        slug="no-key",
        start_date="2027-05-01",
        end_date="2027-05-03",
    )


@pytest.fixture
def user(db):
    return User.objects.create_user(username="buyer", email="buyer@example.com", password="testpass123")


@pytest.fixture
def order(event, user):
    return Order.objects.create(
        user=user,
        event=event,
        order_number="ORD-TEST-0001",
        currency="THB",
        subtotal=Decimal("1000.00"),
        fee=Decimal("51.78"),
        total_amount=Decimal("1051.78"),
        fee_method="thai_card",
    )


@pytest.fixture
def mock_stripe_client_cls():
    with patch("django_confreg.registration.stripe_client.stripe.StripeClient") as mock_cls:
        mock_instance = MagicMock()
        mock_cls.return_value = mock_instance
        yield mock_cls, mock_instance.v1


# =============================================================================
# TestInit
# =============================================================================


@pytest.mark.unit
class TestInit:
    def test_init_raises_on_missing_stripe_key(self, event_no_key):
        with pytest.raises(ValueError, match="does not have a Stripe secret key"):
            StripeClient(event_no_key)

    def test_init_binds_key_and_api_version(self, event, mock_stripe_client_cls):
        mock_cls, _ = mock_stripe_client_cls

        client = StripeClient(event)

        assert client.event == event
        mock_cls.assert_called_once_with("sk_test_abc123", stripe_version=get_config().stripe.api_version)

    def test_init_logs_obfuscated_key(self, event, mock_stripe_client_cls, caplog):
        with caplog.at_level("INFO", logger="django_confreg.registration.stripe_client"):
            StripeClient(event)

        assert "****c123" in caplog.text
        assert "sk_test_abc123" not in caplog.text


# =============================================================================
# TestCreatePaymentIntent
# =============================================================================


@pytest.mark.unit
class TestCreatePaymentIntent:
    def test_charges_gross_total_in_smallest_unit(self, event, order, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls
        v1.payment_intents.create.return_value = SimpleNamespace(id="pi_123", client_secret="pi_123_secret")

        intent = StripeClient(event).create_payment_intent(
            order,
            payment_method_types=["card"],
            metadata={"order_id": str(order.pk)},
        )

        assert intent.id == "pi_123"
        call = v1.payment_intents.create.call_args
        params = call.kwargs["params"]
        assert params["amount"] == 105178
        assert params["currency"] == "thb"
        assert params["payment_method_types"] == ["card"]
        assert params["metadata"] == {"order_id": str(order.pk)}
        assert "ORD-TEST-0001" in params["description"]
        assert call.kwargs["options"] == {"idempotency_key": f"create-intent-{order.pk}"}

    def test_missing_client_secret_raises(self, event, order, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls
        v1.payment_intents.create.return_value = SimpleNamespace(id="pi_123", client_secret=None)

        with pytest.raises(ValueError, match="no client_secret"):
            StripeClient(event).create_payment_intent(order, payment_method_types=["card"], metadata={})


# =============================================================================
# TestRetrieveAndCancel
# =============================================================================


@pytest.mark.unit
class TestRetrieveAndCancel:
    def test_retrieve_payment_intent(self, event, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls
        v1.payment_intents.retrieve.return_value = SimpleNamespace(id="pi_1", status="succeeded")

        intent = StripeClient(event).retrieve_payment_intent("pi_1")

        assert intent.status == "succeeded"
        v1.payment_intents.retrieve.assert_called_once_with("pi_1")

    def test_cancel_payment_intent(self, event, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls

        StripeClient(event).cancel_payment_intent("pi_1")

        v1.payment_intents.cancel.assert_called_once_with("pi_1")


# =============================================================================
# TestGetReceiptUrl
# =============================================================================


@pytest.mark.unit
class TestGetReceiptUrl:
    def test_no_charge_returns_empty(self, event, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls

        assert StripeClient(event).get_receipt_url(None) == ""
        v1.charges.retrieve.assert_not_called()

    def test_charge_id_is_retrieved(self, event, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls
        v1.charges.retrieve.return_value = SimpleNamespace(receipt_url="https://pay.stripe.com/receipts/1")

        assert StripeClient(event).get_receipt_url("ch_1") == "https://pay.stripe.com/receipts/1"
        v1.charges.retrieve.assert_called_once_with("ch_1")

    def test_expanded_charge_is_read_directly(self, event, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls
        charge = SimpleNamespace(receipt_url="https://pay.stripe.com/receipts/2")

        assert StripeClient(event).get_receipt_url(charge) == "https://pay.stripe.com/receipts/2"
        v1.charges.retrieve.assert_not_called()

    def test_charge_without_receipt_returns_empty(self, event, mock_stripe_client_cls):
        _, v1 = mock_stripe_client_cls
        v1.charges.retrieve.return_value = SimpleNamespace(receipt_url=None)

        assert StripeClient(event).get_receipt_url("ch_1") == ""
