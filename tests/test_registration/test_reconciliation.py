"""Tests for ReconciliationService: applying PaymentIntent outcomes to orders."""

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe
from django.contrib.auth import get_user_model
from django.utils import timezone

from django_confreg.conference.models import Event, Session
from django_confreg.registration.models import (
    Order,
    OrderItem,
    Payment,
    Registration,
    RegistrationSession,
    TicketSession,
    TicketType,
)
from django_confreg.registration.services.reconciliation import ReconciliationError, ReconciliationService
from django_confreg.registration.signals import order_paid

User = get_user_model()


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    return Event.objects.create(
        name="ACCP Test",
        slug="accp-reconcile",
        start_date="2027-05-01",
        end_date="2027-05-03",
        status=Event.Status.PUBLISHED,
        stripe_secret_key="sk_test_reconcile",
    )


@pytest.fixture
def sessions(event):
    start = timezone.now() + timedelta(days=30)

    def make(code, session_type, **kwargs):
        return Session.objects.create(
            event=event,
            code=code,
            name=code,
            session_type=session_type,
            start_time=start,
            end_time=start + timedelta(hours=2),
            **kwargs,
        )

    return {
        "day1": make("MAIN-D1", Session.SessionType.LECTURE, is_main_session=True),
        "day2": make("MAIN-D2", Session.SessionType.LECTURE, is_main_session=True),
        "ws": make("WS-1", Session.SessionType.WORKSHOP),
    }


@pytest.fixture
def student(event, sessions):
    ticket = TicketType.objects.create(
        event=event,
        category=TicketType.Category.PRIMARY,
        name="Thai Student",
        slug="thai-student",
        price=Decimal("3500.00"),
        currency="THB",
        allowed_roles="thstd",
        quota=100,
    )
    TicketSession.objects.create(ticket_type=ticket, session=sessions["day1"])
    return ticket


@pytest.fixture
def workshop(event, sessions):
    ticket = TicketType.objects.create(
        event=event,
        category=TicketType.Category.ADDON,
        group_name="workshop",
        name="Workshop",
        slug="workshop-thb",
        price=Decimal("1500.00"),
        currency="THB",
        quota=30,
        requires_session_choice=True,
    )
    TicketSession.objects.create(ticket_type=ticket, session=sessions["ws"])
    return ticket


@pytest.fixture
def user(db):
    return User.objects.create_user(
        username="payer",
        email="payer@example.com",
        password="testpass123",
        first_name="Ada",
        last_name="Lovelace",
    )


def _order(user, event, lines, *, intent_id="pi_test_001", number="ORD-REC-0001"):
    subtotal = sum((ticket.price for ticket, _ in lines), Decimal("0.00"))
    order = Order.objects.create(
        user=user,
        event=event,
        order_number=number,
        currency="THB",
        subtotal=subtotal,
        fee=Decimal("10.00"),
        total_amount=subtotal + Decimal("10.00"),
        fee_method="thai_card",
    )
    for ticket, session in lines:
        OrderItem.objects.create(
            order=order,
            item_type=OrderItem.ItemType.TICKET
            if ticket.category == TicketType.Category.PRIMARY
            else OrderItem.ItemType.ADDON,
            ticket_type=ticket,
            price=ticket.price,
            session=session,
        )
    Payment.objects.create(
        order=order,
        amount=order.total_amount,
        currency="THB",
        stripe_payment_intent_id=intent_id,
    )
    return order


@pytest.fixture
def pending_order(user, event, student):
    return _order(user, event, [(student, None)])


@pytest.fixture
def no_emails():
    with patch("django_confreg.notifications.receivers.enqueue_email") as mock_enqueue:
        yield mock_enqueue


# =============================================================================
# TestReconcileSuccess
# =============================================================================


@pytest.mark.django_db
class TestReconcileSuccess:
    def test_marks_order_paid_and_creates_registration(self, pending_order, student, sessions, user, no_emails):
        registration = ReconciliationService.reconcile_success(
            pending_order.pk,
            "pi_test_001",
            receipt_url="https://pay.stripe.com/receipts/abc",
            channel="card",
        )

        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.PAID

        payment = Payment.objects.get(order=pending_order)
        assert payment.status == Payment.Status.PAID
        assert payment.payment_channel == "card"
        assert payment.stripe_receipt_url == "https://pay.stripe.com/receipts/abc"
        assert payment.paid_at is not None

        assert registration.reg_code.startswith("REG-")
        assert registration.user == user
        assert registration.order == pending_order
        assert registration.ticket_type == student
        assert registration.status == Registration.Status.CONFIRMED
        assert (registration.email, registration.first_name, registration.last_name) == (
            "payer@example.com",
            "Ada",
            "Lovelace",
        )

        assert list(pending_order.items.values_list("registration_id", flat=True)) == [registration.pk]
        assert list(registration.session_links.values_list("session__code", flat=True)) == ["MAIN-D1"]
        student.refresh_from_db()
        assert student.sold_count == 1

    def test_is_idempotent(self, pending_order, student, no_emails):
        first = ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")
        second = ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")

        assert first == second
        assert Registration.objects.count() == 1
        assert RegistrationSession.objects.count() == 1
        student.refresh_from_db()
        assert student.sold_count == 1

    def test_sends_order_paid_after_commit(self, pending_order, user, django_capture_on_commit_callbacks, no_emails):
        receiver = MagicMock()
        order_paid.connect(receiver, dispatch_uid="test-order-paid")
        try:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                registration = ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")
                receiver.assert_not_called()
        finally:
            order_paid.disconnect(dispatch_uid="test-order-paid")

        assert len(callbacks) >= 1
        receiver.assert_called_once()
        kwargs = receiver.call_args.kwargs
        assert kwargs["order"].pk == pending_order.pk
        assert kwargs["registration"] == registration
        assert kwargs["user"] == user

    def test_second_reconcile_sends_no_signal(self, pending_order, django_capture_on_commit_callbacks, no_emails):
        ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")

        with django_capture_on_commit_callbacks() as callbacks:
            ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")

        assert callbacks == []

    def test_unknown_order_returns_none(self, db):
        assert ReconciliationService.reconcile_success(999999, "pi_missing") is None

    def test_cancelled_order_is_left_alone(self, pending_order, caplog):
        Order.objects.filter(pk=pending_order.pk).update(status=Order.Status.CANCELLED)

        with caplog.at_level("ERROR", logger="django_confreg.registration.services.reconciliation"):
            result = ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")

        assert result is None
        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.CANCELLED
        assert Registration.objects.count() == 0
        assert "manual review" in caplog.text

    def test_mismatched_intent_is_rejected(self, pending_order):
        with pytest.raises(ReconciliationError, match="does not match"):
            ReconciliationService.reconcile_success(pending_order.pk, "pi_someone_else")

        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.PENDING
        assert Registration.objects.count() == 0

    def test_missing_payment_row_is_created(self, pending_order, no_emails):
        Payment.objects.filter(order=pending_order).delete()

        ReconciliationService.reconcile_success(pending_order.pk, "pi_late", channel="promptpay")

        payment = Payment.objects.get(order=pending_order)
        assert payment.stripe_payment_intent_id == "pi_late"
        assert payment.status == Payment.Status.PAID
        assert payment.amount == pending_order.total_amount

    def test_primary_without_links_falls_back_to_main_sessions(self, user, event, sessions, no_emails):
        ticket = TicketType.objects.create(
            event=event,
            category=TicketType.Category.PRIMARY,
            name="Thai Professional",
            slug="thai-professional",
            price=Decimal("6500.00"),
            currency="THB",
            allowed_roles="thpro",
            quota=10,
        )
        order = _order(user, event, [(ticket, None)])

        registration = ReconciliationService.reconcile_success(order.pk, "pi_test_001")

        codes = set(registration.session_links.values_list("session__code", flat=True))
        assert codes == {"MAIN-D1", "MAIN-D2"}
        assert set(TicketSession.objects.filter(ticket_type=ticket).values_list("session__code", flat=True)) == codes

    def test_addon_order_attaches_to_existing_registration(
        self, user, event, student, workshop, sessions, pending_order, no_emails
    ):
        registration = ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")
        addon_order = _order(user, event, [(workshop, sessions["ws"])], intent_id="pi_addon", number="ORD-REC-0002")

        result = ReconciliationService.reconcile_success(addon_order.pk, "pi_addon")

        assert result == registration
        assert Registration.objects.count() == 1
        link = RegistrationSession.objects.get(registration=registration, session=sessions["ws"])
        assert link.ticket_type == workshop
        workshop.refresh_from_db()
        assert workshop.sold_count == 1

    def test_addon_order_without_registration_fails(self, user, event, workshop, sessions):
        addon_order = _order(user, event, [(workshop, sessions["ws"])], intent_id="pi_addon")

        with pytest.raises(ReconciliationError, match="no confirmed registration"):
            ReconciliationService.reconcile_success(addon_order.pk, "pi_addon")

        addon_order.refresh_from_db()
        assert addon_order.status == Order.Status.PENDING

    def test_second_primary_reuses_registration(self, user, event, student, pending_order, no_emails, caplog):
        registration = ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")
        second = _order(user, event, [(student, None)], intent_id="pi_second", number="ORD-REC-0003")

        with caplog.at_level("WARNING", logger="django_confreg.registration.services.reconciliation"):
            result = ReconciliationService.reconcile_success(second.pk, "pi_second")

        assert result == registration
        assert Registration.objects.filter(user=user, status=Registration.Status.CONFIRMED).count() == 1
        assert "already holds registration" in caplog.text


# =============================================================================
# TestClosePending
# =============================================================================


@pytest.mark.django_db
class TestClosePending:
    def test_mark_failed(self, pending_order):
        assert ReconciliationService.mark_failed(pending_order.pk, "pi_test_001") is True

        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.CANCELLED
        assert Payment.objects.get(order=pending_order).status == Payment.Status.FAILED

    def test_mark_cancelled(self, pending_order):
        assert ReconciliationService.mark_cancelled(pending_order.pk, "pi_test_001") is True

        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.CANCELLED
        assert Payment.objects.get(order=pending_order).status == Payment.Status.CANCELLED

    def test_paid_order_is_not_cancelled(self, pending_order, no_emails):
        ReconciliationService.reconcile_success(pending_order.pk, "pi_test_001")

        assert ReconciliationService.mark_failed(pending_order.pk, "pi_test_001") is False

        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.PAID
        assert Payment.objects.get(order=pending_order).status == Payment.Status.PAID

    def test_unknown_order(self, db):
        assert ReconciliationService.mark_cancelled(424242, "pi_missing") is False

    @pytest.mark.parametrize("close", ["mark_failed", "mark_cancelled"])
    def test_other_intent_leaves_order_pending(self, pending_order, close, caplog):
        with caplog.at_level("WARNING"):
            changed = getattr(ReconciliationService, close)(pending_order.pk, "pi_stale_999")

        assert changed is False
        pending_order.refresh_from_db()
        assert pending_order.status == Order.Status.PENDING
        assert Payment.objects.get(order=pending_order).status == Payment.Status.PENDING
        assert "paying with pi_test_001" in caplog.text


# =============================================================================
# TestSyncWithGateway
# =============================================================================


@pytest.mark.django_db
class TestSyncWithGateway:
    @pytest.fixture
    def stripe_client(self):
        with patch("django_confreg.registration.services.reconciliation.StripeClient") as mock_cls:
            instance = MagicMock()
            instance.get_receipt_url.return_value = "https://pay.stripe.com/receipts/sync"
            mock_cls.return_value = instance
            yield instance

    def _payment(self, order):
        return Payment.objects.select_related("order", "order__event").get(order=order)

    def test_succeeded_intent_is_reconciled(self, pending_order, stripe_client, no_emails):
        stripe_client.retrieve_payment_intent.return_value = SimpleNamespace(
            status="succeeded",
            latest_charge="ch_1",
            payment_method_types=["promptpay"],
        )

        payment = ReconciliationService.sync_with_gateway(self._payment(pending_order))

        assert payment.status == Payment.Status.PAID
        assert payment.payment_channel == "promptpay"
        assert payment.stripe_receipt_url == "https://pay.stripe.com/receipts/sync"
        assert payment.order.status == Order.Status.PAID
        assert Registration.objects.filter(order=pending_order).exists()

    def test_receipt_lookup_failure_still_reconciles(self, pending_order, stripe_client, no_emails):
        stripe_client.retrieve_payment_intent.return_value = SimpleNamespace(
            status="succeeded", latest_charge="ch_1", payment_method_types=[]
        )
        stripe_client.get_receipt_url.side_effect = stripe.APIConnectionError("timeout")

        payment = ReconciliationService.sync_with_gateway(self._payment(pending_order))

        assert payment.status == Payment.Status.PAID
        assert payment.payment_channel == "card"
        assert payment.stripe_receipt_url == ""

    def test_canceled_intent_cancels_order(self, pending_order, stripe_client):
        stripe_client.retrieve_payment_intent.return_value = SimpleNamespace(status="canceled")

        payment = ReconciliationService.sync_with_gateway(self._payment(pending_order))

        assert payment.status == Payment.Status.CANCELLED
        assert payment.order.status == Order.Status.CANCELLED

    def test_failed_attempt_marks_payment_failed(self, pending_order, stripe_client):
        stripe_client.retrieve_payment_intent.return_value = SimpleNamespace(
            status="requires_payment_method",
            last_payment_error={"message": "Your card was declined."},
        )

        payment = ReconciliationService.sync_with_gateway(self._payment(pending_order))

        assert payment.status == Payment.Status.FAILED
        assert payment.order.status == Order.Status.CANCELLED

    @pytest.mark.parametrize("status", ["requires_payment_method", "processing", "requires_action"])
    def test_in_progress_intent_stays_pending(self, pending_order, stripe_client, status):
        stripe_client.retrieve_payment_intent.return_value = SimpleNamespace(status=status, last_payment_error=None)

        payment = ReconciliationService.sync_with_gateway(self._payment(pending_order))

        assert payment.status == Payment.Status.PENDING
        assert payment.order.status == Order.Status.PENDING

    def test_gateway_error_leaves_order_pending(self, pending_order, stripe_client):
        stripe_client.retrieve_payment_intent.side_effect = stripe.APIConnectionError("down")

        payment = ReconciliationService.sync_with_gateway(self._payment(pending_order))

        assert payment.status == Payment.Status.PENDING

    def test_settled_payment_is_not_polled(self, pending_order, stripe_client):
        Payment.objects.filter(order=pending_order).update(status=Payment.Status.CANCELLED)

        ReconciliationService.sync_with_gateway(self._payment(pending_order))

        stripe_client.retrieve_payment_intent.assert_not_called()
