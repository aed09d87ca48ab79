"""Payment reconciliation: apply gateway outcomes to local orders.

Three independent paths report the same PaymentIntent outcome: the Stripe
webhook, the buyer's post-redirect verify call, and the status poll. Each of
them funnels into :class:`ReconciliationService`, which applies a success at
most once per order.

The success path runs in one transaction with the order row locked, so a
webhook and a poll racing for the same order serialise on the lock and the
loser sees the already-paid state and returns the existing registration.
"""

import logging
from typing import TYPE_CHECKING

import stripe
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from django_confreg.conference.models import Session
from django_confreg.registration.models import (
    Order,
    OrderItem,
    Payment,
    Registration,
    RegistrationSession,
    TicketSession,
    TicketType,
)
from django_confreg.registration.services.checkout import generate_registration_code
from django_confreg.registration.signals import order_paid
from django_confreg.registration.stripe_client import StripeClient

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """A paid order cannot be applied to local state."""


def _sessions_for_item(order: Order, item: OrderItem) -> list[Session]:
    """Return the sessions an order item grants access to.

    A buyer-chosen session wins. Otherwise the ticket's linked sessions are
    used; primary tickets without links fall back to the event's main
    sessions, and those links are backfilled so the next purchase finds them.
    """
    if item.session_id is not None:
        return [item.session]

    sessions = list(Session.objects.filter(ticket_links__ticket_type=item.ticket_type))
    if sessions or item.item_type != OrderItem.ItemType.TICKET:
        return sessions

    sessions = list(Session.objects.filter(event=order.event, is_main_session=True, is_active=True))
    if sessions:
        TicketSession.objects.bulk_create(
            [TicketSession(ticket_type=item.ticket_type, session=session) for session in sessions],
            ignore_conflicts=True,
        )
        logger.info(
            "Backfilled %d main-session links for ticket type %s",
            len(sessions),
            item.ticket_type_id,
        )
    return sessions


def _confirmed_registration(user: "AbstractBaseUser", order: Order) -> Registration | None:
    return Registration.objects.filter(
        user=user,
        event=order.event,
        status=Registration.Status.CONFIRMED,
    ).first()


def _latest_payment_error(intent: object) -> bool:
    return bool(getattr(intent, "last_payment_error", None))


class ReconciliationService:
    """Stateless service applying PaymentIntent outcomes to orders."""

    @staticmethod
    @transaction.atomic
    def reconcile_success(
        order_id: int,
        intent_id: str,
        *,
        receipt_url: str = "",
        channel: str = "",
    ) -> Registration | None:
        """Mark an order paid and grant the attendee access.

        Idempotent: when the order is already paid, or a registration was
        already created for it, the existing registration is returned and
        nothing is written. Cancelled orders are terminal and are left
        untouched.

        Args:
            order_id: Primary key of the order.
            intent_id: The succeeded PaymentIntent id.
            receipt_url: Stripe's hosted receipt URL, if known.
            channel: The gateway channel used (e.g. ``"card"``).

        Returns:
            The registration the order was applied to, or ``None`` when the
            order is unknown or cancelled.

        Raises:
            ReconciliationError: When the PaymentIntent does not belong to the
                order, or an add-on-only order has no registration to attach
                to. The transaction is rolled back.
        """
        order = Order.objects.select_for_update().select_related("user", "event").filter(pk=order_id).first()
        if order is None:
            logger.warning("Reconciliation for unknown order %s (intent %s)", order_id, intent_id)
            return None

        if order.status == Order.Status.CANCELLED:
            logger.error(
                "PaymentIntent %s succeeded for cancelled order %s; manual review required",
                intent_id,
                order.order_number,
            )
            return None

        existing = Registration.objects.filter(order=order).first()
        if order.status == Order.Status.PAID or existing is not None:
            logger.info("Order %s already reconciled, skipping", order.order_number)
            return existing or _confirmed_registration(order.user, order)

        payment = Payment.objects.select_for_update().filter(order=order).first()
        if payment is not None and payment.stripe_payment_intent_id != intent_id:
            msg = (
                f"PaymentIntent {intent_id} does not match order {order.order_number} "
                f"(expected {payment.stripe_payment_intent_id})"
            )
            raise ReconciliationError(msg)

        now = timezone.now()
        order.status = Order.Status.PAID
        order.save(update_fields=["status", "updated_at"])

        if payment is None:
            payment = Payment(
                order=order,
                amount=order.total_amount,
                currency=order.currency,
                stripe_payment_intent_id=intent_id,
            )
        payment.status = Payment.Status.PAID
        payment.payment_channel = channel
        payment.stripe_receipt_url = receipt_url
        payment.paid_at = now
        payment.save()

        items = list(order.items.select_related("ticket_type", "session"))
        primary_item = next((i for i in items if i.item_type == OrderItem.ItemType.TICKET), None)
        user = order.user

        registration = _confirmed_registration(user, order)
        if primary_item is not None and registration is None:
            registration = Registration.objects.create(
                reg_code=generate_registration_code(),
                event=order.event,
                ticket_type=primary_item.ticket_type,
                user=user,
                order=order,
                email=user.email,
                first_name=getattr(user, "first_name", ""),
                last_name=getattr(user, "last_name", ""),
            )
            logger.info("Created registration %s for order %s", registration.reg_code, order.order_number)
        elif primary_item is not None:
            logger.warning(
                "User %s already holds registration %s; applying order %s to it",
                user.pk,
                registration.reg_code,
                order.order_number,
            )
        elif registration is None:
            msg = f"Add-on order {order.order_number} has no confirmed registration to attach to"
            raise ReconciliationError(msg)

        for item in items:
            item.registration = registration
            item.save(update_fields=["registration"])
            sessions = _sessions_for_item(order, item)
            for session in sessions:
                RegistrationSession.objects.get_or_create(
                    registration=registration,
                    session=session,
                    defaults={"ticket_type": item.ticket_type},
                )
            TicketType.objects.filter(pk=item.ticket_type_id).update(sold_count=F("sold_count") + item.quantity)
            logger.info(
                "Linked %d session(s) for %s on registration %s",
                len(sessions),
                item.ticket_type.name,
                registration.reg_code,
            )

        logger.info("Order %s marked PAID via payment_intent %s", order.order_number, intent_id)
        transaction.on_commit(
            lambda: order_paid.send(sender=Order, order=order, registration=registration, user=user),
            robust=True,
        )
        return registration

    @staticmethod
    def mark_failed(order_id: int, intent_id: str) -> bool:
        """Cancel a pending order whose payment failed.

        Returns:
            ``True`` if the order changed state.
        """
        return ReconciliationService._close_pending(order_id, intent_id, Payment.Status.FAILED)

    @staticmethod
    def mark_cancelled(order_id: int, intent_id: str) -> bool:
        """Cancel a pending order whose PaymentIntent was cancelled.

        Returns:
            ``True`` if the order changed state.
        """
        return ReconciliationService._close_pending(order_id, intent_id, Payment.Status.CANCELLED)

    @staticmethod
    @transaction.atomic
    def _close_pending(order_id: int, intent_id: str, payment_status: str) -> bool:
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            logger.warning("No order %s for intent %s", order_id, intent_id)
            return False
        if order.status != Order.Status.PENDING:
            logger.info(
                "Order %s is %s, ignoring %s for intent %s",
                order.order_number,
                order.status,
                payment_status,
                intent_id,
            )
            return False

        payment = Payment.objects.select_for_update().filter(order=order).first()
        if payment is not None and payment.stripe_payment_intent_id != intent_id:
            logger.warning(
                "Ignoring %s for intent %s: order %s is paying with %s",
                payment_status,
                intent_id,
                order.order_number,
                payment.stripe_payment_intent_id,
            )
            return False

        order.status = Order.Status.CANCELLED
        order.save(update_fields=["status", "updated_at"])
        if payment is not None:
            payment.status = payment_status
            payment.save(update_fields=["status", "updated_at"])
        logger.info("Order %s cancelled; payment %s (intent %s)", order.order_number, payment_status, intent_id)
        return True

    @staticmethod
    def sync_with_gateway(payment: Payment) -> Payment:
        """Poll Stripe for a pending payment and apply whatever it reports.

        Used by the verify and status endpoints when the webhook has not (yet)
        arrived. Gateway errors are logged and leave the order pending.

        Returns:
            The payment, refreshed from the database.
        """
        if payment.status != Payment.Status.PENDING:
            return payment

        order = payment.order
        intent_id = payment.stripe_payment_intent_id
        try:
            client = StripeClient(order.event)
            intent = client.retrieve_payment_intent(intent_id)
        except (stripe.StripeError, ValueError):
            logger.exception("Could not retrieve PaymentIntent %s for order %s", intent_id, order.order_number)
            return payment

        status = getattr(intent, "status", "")
        if status == "succeeded":
            try:
                receipt_url = client.get_receipt_url(getattr(intent, "latest_charge", None))
            except stripe.StripeError:
                logger.warning("Could not fetch receipt URL for intent %s", intent_id, exc_info=True)
                receipt_url = ""
            types = getattr(intent, "payment_method_types", None) or []
            ReconciliationService.reconcile_success(
                order.pk,
                intent_id,
                receipt_url=receipt_url,
                channel=types[0] if types else "card",
            )
        elif status == "canceled":
            ReconciliationService.mark_cancelled(order.pk, intent_id)
        elif status == "requires_payment_method" and _latest_payment_error(intent):
            ReconciliationService.mark_failed(order.pk, intent_id)

        order.refresh_from_db()
        payment.refresh_from_db()
        return payment
