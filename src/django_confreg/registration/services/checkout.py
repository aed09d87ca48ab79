"""Checkout service: turns a purchase request into a pending order.

Every business rule is checked before the first row is written, so a
rejected request leaves no trace. Accepted requests produce an ``Order`` with
its items at captured prices, a pending ``Payment``, and a Stripe
PaymentIntent whose client secret is handed back to the frontend.
"""

import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import stripe
from django.db import transaction

from django_confreg.conference.models import Session
from django_confreg.errors import DomainRuleViolation, GatewayError, NotFound, ValidationFailed
from django_confreg.registration.models import (
    Order,
    OrderItem,
    Payment,
    Registration,
    RegistrationSession,
    TicketSession,
    TicketType,
)
from django_confreg.registration.services.pricing import (
    FeeBreakdown,
    calculate_fee,
    payment_method_types,
    resolve_fee_method,
)
from django_confreg.registration.stripe_client import StripeClient
from django_confreg.settings import get_config

if TYPE_CHECKING:
    from django_confreg.auth import Principal

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_BASE36 = string.digits + string.ascii_uppercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def _random_code(length: int) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def generate_order_number() -> str:
    """Return a new order number: ``<prefix>-<base36 millis>-<4 random>``."""
    prefix = get_config().order_number_prefix
    return f"{prefix}-{_base36(time.time_ns() // 1_000_000)}-{_random_code(4)}"


def generate_registration_code() -> str:
    """Return a new registration code: ``<prefix>-<base36 millis><6 random>``."""
    prefix = get_config().registration_code_prefix
    return f"{prefix}-{_base36(time.time_ns() // 1_000_000)}{_random_code(6)}"


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """A validated purchase request.

    ``package_id`` names a primary package (e.g. ``"student"``); an empty
    value makes the request add-on only. ``addon_ids`` name add-on groups
    (e.g. ``"workshop"``, ``"gala"``).
    """

    package_id: str = ""
    addon_ids: tuple[str, ...] = ()
    currency: str = "THB"
    payment_method: str = "card"
    workshop_session_id: int | None = None

    @property
    def is_addon_only(self) -> bool:
        return not self.package_id


@dataclass
class CheckoutResult:
    """Outcome of a successful checkout."""

    client_secret: str
    order: Order
    breakdown: FeeBreakdown

    def as_dict(self) -> dict[str, Any]:
        return {
            "clientSecret": self.client_secret,
            "orderId": self.order.pk,
            "orderNumber": self.order.order_number,
            "currency": self.order.currency,
            **self.breakdown.as_dict(),
        }


@dataclass
class HeldPurchases:
    """What a user already owns through paid orders."""

    has_primary: bool = False
    primary_ticket: TicketType | None = None
    addon_groups: set[str] = field(default_factory=set)


def get_held_purchases(user_id: int) -> HeldPurchases:
    """Summarise the primary ticket and add-on groups a user has paid for."""
    held = HeldPurchases()
    items = OrderItem.objects.filter(
        order__user_id=user_id,
        order__status=Order.Status.PAID,
    ).select_related("ticket_type")
    for item in items:
        ticket = item.ticket_type
        if ticket.category == TicketType.Category.PRIMARY:
            held.has_primary = True
            held.primary_ticket = held.primary_ticket or ticket
        elif ticket.group_name:
            held.addon_groups.add(ticket.group_name.lower())
    return held


def resolve_ticket(identifier: str, currency: str, category: str) -> TicketType | None:
    """Resolve a frontend package or add-on identifier to a catalog row.

    Primary packages map to role codes through ``package_roles`` and match
    tickets whose ``allowed_roles`` include any of them. Add-ons match on
    ``group_name`` (equal or containing the identifier). Only active tickets
    in the requested currency are considered; the lowest ``display_order``
    wins.
    """
    candidates = TicketType.objects.filter(
        currency=currency.upper(),
        category=category,
        is_active=True,
    ).order_by("display_order", "id")

    ident = identifier.lower()
    if category == TicketType.Category.PRIMARY:
        roles = get_config().package_roles.get(ident)
        if not roles:
            return None
        for ticket in candidates:
            if any(role in ticket.role_codes for role in roles):
                return ticket
        return None

    for ticket in candidates:
        group = ticket.group_name.lower()
        if group and (group == ident or ident in group):
            return ticket
    return None


def session_enrollment(session: Session) -> int:
    """Count confirmed registrations linked to a session."""
    return RegistrationSession.objects.filter(
        session=session,
        registration__status=Registration.Status.CONFIRMED,
    ).count()


def _dedupe(values: tuple[str, ...]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        key = value.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result


def _validate_session_choice(addon: TicketType, session_id: int | None) -> Session:
    if session_id is None:
        raise DomainRuleViolation("WORKSHOP_SESSION_REQUIRED", "Workshop session is required")

    link = (
        TicketSession.objects.select_related("session")
        .filter(ticket_type=addon, session_id=session_id, session__is_active=True)
        .first()
    )
    if link is None:
        raise DomainRuleViolation("INVALID_SESSION", "Invalid workshop session selection")

    session = link.session
    if session.max_capacity and session_enrollment(session) >= session.max_capacity:
        raise DomainRuleViolation("SESSION_FULL", "Selected workshop session is full")
    return session


class CheckoutService:
    """Stateless service for creating and cancelling orders."""

    @staticmethod
    @transaction.atomic
    def create_order(principal: "Principal", request: CheckoutRequest) -> CheckoutResult:
        """Validate a purchase request and open a pending order against Stripe.

        Args:
            principal: The authenticated buyer.
            request: The purchase request.

        Returns:
            A :class:`CheckoutResult` with the client secret and the order.

        Raises:
            DomainRuleViolation: When a purchase rule rejects the request.
            NotFound: When an identifier does not resolve to a catalog row.
            ValidationFailed: When the request mixes catalog rows of
                different events.
            GatewayError: When Stripe refuses to create the PaymentIntent.
        """
        currency = request.currency.upper()
        addon_ids = _dedupe(request.addon_ids)
        held = get_held_purchases(principal.user_id)

        if not request.is_addon_only and held.has_primary:
            raise DomainRuleViolation(
                "DUPLICATE_PRIMARY",
                "You already have a registration ticket for this event. Use add-on purchase instead.",
            )
        if request.is_addon_only and not held.has_primary:
            raise DomainRuleViolation(
                "NO_PRIMARY_TICKET",
                "You must purchase a registration ticket before buying add-ons.",
            )
        if request.is_addon_only and not addon_ids:
            raise DomainRuleViolation("NO_ADDONS_SELECTED", "Please select at least one add-on.")
        for addon_id in addon_ids:
            if addon_id in held.addon_groups:
                raise DomainRuleViolation("DUPLICATE_ADDON", f'You already purchased the "{addon_id}" add-on.')

        primary: TicketType | None = None
        if not request.is_addon_only:
            primary = resolve_ticket(request.package_id, currency, TicketType.Category.PRIMARY)
            if primary is None:
                raise NotFound(f'No {currency} ticket found for package "{request.package_id}"')
            if primary.is_sold_out:
                raise DomainRuleViolation("SOLD_OUT", "Ticket sold out")
            if not primary.is_on_sale():
                raise DomainRuleViolation("TICKET_NOT_ON_SALE", "This ticket is not on sale")

        addons: list[tuple[TicketType, Session | None]] = []
        for addon_id in addon_ids:
            addon = resolve_ticket(addon_id, currency, TicketType.Category.ADDON)
            if addon is None:
                raise NotFound(f'No {currency} add-on found for "{addon_id}"')
            if addon.requires_session_choice:
                session = _validate_session_choice(addon, request.workshop_session_id)
            else:
                session = None
            addons.append((addon, session))

        tickets = ([primary] if primary else []) + [addon for addon, _ in addons]
        event_ids = {ticket.event_id for ticket in tickets}
        if len(event_ids) != 1:
            raise ValidationFailed("All selected items must belong to the same event")
        event = tickets[0].event

        net = sum((ticket.price for ticket in tickets), Decimal("0.00"))
        fee_method = resolve_fee_method(request.payment_method, currency)
        breakdown = calculate_fee(net, fee_method)

        client = StripeClient(event)

        order = Order.objects.create(
            user_id=principal.user_id,
            event=event,
            order_number=generate_order_number(),
            currency=currency,
            subtotal=breakdown.net,
            fee=breakdown.fee,
            total_amount=breakdown.total,
            fee_method=fee_method.value,
        )
        if primary is not None:
            OrderItem.objects.create(
                order=order,
                item_type=OrderItem.ItemType.TICKET,
                ticket_type=primary,
                price=primary.price,
            )
        for addon, session in addons:
            OrderItem.objects.create(
                order=order,
                item_type=OrderItem.ItemType.ADDON,
                ticket_type=addon,
                price=addon.price,
                session=session,
            )

        metadata = {
            "order_id": str(order.pk),
            "order_number": order.order_number,
            "user_id": str(principal.user_id),
            "package_id": request.package_id,
            "addon_ids": ",".join(addon_ids),
            "is_addon_only": "true" if request.is_addon_only else "false",
            "net_amount": str(breakdown.net),
            "fee": str(breakdown.fee),
            "fee_method": fee_method.value,
            "workshop_session_id": str(request.workshop_session_id or ""),
        }
        try:
            intent = client.create_payment_intent(
                order,
                payment_method_types=payment_method_types(request.payment_method, currency),
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe refused PaymentIntent for order %s", order.order_number)
            raise GatewayError("Failed to create payment intent") from exc

        Payment.objects.create(
            order=order,
            amount=breakdown.total,
            currency=currency,
            stripe_payment_intent_id=intent.id,
        )

        logger.info(
            "Created order %s for user %s: net=%s fee=%s total=%s %s via %s (intent %s)",
            order.order_number,
            principal.user_id,
            breakdown.net,
            breakdown.fee,
            breakdown.total,
            currency,
            fee_method.value,
            intent.id,
        )
        return CheckoutResult(client_secret=intent.client_secret, order=order, breakdown=breakdown)

    @staticmethod
    @transaction.atomic
    def cancel_order(principal: "Principal", order_id: int) -> Order:
        """Cancel a pending order and its PaymentIntent.

        The gateway cancellation is best-effort: an intent that Stripe
        already considers cancelled or unknown does not block the local
        state change.

        Raises:
            NotFound: If the order does not exist or belongs to another user.
            DomainRuleViolation: If the order is no longer pending.
        """
        order = (
            Order.objects.select_for_update()
            .select_related("event")
            .filter(pk=order_id, user_id=principal.user_id)
            .first()
        )
        if order is None:
            raise NotFound("Order not found")
        if order.status != Order.Status.PENDING:
            raise DomainRuleViolation("ORDER_NOT_PENDING", "Only pending orders can be cancelled")

        payment = Payment.objects.select_for_update().filter(order=order).first()
        if payment is not None:
            try:
                StripeClient(order.event).cancel_payment_intent(payment.stripe_payment_intent_id)
            except (stripe.StripeError, ValueError):
                logger.warning(
                    "Could not cancel PaymentIntent %s for order %s; it may already be cancelled",
                    payment.stripe_payment_intent_id,
                    order.order_number,
                    exc_info=True,
                )
            payment.status = Payment.Status.CANCELLED
            payment.save(update_fields=["status", "updated_at"])

        order.status = Order.Status.CANCELLED
        order.save(update_fields=["status", "updated_at"])
        logger.info("Order %s cancelled by user %s", order.order_number, principal.user_id)
        return order
