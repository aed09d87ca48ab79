"""Stripe client wrapper for per-event Stripe API operations.

Each event carries its own Stripe account keys, so the client is initialized
with an ``Event`` instance and uses the ``stripe.StripeClient`` pattern
(v1 namespace) for all API calls.
"""

import logging
from typing import TYPE_CHECKING

import stripe

from django_confreg.registration.stripe_utils import convert_amount_for_api, obfuscate_key
from django_confreg.settings import get_config

if TYPE_CHECKING:
    from django_confreg.conference.models import Event
    from django_confreg.registration.models import Order

logger = logging.getLogger(__name__)


class StripeClient:
    """Per-event Stripe API client.

    Wraps ``stripe.StripeClient`` (v1 namespace) and binds every call to the
    event's secret key and the globally configured API version.

    Args:
        event: The event whose Stripe keys will be used.

    Raises:
        ValueError: If the event has no Stripe secret key configured.
    """

    def __init__(self, event: "Event") -> None:
        raw_key = event.stripe_secret_key
        if not raw_key:
            msg = (
                f"Event '{event.slug}' does not have a Stripe secret key configured. "
                f"Set 'stripe_secret_key' on the Event record before initializing StripeClient."
            )
            raise ValueError(msg)

        secret_key = str(raw_key)
        self.event = event
        config = get_config()
        self.client = stripe.StripeClient(
            secret_key,
            stripe_version=config.stripe.api_version,
        )

        logger.info("Initialized StripeClient for event '%s' (key %s)", event.slug, obfuscate_key(secret_key))

    def create_payment_intent(
        self,
        order: "Order",
        *,
        payment_method_types: list[str],
        metadata: dict[str, str],
    ) -> stripe.PaymentIntent:
        """Create a PaymentIntent charging the order's gross total.

        The order id is used in the idempotency key so a retried request for
        the same order never creates a second intent.

        Args:
            order: The order to collect payment for.
            payment_method_types: Stripe payment method types to offer.
            metadata: String metadata attached to the intent.

        Returns:
            The created ``stripe.PaymentIntent``.

        Raises:
            ValueError: If Stripe returns no ``client_secret``.
        """
        intent = self.client.v1.payment_intents.create(
            params={
                "amount": convert_amount_for_api(order.total_amount, order.currency),
                "currency": order.currency.lower(),
                "payment_method_types": payment_method_types,
                "metadata": metadata,
                "description": f"Order {order.order_number} for {self.event.name}",
            },
            options={
                "idempotency_key": f"create-intent-{order.pk}",
            },
        )
        if not intent.client_secret:
            msg = f"Stripe returned no client_secret for order {order.order_number}"
            raise ValueError(msg)
        return intent

    def retrieve_payment_intent(self, intent_id: str) -> stripe.PaymentIntent:
        """Fetch the live state of a PaymentIntent."""
        return self.client.v1.payment_intents.retrieve(intent_id)

    def cancel_payment_intent(self, intent_id: str) -> stripe.PaymentIntent:
        """Cancel a PaymentIntent that has not been confirmed yet."""
        return self.client.v1.payment_intents.cancel(intent_id)

    def get_receipt_url(self, latest_charge: object) -> str:
        """Return the hosted receipt URL of a PaymentIntent's latest charge.

        Args:
            latest_charge: The intent's ``latest_charge``, either a charge id
                or an expanded charge object.

        Returns:
            The receipt URL, or an empty string when there is no charge yet.
        """
        if not latest_charge:
            return ""
        if isinstance(latest_charge, str):
            latest_charge = self.client.v1.charges.retrieve(latest_charge)
        return getattr(latest_charge, "receipt_url", None) or ""
