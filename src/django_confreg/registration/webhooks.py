"""Stripe webhook handling for the registration app.

Provides a registry-based dispatch system for processing Stripe webhook events.
Each event kind (e.g. ``payment_intent.succeeded``) maps to a handler class that
encapsulates idempotent processing, signal dispatch, and error capture.

The ``stripe_webhook`` view verifies event signatures against the event's
webhook secret, deduplicates by Stripe event ID, and delegates to the
appropriate handler. All state changes go through
:class:`~django_confreg.registration.services.reconciliation.ReconciliationService`,
the same code path used by the verify and status endpoints.

Usage in URL configuration::

    from django_confreg.registration.webhooks import stripe_webhook

    urlpatterns = [
        path("payments/webhook/<slug:event_slug>/", stripe_webhook),
    ]
"""

import logging
import traceback
from typing import TYPE_CHECKING

import stripe
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from django_confreg.conference.models import Event
from django_confreg.registration.models import EventProcessingException, Payment, StripeEvent
from django_confreg.registration.services.reconciliation import ReconciliationService
from django_confreg.registration.stripe_client import StripeClient
from django_confreg.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class WebhookRegistry:
    """Registry mapping Stripe event kinds to handler classes.

    Handlers are registered at module load time and looked up by the webhook
    view when an event arrives.
    """

    def __init__(self) -> None:
        self._registry: dict[str, type[Webhook]] = {}

    def register(self, kind: str, handler_class: "type[Webhook]") -> None:
        """Register a handler class for a Stripe event kind.

        Args:
            kind: The Stripe event type string (e.g. ``"payment_intent.succeeded"``).
            handler_class: A ``Webhook`` subclass that handles this event kind.
        """
        self._registry[kind] = handler_class

    def get(self, kind: str) -> "type[Webhook] | None":
        """Return the handler class for a given event kind, or ``None``."""
        return self._registry.get(kind)

    def keys(self) -> list[str]:
        """Return all registered event kinds."""
        return list(self._registry.keys())


registry = WebhookRegistry()


# ---------------------------------------------------------------------------
# Base handler
# ---------------------------------------------------------------------------


class Webhook:
    """Base class for Stripe webhook event handlers.

    Subclasses set ``name`` to the Stripe event kind they handle and
    implement ``process_webhook()``. The base ``process()`` method wraps
    execution in idempotency checks and exception capture.

    Attributes:
        name: The Stripe event kind this handler processes.
        event: The ``StripeEvent`` model instance being handled.
        conference: The ``Event`` the webhook endpoint belongs to.
    """

    name: str = ""

    def __init__(self, event: StripeEvent, conference: Event | None = None) -> None:
        self.event = event
        self.conference = conference

    def process(self) -> None:
        """Run the handler with idempotency and error capture.

        Skips events that have already been processed. On success, marks the
        event as processed. On failure, captures the traceback to
        ``EventProcessingException`` and re-raises.
        """
        if self.event.processed:
            logger.info("Event %s already processed, skipping", self.event.stripe_id)
            return

        try:
            self.process_webhook()
            self.event.processed = True
            self.event.save(update_fields=["processed"])
        except Exception:
            self.log_exception()
            raise

    def process_webhook(self) -> None:
        """Implement event-specific processing logic.

        Raises:
            NotImplementedError: Subclasses must override this method.
        """
        raise NotImplementedError

    def log_exception(self) -> None:
        """Capture the current exception to ``EventProcessingException``."""
        tb = traceback.format_exc()
        logger.error(
            "Error processing webhook %s (event %s): %s",
            self.name,
            self.event.stripe_id,
            tb,
        )
        EventProcessingException.objects.create(
            event=self.event,
            data=str(self.event.payload),
            message=str(tb)[:500],
            traceback=tb,
        )


def _event_data_object(event: StripeEvent) -> dict[str, object]:
    """Extract the ``data.object`` dict from a StripeEvent payload."""
    payload = event.payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            obj = data.get("object")
            if isinstance(obj, dict):
                return obj
    return {}


def _order_id_for_intent(intent: dict[str, object]) -> int | None:
    """Return the local order id of a PaymentIntent payload.

    Prefers the ``order_id`` metadata written at checkout and falls back to
    the payment row keyed by the intent id.
    """
    metadata = intent.get("metadata")
    if isinstance(metadata, dict):
        raw = metadata.get("order_id")
        if isinstance(raw, str) and raw.isdigit():
            return int(raw)
    intent_id = str(intent.get("id", ""))
    return Payment.objects.filter(stripe_payment_intent_id=intent_id).values_list("order_id", flat=True).first()


# ---------------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------------


class PaymentIntentSucceededWebhook(Webhook):
    """Handles ``payment_intent.succeeded`` events.

    Looks up the receipt URL of the latest charge and reconciles the order.
    """

    name = "payment_intent.succeeded"

    def process_webhook(self) -> None:
        """Reconcile the order as paid."""
        intent = _event_data_object(self.event)
        intent_id = str(intent.get("id", ""))
        order_id = _order_id_for_intent(intent)
        if order_id is None:
            logger.warning("payment_intent.succeeded for %s has no matching order", intent_id)
            return

        receipt_url = ""
        latest_charge = intent.get("latest_charge")
        if latest_charge and self.conference is not None:
            try:
                receipt_url = StripeClient(self.conference).get_receipt_url(latest_charge)
            except (stripe.StripeError, ValueError):
                logger.warning("Could not fetch receipt URL for intent %s", intent_id, exc_info=True)

        method_types = intent.get("payment_method_types")
        channel = str(method_types[0]) if isinstance(method_types, list) and method_types else "card"

        ReconciliationService.reconcile_success(
            order_id,
            intent_id,
            receipt_url=receipt_url,
            channel=channel,
        )


class PaymentIntentPaymentFailedWebhook(Webhook):
    """Handles ``payment_intent.payment_failed`` events.

    Cancels the pending order and marks its payment failed, logging the
    reason Stripe reported.
    """

    name = "payment_intent.payment_failed"

    def process_webhook(self) -> None:
        """Mark the order cancelled and the payment failed."""
        intent = _event_data_object(self.event)
        intent_id = str(intent.get("id", ""))
        order_id = _order_id_for_intent(intent)
        if order_id is None:
            logger.warning("payment_intent.payment_failed for %s has no matching order", intent_id)
            return

        error = intent.get("last_payment_error")
        reason = "No error details"
        if isinstance(error, dict):
            msg = error.get("message")
            reason = str(msg) if isinstance(msg, str) else "Unknown error"
        logger.warning("Payment failed for intent %s (order %s): %s", intent_id, order_id, reason)

        ReconciliationService.mark_failed(order_id, intent_id)


class PaymentIntentCanceledWebhook(Webhook):
    """Handles ``payment_intent.canceled`` events."""

    name = "payment_intent.canceled"

    def process_webhook(self) -> None:
        """Mark the order and its payment cancelled."""
        intent = _event_data_object(self.event)
        intent_id = str(intent.get("id", ""))
        order_id = _order_id_for_intent(intent)
        if order_id is None:
            logger.warning("payment_intent.canceled for %s has no matching order", intent_id)
            return
        ReconciliationService.mark_cancelled(order_id, intent_id)


# ---------------------------------------------------------------------------
# Handler registration
# ---------------------------------------------------------------------------

registry.register("payment_intent.succeeded", PaymentIntentSucceededWebhook)
registry.register("payment_intent.payment_failed", PaymentIntentPaymentFailedWebhook)
registry.register("payment_intent.canceled", PaymentIntentCanceledWebhook)


# ---------------------------------------------------------------------------
# Webhook endpoint view
# ---------------------------------------------------------------------------


@csrf_exempt
@require_POST
def stripe_webhook(request: "HttpRequest", event_slug: str) -> HttpResponse:
    """Receive and process Stripe webhook events for a specific event.

    Verifies the signature against the event's webhook secret, persists the
    raw event once, and dispatches to the registered handler. Events already
    processed are acknowledged without running the handler again.

    A missing or invalid signature is answered with HTTP 400. When the
    handler fails, the error is captured to ``EventProcessingException`` and
    HTTP 500 is returned so Stripe redelivers the event; the stored record is
    reused on redelivery.

    Args:
        request: The incoming HTTP request from Stripe.
        event_slug: URL slug identifying which event this webhook is for.
    """
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    if not payload or not sig_header:
        return JsonResponse({"success": False, "error": "Missing signature or body"}, status=400)

    conference = Event.objects.filter(slug=event_slug, is_active=True).first()
    if conference is None:
        logger.warning("Webhook received for unknown event slug: %s", event_slug)
        return JsonResponse({"success": False, "error": "Unknown event"}, status=404)

    webhook_secret = conference.stripe_webhook_secret
    if not webhook_secret:
        logger.error("Event '%s' has no webhook secret configured", event_slug)
        return JsonResponse({"success": False, "error": "Invalid signature"}, status=400)

    config = get_config()
    try:
        stripe_event = stripe.Webhook.construct_event(
            payload,
            sig_header,
            str(webhook_secret),
            tolerance=config.stripe.webhook_tolerance,
        )
    except (stripe.SignatureVerificationError, ValueError):
        logger.warning("Invalid Stripe webhook payload or signature for event '%s'", event_slug)
        return JsonResponse({"success": False, "error": "Invalid signature"}, status=400)

    stripe_id = stripe_event["id"]
    kind = stripe_event["type"]

    record = StripeEvent.objects.filter(stripe_id=stripe_id).first()
    if record is not None and record.processed:
        logger.info("Duplicate Stripe event %s, returning 200", stripe_id)
        return JsonResponse({"received": True})

    if record is None:
        customer_id = ""
        data_object = stripe_event.get("data", {}).get("object", {})
        if isinstance(data_object, dict):
            customer_id = data_object.get("customer", "") or ""

        record = StripeEvent.objects.create(
            stripe_id=stripe_id,
            kind=kind,
            livemode=stripe_event.get("livemode", False),
            payload=stripe_event.to_dict() if hasattr(stripe_event, "to_dict") else dict(stripe_event),
            customer_id=str(customer_id),
            api_version=stripe_event.get("api_version", "") or "",
        )

    handler_class = registry.get(kind)
    if handler_class is None:
        logger.info("No handler registered for event kind '%s'", kind)
        return JsonResponse({"received": True})

    try:
        handler_class(record, conference).process()
    except Exception:
        logger.exception("Error processing Stripe event %s (kind=%s)", stripe_id, kind)
        return JsonResponse({"success": False, "error": "Webhook processing failed"}, status=500)

    return JsonResponse({"received": True})
