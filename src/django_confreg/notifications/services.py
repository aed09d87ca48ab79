"""Queueing and delivery of outbound email.

:func:`enqueue_email` records the message inside the caller's transaction and
schedules delivery for after commit, so an email is only attempted once the
change it announces is durable, and a delivery failure can never undo that
change. Failures are recorded on the :class:`OutboundEmail` row.
"""

import logging
from functools import partial
from typing import Any

from django.apps import apps
from django.db import transaction
from django.utils import timezone

from django_confreg.notifications.client import EmailClient, EmailDeliveryError
from django_confreg.notifications.models import OutboundEmail
from django_confreg.settings import get_config

logger = logging.getLogger(__name__)


def get_email_client() -> EmailClient:
    """Return the shared email client owned by the notifications app."""
    return apps.get_app_config("confreg_notifications").email_client


def enqueue_email(
    template: str,
    to_email: str,
    *,
    to_name: str = "",
    variables: dict[str, Any] | None = None,
) -> OutboundEmail:
    """Queue a templated email and deliver it after the transaction commits.

    Args:
        template: Template key; mapped to a provider template id through
            ``DJANGO_CONFREG['email']['templates']``.
        to_email: Recipient address.
        to_name: Recipient display name.
        variables: Template variables. Must be JSON-serialisable.

    Returns:
        The queued ``OutboundEmail`` row.
    """
    outbound = OutboundEmail.objects.create(
        template=template,
        to_email=to_email,
        to_name=to_name,
        variables=variables or {},
    )
    transaction.on_commit(partial(deliver_queued, outbound.pk), robust=True)
    return outbound


def deliver(outbound: OutboundEmail, client: EmailClient | None = None) -> bool:
    """Attempt delivery of one queued email and record the outcome.

    Returns:
        ``True`` if the provider accepted the message.
    """
    client = client or get_email_client()
    templates = get_config().email.templates
    template_id = templates.get(outbound.template, outbound.template)

    outbound.attempts += 1
    try:
        message_id = client.send_template(template_id, outbound.to_email, outbound.to_name, outbound.variables)
    except EmailDeliveryError as exc:
        outbound.status = OutboundEmail.Status.FAILED
        outbound.last_error = str(exc)
        outbound.save(update_fields=["attempts", "status", "last_error"])
        logger.warning(
            "Delivery of %s email %s to %s failed (attempt %d): %s",
            outbound.template,
            outbound.pk,
            outbound.to_email,
            outbound.attempts,
            exc,
        )
        return False

    outbound.status = OutboundEmail.Status.SENT
    outbound.provider_message_id = message_id
    outbound.last_error = ""
    outbound.sent_at = timezone.now()
    outbound.save(update_fields=["attempts", "status", "provider_message_id", "last_error", "sent_at"])
    return True


def deliver_queued(outbound_id: int) -> bool:
    """Deliver a queued email by primary key; used as the commit hook."""
    outbound = OutboundEmail.objects.filter(pk=outbound_id, status=OutboundEmail.Status.QUEUED).first()
    if outbound is None:
        return False
    return deliver(outbound)


def retry_pending(limit: int = 100, client: EmailClient | None = None) -> tuple[int, int]:
    """Retry queued and failed emails that have attempts left.

    Returns:
        A ``(sent, failed)`` count tuple.
    """
    max_attempts = get_config().email.max_attempts
    pending = OutboundEmail.objects.filter(
        status__in=[OutboundEmail.Status.QUEUED, OutboundEmail.Status.FAILED],
        attempts__lt=max_attempts,
    ).order_by("created_at", "pk")[:limit]

    sent = failed = 0
    for outbound in pending:
        if deliver(outbound, client):
            sent += 1
        else:
            failed += 1
    return sent, failed
