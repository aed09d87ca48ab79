"""Signal receivers that queue transactional email.

Each receiver only writes ``OutboundEmail`` rows; delivery happens after
commit and its failures stay on those rows.
"""

import logging
from typing import TYPE_CHECKING

from django.apps import apps
from django.core.signals import setting_changed
from django.dispatch import receiver

from django_confreg.abstracts.models import Abstract
from django_confreg.abstracts.signals import abstract_reviewed, abstract_submitted
from django_confreg.accounts.models import Member
from django_confreg.accounts.signals import document_resubmitted, member_registered, member_verified
from django_confreg.notifications.services import enqueue_email
from django_confreg.registration.models import Order
from django_confreg.registration.services.receipts import build_receipt, receipt_url
from django_confreg.registration.signals import order_paid

if TYPE_CHECKING:
    from django_confreg.abstracts.models import AbstractReview
    from django_confreg.registration.models import Registration

logger = logging.getLogger(__name__)

_DECISION_TEMPLATES = {
    (Abstract.Status.ACCEPTED.value, Abstract.PresentationType.ORAL.value): "abstract_accepted_oral",
    (Abstract.Status.ACCEPTED.value, Abstract.PresentationType.POSTER.value): "abstract_accepted_poster",
    (Abstract.Status.REJECTED.value, Abstract.PresentationType.ORAL.value): "abstract_rejected",
    (Abstract.Status.REJECTED.value, Abstract.PresentationType.POSTER.value): "abstract_rejected",
}


@receiver(order_paid, sender=Order, dispatch_uid="confreg.notifications.payment_receipt")
def send_payment_receipt(
    sender: type[Order],  # noqa: ARG001
    order: Order,
    registration: "Registration | None" = None,
    **kwargs: object,  # noqa: ARG001
) -> None:
    """Queue the payment receipt email for a freshly paid order."""
    receipt = build_receipt(order)
    variables = receipt.as_dict()
    variables.update(
        {
            "customerName": receipt.customer_name,
            "receiptUrl": receipt_url(order),
            "regCode": registration.reg_code if registration else None,
        }
    )
    enqueue_email("payment_receipt", receipt.customer_email, to_name=receipt.customer_name, variables=variables)
    logger.debug("Queued payment receipt for order %s", order.order_number)


@receiver(abstract_submitted, sender=Abstract, dispatch_uid="confreg.notifications.abstract_submitted")
def send_submission_confirmation(
    sender: type[Abstract],  # noqa: ARG001
    abstract: Abstract,
    **kwargs: object,  # noqa: ARG001
) -> None:
    """Confirm a submission to its author and notify each co-author."""
    common = {"trackingId": abstract.tracking_id, "abstractTitle": abstract.title}
    enqueue_email(
        "abstract_submitted",
        abstract.email,
        to_name=abstract.author_name,
        variables={**common, "firstName": abstract.first_name, "lastName": abstract.last_name},
    )
    for co_author in abstract.co_authors.all():
        enqueue_email(
            "abstract_coauthor",
            co_author.email,
            to_name=f"{co_author.first_name} {co_author.last_name}",
            variables={
                **common,
                "firstName": co_author.first_name,
                "lastName": co_author.last_name,
                "mainAuthorName": abstract.author_name,
            },
        )


@receiver(abstract_reviewed, sender=Abstract, dispatch_uid="confreg.notifications.abstract_reviewed")
def send_review_decision(
    sender: type[Abstract],  # noqa: ARG001
    abstract: Abstract,
    review: "AbstractReview",
    **kwargs: object,  # noqa: ARG001
) -> None:
    """Tell the author about an accept or reject decision."""
    template = _DECISION_TEMPLATES.get((abstract.status, abstract.presentation_type))
    if template is None:
        return
    enqueue_email(
        template,
        abstract.email,
        to_name=abstract.author_name,
        variables={
            "firstName": abstract.first_name,
            "lastName": abstract.last_name,
            "trackingId": abstract.tracking_id,
            "abstractTitle": abstract.title,
            "comment": review.comment or None,
        },
    )


@receiver(member_registered, sender=Member, dispatch_uid="confreg.notifications.member_registered")
def send_registration_pending(
    sender: type[Member],  # noqa: ARG001
    member: Member,
    **kwargs: object,  # noqa: ARG001
) -> None:
    """Tell a new student their document is waiting for review."""
    if member.status != Member.Status.PENDING_APPROVAL:
        return
    _member_email("registration_pending", member)


@receiver(member_verified, sender=Member, dispatch_uid="confreg.notifications.member_verified")
def send_verification_result(
    sender: type[Member],  # noqa: ARG001
    member: Member,
    **kwargs: object,  # noqa: ARG001
) -> None:
    """Send the approval or rejection email after a document review."""
    if member.status == Member.Status.ACTIVE:
        _member_email("verification_approved", member)
    elif member.status == Member.Status.REJECTED:
        _member_email("verification_rejected", member, {"rejectionReason": member.rejection_reason})


@receiver(document_resubmitted, sender=Member, dispatch_uid="confreg.notifications.document_resubmitted")
def send_resubmission_confirmation(
    sender: type[Member],  # noqa: ARG001
    member: Member,
    **kwargs: object,  # noqa: ARG001
) -> None:
    _member_email("document_resubmitted", member, {"resubmissionCount": member.resubmission_count})


def _member_email(template: str, member: Member, extra: dict[str, object] | None = None) -> None:
    user = member.user
    variables = {"firstName": user.first_name, "lastName": user.last_name, "role": member.role, **(extra or {})}
    enqueue_email(template, user.email, to_name=member.full_name, variables=variables)


@receiver(setting_changed, dispatch_uid="confreg.notifications.reset_email_client")
def reset_email_client(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Rebuild the email client when its settings change during tests."""
    if setting == "DJANGO_CONFREG":
        apps.get_app_config("confreg_notifications").reset_email_client()
