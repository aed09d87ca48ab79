"""Sign-up, document resubmission, and staff verification of students."""

import logging
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from django_confreg.accounts.models import Member
from django_confreg.accounts.signals import document_resubmitted, member_registered, member_verified
from django_confreg.errors import Conflict, DomainRuleViolation, NotFound, Unauthorized

if TYPE_CHECKING:
    from django_confreg.auth import Principal

logger = logging.getLogger(__name__)

_DOMESTIC_COUNTRY = "Thailand"

# Unique identity documents, checked in this order.
_UNIQUE_DOCUMENTS = (
    ("thai_id_card", "id_card", "DUPLICATE_ID_CARD", "Thai ID Card already registered"),
    ("passport_id", "passport_id", "DUPLICATE_PASSPORT", "Passport ID already registered"),
    ("pharmacy_license_id", "pharmacy_license_id", "DUPLICATE_LICENSE", "Pharmacy License Number already registered"),
)

# Wire names of the roles and statuses shown to reviewers.
_ROLE_LABELS = {
    Member.Role.THAI_STUDENT.value: "thai-student",
    Member.Role.INTERNATIONAL_STUDENT.value: "intl-student",
}
_STATUS_LABELS = {
    Member.Status.PENDING_APPROVAL.value: "pending",
    Member.Status.ACTIVE.value: "approved",
    Member.Status.REJECTED.value: "rejected",
}


def member_dict(member: Member) -> dict[str, Any]:
    user = member.user
    return {
        "id": user.pk,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": member.role,
        "status": member.status,
    }


def verification_dict(member: Member) -> dict[str, Any]:
    """One row of the back-office verification queue."""
    return {
        "id": member.pk,
        "name": member.full_name,
        "email": member.user.email,
        "university": member.institution,
        "studentId": member.thai_id_card or member.passport_id or "",
        "role": _ROLE_LABELS.get(member.role, member.role),
        "documentUrl": member.verification_doc_url,
        "status": _STATUS_LABELS.get(member.status, member.status),
        "submittedAt": member.updated_at.isoformat(),
        "resubmissionCount": member.resubmission_count,
        "rejectionReason": member.rejection_reason or None,
    }


@transaction.atomic
def register_member(data: dict[str, Any]) -> Member:
    """Create a user and its member profile.

    Professionals are active straight away. Students wait in
    ``pending_approval`` until staff review their document.

    Args:
        data: ``cleaned_data`` of a
            :class:`~django_confreg.accounts.forms.RegisterForm`.

    Raises:
        Conflict: The email or one of the identity documents is already
            registered.
    """
    User = get_user_model()  # noqa: N806
    email = data["email"]
    if User.objects.filter(Q(email__iexact=email) | Q(username__iexact=email)).exists():
        raise Conflict("Email already exists", code="EMAIL_EXISTS")
    for field, key, code, message in _UNIQUE_DOCUMENTS:
        value = data.get(key)
        if value and Member.objects.filter(**{field: value}).exists():
            raise Conflict(message, code=code)

    role = data["role"]
    user = User.objects.create_user(
        username=email,
        email=email,
        password=data["password"],
        first_name=data["first_name"],
        last_name=data["last_name"],
    )
    member = Member(
        user=user,
        role=role,
        institution=data.get("organization") or "",
        phone=data.get("phone") or "",
        thai_id_card=data.get("id_card") or None,
        passport_id=data.get("passport_id") or None,
        pharmacy_license_id=data.get("pharmacy_license_id") or None,
        verification_doc_url=data.get("verification_doc_url") or "",
    )
    member.country = _DOMESTIC_COUNTRY if member.is_thai else data.get("country") or ""
    member.status = Member.Status.PENDING_APPROVAL if member.is_student else Member.Status.ACTIVE
    member.save()
    logger.info("Registered user %s as %s (%s)", user.pk, role, member.status)

    transaction.on_commit(lambda: member_registered.send(sender=Member, member=member), robust=True)
    return member


@transaction.atomic
def resubmit_document(email: str, password: str, document_url: str) -> Member:
    """Replace the document of a rejected student and queue it for review.

    The caller cannot log in while rejected, so the request carries the
    account's credentials instead of a bearer token.

    Raises:
        Unauthorized: Unknown email or wrong password.
        DomainRuleViolation: ``INVALID_STATUS`` when the account is not
            rejected, ``NOT_STUDENT`` for professional accounts.
    """
    user = get_user_model().objects.filter(email__iexact=email, is_active=True).first()
    if user is None or not user.check_password(password):
        logger.info("Failed document resubmission for %s", email)
        raise Unauthorized("Invalid email or password")

    member = Member.objects.select_for_update().filter(user=user).first()
    if member is None or member.status != Member.Status.REJECTED:
        raise DomainRuleViolation("INVALID_STATUS", "Only rejected accounts can resubmit documents.")
    if not member.is_student:
        raise DomainRuleViolation(
            "NOT_STUDENT", "Document resubmission is only available for student accounts."
        )

    member.verification_doc_url = document_url
    member.status = Member.Status.PENDING_APPROVAL
    member.rejection_reason = ""
    member.resubmission_count += 1
    member.save(
        update_fields=["verification_doc_url", "status", "rejection_reason", "resubmission_count", "updated_at"]
    )
    logger.info("User %s resubmitted document (attempt %d)", user.pk, member.resubmission_count)

    transaction.on_commit(lambda: document_resubmitted.send(sender=Member, member=member), robust=True)
    return member


def list_verifications(
    *,
    page: int = 1,
    per_page: int = 10,
    search: str = "",
    status: str = "",
) -> dict[str, Any]:
    """Paginated queue of members who uploaded a document, newest first."""
    members = Member.objects.select_related("user").exclude(verification_doc_url="")
    if status:
        members = members.filter(status=status)
    if search:
        members = members.filter(
            Q(user__email__icontains=search)
            | Q(user__first_name__icontains=search)
            | Q(user__last_name__icontains=search)
            | Q(institution__icontains=search)
        )

    paginator = Paginator(members, per_page)
    page_obj = paginator.get_page(page)
    return {
        "verifications": [verification_dict(member) for member in page_obj],
        "pagination": {
            "page": page_obj.number,
            "limit": per_page,
            "total": paginator.count,
            "totalPages": paginator.num_pages,
        },
    }


def _review(principal: "Principal", member_id: int, status: str, reason: str = "") -> Member:
    member = Member.objects.select_for_update().select_related("user").filter(pk=member_id).first()
    if member is None:
        raise NotFound("User not found")

    previous = member.status
    member.status = status
    member.rejection_reason = reason
    member.reviewed_by_id = principal.user_id
    member.reviewed_at = timezone.now()
    member.save(update_fields=["status", "rejection_reason", "reviewed_by", "reviewed_at", "updated_at"])
    logger.info("Member %s reviewed by user %s: %s -> %s", member.pk, principal.user_id, previous, status)

    transaction.on_commit(lambda: member_verified.send(sender=Member, member=member), robust=True)
    return member


@transaction.atomic
def approve_member(principal: "Principal", member_id: int) -> Member:
    """Activate a member after checking their document.

    Raises:
        NotFound: Unknown member.
    """
    return _review(principal, member_id, Member.Status.ACTIVE)


@transaction.atomic
def reject_member(principal: "Principal", member_id: int, reason: str) -> Member:
    """Reject a member's document; they may resubmit a new one.

    Raises:
        NotFound: Unknown member.
    """
    return _review(principal, member_id, Member.Status.REJECTED, reason)
