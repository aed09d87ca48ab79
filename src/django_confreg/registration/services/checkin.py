"""On-site check-in by registration code.

Staff scan an attendee's code and either get the list of sessions the
registration grants, check in one session, or check in everything at once.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from django_confreg.errors import Conflict, DomainRuleViolation, NotFound
from django_confreg.registration.models import Registration, RegistrationSession

if TYPE_CHECKING:
    from django_confreg.auth import Principal

logger = logging.getLogger(__name__)


@dataclass
class CheckInResult:
    """Outcome of a check-in scan."""

    registration: Registration
    links: list[RegistrationSession]
    checked_in: list[RegistrationSession]

    def as_dict(self) -> dict[str, Any]:
        registration = self.registration
        data: dict[str, Any] = {
            "registration": {
                "id": registration.pk,
                "regCode": registration.reg_code,
                "firstName": registration.first_name,
                "lastName": registration.last_name,
                "email": registration.email,
                "status": registration.status,
                "ticketName": registration.ticket_type.name,
                "eventName": registration.event.name,
            },
            "sessions": [_link_dict(link) for link in self.links],
        }
        if self.checked_in:
            data["checkedInCount"] = len(self.checked_in)
            data["checkedIn"] = [_link_dict(link) for link in self.checked_in]
        return data


def _link_dict(link: RegistrationSession) -> dict[str, Any]:
    return {
        "id": link.pk,
        "sessionId": link.session_id,
        "sessionName": link.session.name,
        "sessionType": link.session.session_type,
        "ticketName": link.ticket_type.name,
        "checkedInAt": link.checked_in_at.isoformat() if link.checked_in_at else None,
    }


@transaction.atomic
def check_in(
    principal: "Principal",
    reg_code: str,
    *,
    session_id: int | None = None,
    check_in_all: bool = False,
) -> CheckInResult:
    """Look up a registration and optionally record check-ins.

    Args:
        principal: The staff member scanning.
        reg_code: The attendee's registration code (case-insensitive).
        session_id: Check in this session only.
        check_in_all: Check in every session not yet checked in.

    Raises:
        NotFound: Unknown registration code.
        DomainRuleViolation: The registration is not confirmed
            (``INVALID_STATUS``), or does not include the session
            (``NO_ACCESS``).
        Conflict: Nothing left to check in (``ALREADY_CHECKED_IN``).
    """
    registration = (
        Registration.objects.select_related("event", "ticket_type").filter(reg_code__iexact=reg_code.strip()).first()
    )
    if registration is None:
        raise NotFound("Registration not found")
    if registration.status != Registration.Status.CONFIRMED:
        raise DomainRuleViolation("INVALID_STATUS", f"Registration status is {registration.status}")

    links = list(
        RegistrationSession.objects.select_for_update()
        .select_related("session", "ticket_type")
        .filter(registration=registration)
    )
    now = timezone.now()

    if check_in_all:
        targets = [link for link in links if link.checked_in_at is None]
        if not targets:
            raise Conflict("All sessions already checked in", code="ALREADY_CHECKED_IN")
    elif session_id is not None:
        targets = [link for link in links if link.session_id == session_id]
        if not targets:
            raise DomainRuleViolation("NO_ACCESS", "No access to this session")
        if targets[0].checked_in_at is not None:
            raise Conflict(
                "Already checked in for this session",
                code="ALREADY_CHECKED_IN",
                details={"checkedInAt": targets[0].checked_in_at.isoformat(), "sessionName": targets[0].session.name},
            )
    else:
        return CheckInResult(registration=registration, links=links, checked_in=[])

    for link in targets:
        link.checked_in_at = now
        link.checked_in_by_id = principal.user_id
        link.save(update_fields=["checked_in_at", "checked_in_by"])
    logger.info(
        "Checked in %s for %d session(s) by staff user %s",
        registration.reg_code,
        len(targets),
        principal.user_id,
    )
    return CheckInResult(registration=registration, links=links, checked_in=targets)


def list_check_ins(
    *,
    page: int = 1,
    per_page: int = 50,
    search: str = "",
    event_id: int | None = None,
) -> dict[str, Any]:
    """Paginated list of recorded check-ins, newest first."""
    links = (
        RegistrationSession.objects.select_related("registration", "session", "ticket_type", "registration__event")
        .filter(checked_in_at__isnull=False)
        .order_by("-checked_in_at")
    )
    if event_id:
        links = links.filter(registration__event_id=event_id)
    if search:
        links = links.filter(
            Q(registration__first_name__icontains=search)
            | Q(registration__last_name__icontains=search)
            | Q(registration__reg_code__icontains=search)
        )

    paginator = Paginator(links, per_page)
    page_obj = paginator.get_page(page)
    return {
        "checkins": [
            {
                "id": link.pk,
                "scannedAt": link.checked_in_at.isoformat(),
                "regCode": link.registration.reg_code,
                "firstName": link.registration.first_name,
                "lastName": link.registration.last_name,
                "email": link.registration.email,
                "ticketName": link.ticket_type.name,
                "sessionName": link.session.name,
                "eventName": link.registration.event.name,
                "scannedBy": link.checked_in_by_id,
            }
            for link in page_obj
        ],
        "pagination": {
            "page": page_obj.number,
            "limit": per_page,
            "total": paginator.count,
            "totalPages": paginator.num_pages,
        },
    }
