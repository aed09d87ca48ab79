"""Read-side views of what a user has bought."""

from typing import TYPE_CHECKING, Any

from django_confreg.conference.models import Session
from django_confreg.registration.models import Registration, RegistrationSession, TicketType
from django_confreg.registration.services.checkout import get_held_purchases

if TYPE_CHECKING:
    from datetime import datetime

    from django_confreg.auth import Principal


def _iso(value: "datetime | None") -> str | None:
    return value.isoformat() if value else None


def get_confirmed_registration(user_id: int) -> Registration | None:
    """Return the user's most recent confirmed registration."""
    return (
        Registration.objects.select_related("ticket_type")
        .filter(user_id=user_id, status=Registration.Status.CONFIRMED)
        .order_by("-created_at")
        .first()
    )


def get_purchases(principal: "Principal") -> dict[str, Any]:
    """Summarise the caller's paid purchases.

    Used by the storefront to hide packages and add-ons the user already owns.
    """
    held = get_held_purchases(principal.user_id)
    reg_code = None
    if held.has_primary:
        registration = get_confirmed_registration(principal.user_id)
        reg_code = registration.reg_code if registration else None
    return {
        "hasPrimaryTicket": held.has_primary,
        "primaryTicketName": held.primary_ticket.name if held.primary_ticket else None,
        "regCode": reg_code,
        "purchasedAddOns": sorted(held.addon_groups),
    }


def _addon_entry(registration: Registration, link: RegistrationSession, entry_id: str) -> dict[str, Any]:
    session = link.session
    ticket = link.ticket_type
    return {
        "id": entry_id,
        "status": registration.status,
        "name": session.name or ticket.name,
        "purchasedAt": _iso(link.created_at),
        "amount": str(ticket.price),
        "currency": ticket.currency,
        "dateTimeStart": _iso(session.start_time),
        "dateTimeEnd": _iso(session.end_time),
        "venue": session.room,
    }


def get_my_tickets(principal: "Principal") -> dict[str, Any]:
    """Return the caller's ticket wallet: registration, gala ticket, workshops."""
    registration = get_confirmed_registration(principal.user_id)
    if registration is None:
        return {"registration": None, "galaTicket": None, "workshops": []}

    ticket = registration.ticket_type
    links = (
        RegistrationSession.objects.select_related("session", "ticket_type")
        .filter(registration=registration, ticket_type__category=TicketType.Category.ADDON)
        .order_by("-created_at")
    )

    gala = None
    workshops = []
    for link in links:
        session_type = link.session.session_type
        if session_type == Session.SessionType.WORKSHOP:
            workshops.append(_addon_entry(registration, link, f"{registration.reg_code}-WS-{link.session_id}"))
        elif session_type == Session.SessionType.GALA_DINNER and gala is None:
            gala = _addon_entry(registration, link, f"{registration.reg_code}-GALA")
            gala["dietary"] = registration.dietary_requirements or None

    return {
        "registration": {
            "regCode": registration.reg_code,
            "status": registration.status,
            "ticketName": ticket.name,
            "purchasedAt": _iso(registration.created_at),
            "amount": str(ticket.price),
            "currency": ticket.currency,
            "includes": ticket.features if isinstance(ticket.features, list) else [],
        },
        "galaTicket": gala,
        "workshops": workshops,
    }
