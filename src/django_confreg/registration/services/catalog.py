"""Public ticket catalog and workshop listings."""

from collections import defaultdict
from typing import Any

from django.db.models import Count, Q
from django.utils import timezone

from django_confreg.conference.models import Event, Session
from django_confreg.registration.models import Registration, TicketType


def _ticket_dict(ticket: TicketType, now: Any) -> dict[str, Any]:
    return {
        "id": ticket.pk,
        "eventId": ticket.event_id,
        "category": ticket.category,
        "groupName": ticket.group_name or None,
        "name": ticket.name,
        "description": ticket.description,
        "price": str(ticket.price),
        "currency": ticket.currency,
        "features": ticket.features or [],
        "displayOrder": ticket.display_order,
        "allowedRoles": ticket.allowed_roles or None,
        "quota": ticket.quota,
        "soldCount": ticket.sold_count,
        "isAvailable": ticket.is_on_sale(now) and not ticket.is_sold_out,
        "requiresSessionChoice": ticket.requires_session_choice,
        "saleStartDate": ticket.sale_start_date.isoformat() if ticket.sale_start_date else None,
        "saleEndDate": ticket.sale_end_date.isoformat() if ticket.sale_end_date else None,
    }


def list_public_tickets(role: str | None = None) -> dict[str, Any]:
    """List sellable tickets of published events, grouped by ``group_name``.

    Tickets whose sale has ended are omitted. When *role* is given, only
    tickets open to that role (or to everyone) are returned.
    """
    now = timezone.now()
    tickets = (
        TicketType.objects.filter(event__status=Event.Status.PUBLISHED, is_active=True)
        .exclude(sale_end_date__lt=now)
        .order_by("display_order", "id")
    )
    if role:
        role = role.strip().lower()
        tickets = [t for t in tickets if not t.role_codes or role in t.role_codes]

    rows = [_ticket_dict(ticket, now) for ticket in tickets]

    groups: dict[tuple[str, str], list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        groups[(row["groupName"] or row["name"], row["category"])].append(row)
    ticket_groups = [
        {"groupName": name, "category": category, "tickets": members}
        for (name, category), members in groups.items()
    ]
    return {"tickets": rows, "ticketGroups": ticket_groups}


def list_workshops() -> list[dict[str, Any]]:
    """List active workshop sessions of published events with enrollment."""
    sessions = (
        Session.objects.filter(
            event__status=Event.Status.PUBLISHED,
            session_type=Session.SessionType.WORKSHOP,
            is_active=True,
        )
        .annotate(
            enrolled=Count(
                "registration_links",
                filter=Q(registration_links__registration__status=Registration.Status.CONFIRMED),
            ),
        )
        .prefetch_related("ticket_types")
        .order_by("start_time")
    )

    workshops = []
    for session in sessions:
        tickets = [t for t in session.ticket_types.all() if t.is_active]
        sale_starts = [t.sale_start_date for t in tickets if t.sale_start_date]
        workshops.append(
            {
                "id": session.pk,
                "eventId": session.event_id,
                "code": session.code,
                "name": session.name,
                "description": session.description,
                "room": session.room,
                "startTime": session.start_time.isoformat(),
                "endTime": session.end_time.isoformat(),
                "maxCapacity": session.max_capacity,
                "enrolledCount": session.enrolled,
                "isFull": bool(session.max_capacity) and session.enrolled >= session.max_capacity,
                "prices": [{"ticketTypeId": t.pk, "price": str(t.price), "currency": t.currency} for t in tickets],
                "saleStartDate": min(sale_starts).isoformat() if sale_starts else None,
            }
        )
    return workshops
