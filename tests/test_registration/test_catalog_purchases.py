"""Tests for the public catalog listings and the purchase summaries."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from django_confreg.auth import Principal
from django_confreg.conference.models import Event, Session
from django_confreg.registration.models import (
    Order,
    OrderItem,
    Registration,
    RegistrationSession,
    TicketSession,
    TicketType,
)
from django_confreg.registration.services.catalog import list_public_tickets, list_workshops
from django_confreg.registration.services.purchases import get_confirmed_registration, get_my_tickets, get_purchases

User = get_user_model()


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def event(db):
    return Event.objects.create(
        name="ACCP Test",
        slug="accp-catalog",
        start_date="2027-05-01",
        end_date="2027-05-03",
        status=Event.Status.PUBLISHED,
    )


def _ticket(event, name, **kwargs):
    defaults = {
        "category": TicketType.Category.PRIMARY,
        "slug": name.lower().replace(" ", "-"),
        "price": Decimal("1000.00"),
        "quota": 10,
    }
    defaults.update(kwargs)
    return TicketType.objects.create(event=event, name=name, **defaults)


def _session(event, code, session_type, **kwargs):
    start = timezone.now() + timedelta(days=10)
    return Session.objects.create(
        event=event,
        code=code,
        name=kwargs.pop("name", code),
        session_type=session_type,
        start_time=start,
        end_time=start + timedelta(hours=2),
        **kwargs,
    )


@pytest.fixture
def user(db):
    return User.objects.create_user(username="wallet", email="wallet@example.com", password="x")


@pytest.fixture
def principal(user):
    return Principal.from_user(user)


# =============================================================================
# TestListPublicTickets
# =============================================================================


@pytest.mark.django_db
class TestListPublicTickets:
    def test_only_published_active_unexpired(self, event):
        _ticket(event, "Visible")
        _ticket(event, "Inactive", is_active=False)
        _ticket(event, "Ended", sale_end_date=timezone.now() - timedelta(days=1))
        _ticket(event, "Not Yet", sale_start_date=timezone.now() + timedelta(days=1))
        draft = Event.objects.create(name="Draft", slug="draft", start_date="2027-01-01", end_date="2027-01-02")
        _ticket(draft, "Draft Ticket")

        data = list_public_tickets()

        names = [t["name"] for t in data["tickets"]]
        assert names == ["Visible", "Not Yet"]
        not_yet = data["tickets"][1]
        assert not_yet["isAvailable"] is False
        assert not_yet["saleStartDate"] is not None

    def test_sold_out_is_listed_unavailable(self, event):
        _ticket(event, "Full", quota=5, sold_count=5)

        [row] = list_public_tickets()["tickets"]

        assert row["isAvailable"] is False
        assert row["soldCount"] == 5

    def test_role_filter_keeps_open_tickets(self, event):
        _ticket(event, "Student", allowed_roles="thstd,interstd")
        _ticket(event, "Professional", allowed_roles="thpro")
        _ticket(event, "Gala", category=TicketType.Category.ADDON, group_name="gala")

        names = [t["name"] for t in list_public_tickets("INTERSTD")["tickets"]]

        assert names == ["Student", "Gala"]

    def test_groups_by_name_and_category(self, event):
        _ticket(event, "Thai Student", group_name="Student", display_order=1)
        _ticket(event, "Intl Student", group_name="Student", currency="USD", display_order=2)
        _ticket(event, "Gala Dinner", category=TicketType.Category.ADDON, display_order=3)

        groups = list_public_tickets()["ticketGroups"]

        assert [(g["groupName"], g["category"], len(g["tickets"])) for g in groups] == [
            ("Student", "primary", 2),
            ("Gala Dinner", "addon", 1),
        ]


# =============================================================================
# TestListWorkshops
# =============================================================================


@pytest.mark.django_db
class TestListWorkshops:
    def test_enrollment_counts_confirmed_registrations(self, event, user):
        ws = _session(event, "WS-1", Session.SessionType.WORKSHOP, max_capacity=1)
        _session(event, "MAIN", Session.SessionType.LECTURE)
        addon = _ticket(
            event,
            "Workshop",
            category=TicketType.Category.ADDON,
            group_name="workshop",
            price=Decimal("1500.00"),
            sale_start_date=timezone.now() - timedelta(days=5),
        )
        TicketSession.objects.create(ticket_type=addon, session=ws)
        primary = _ticket(event, "Primary")
        order = Order.objects.create(user=user, event=event, order_number="ORD-CAT-1", status=Order.Status.PAID)
        registration = Registration.objects.create(
            reg_code="REG-CAT1", event=event, ticket_type=primary, user=user, order=order, email=user.email
        )
        RegistrationSession.objects.create(registration=registration, session=ws, ticket_type=addon)

        [row] = list_workshops()

        assert row["code"] == "WS-1"
        assert row["enrolledCount"] == 1
        assert row["isFull"] is True
        assert row["prices"] == [{"ticketTypeId": addon.pk, "price": "1500.00", "currency": "THB"}]
        assert row["saleStartDate"] == addon.sale_start_date.isoformat()

    def test_unlimited_capacity_is_never_full(self, event):
        _session(event, "WS-OPEN", Session.SessionType.WORKSHOP, max_capacity=0)

        [row] = list_workshops()

        assert row["isFull"] is False
        assert row["prices"] == []
        assert row["saleStartDate"] is None


# =============================================================================
# TestPurchases
# =============================================================================


@pytest.mark.django_db
class TestPurchases:
    @pytest.fixture
    def owned(self, event, user):
        primary = _ticket(event, "Thai Student", allowed_roles="thstd", features=["Kit", "Lunch"])
        workshop = _ticket(event, "Workshop", category=TicketType.Category.ADDON, group_name="Workshop")
        gala = _ticket(event, "Gala", category=TicketType.Category.ADDON, group_name="gala")
        order = Order.objects.create(user=user, event=event, order_number="ORD-OWN-1", status=Order.Status.PAID)
        for ticket, item_type in (
            (primary, OrderItem.ItemType.TICKET),
            (workshop, OrderItem.ItemType.ADDON),
            (gala, OrderItem.ItemType.ADDON),
        ):
            OrderItem.objects.create(order=order, item_type=item_type, ticket_type=ticket, price=ticket.price)
        registration = Registration.objects.create(
            reg_code="REG-OWN1",
            event=event,
            ticket_type=primary,
            user=user,
            order=order,
            email=user.email,
            dietary_requirements="vegetarian",
        )
        ws = _session(event, "WS-1", Session.SessionType.WORKSHOP, name="Workshop 1", room="Room B")
        dinner = _session(event, "GALA", Session.SessionType.GALA_DINNER, name="Gala Night")
        main = _session(event, "MAIN", Session.SessionType.LECTURE)
        RegistrationSession.objects.create(registration=registration, session=main, ticket_type=primary)
        RegistrationSession.objects.create(registration=registration, session=ws, ticket_type=workshop)
        RegistrationSession.objects.create(registration=registration, session=dinner, ticket_type=gala)
        return {"registration": registration, "ws": ws}

    def test_purchases_summary(self, owned, principal):
        assert get_purchases(principal) == {
            "hasPrimaryTicket": True,
            "primaryTicketName": "Thai Student",
            "regCode": "REG-OWN1",
            "purchasedAddOns": ["gala", "workshop"],
        }

    def test_pending_orders_do_not_count(self, event, user, principal):
        ticket = _ticket(event, "Primary")
        order = Order.objects.create(user=user, event=event, order_number="ORD-PEND-1")
        OrderItem.objects.create(order=order, item_type=OrderItem.ItemType.TICKET, ticket_type=ticket, price=1)

        assert get_purchases(principal)["hasPrimaryTicket"] is False

    def test_wallet(self, owned, principal):
        data = get_my_tickets(principal)

        assert data["registration"]["regCode"] == "REG-OWN1"
        assert data["registration"]["includes"] == ["Kit", "Lunch"]
        assert [w["id"] for w in data["workshops"]] == [f"REG-OWN1-WS-{owned['ws'].pk}"]
        assert data["workshops"][0]["venue"] == "Room B"
        assert data["galaTicket"]["id"] == "REG-OWN1-GALA"
        assert data["galaTicket"]["name"] == "Gala Night"
        assert data["galaTicket"]["dietary"] == "vegetarian"

    def test_cancelled_registration_is_ignored(self, owned, user):
        Registration.objects.filter(pk=owned["registration"].pk).update(status=Registration.Status.CANCELLED)

        assert get_confirmed_registration(user.pk) is None
