import datetime
from decimal import Decimal
from io import StringIO
from zoneinfo import ZoneInfo

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from django_confreg.conference.models import Event, Session
from django_confreg.registration.models import TicketSession, TicketType

_BANGKOK = ZoneInfo("Asia/Bangkok")

_CONFIG = """[conference]
name = "ACCP Test"
slug = "accp-test"
start = 2027-05-01
end = 2027-05-03
timezone = "Asia/Bangkok"
venue = "Grand Hall"
status = "published"

[[conference.sessions]]
code = "MAIN-D1"
name = "Main Day 1"
type = "lecture"
main = true
start = 2027-05-01T08:30:00
end = 2027-05-01T17:00:00

[[conference.sessions]]
code = "WS-1"
name = "Workshop 1"
type = "workshop"
capacity = 30
start = 2027-05-03T09:00:00
end = 2027-05-03T12:00:00

[[conference.tickets]]
name = "Thai Student"
group = "Conference"
price = 3500.00
currency = "THB"
quota = 100
roles = ["thstd", "interstd"]
sessions = ["MAIN-D1"]
features = ["Conference kit"]
available = { opens = 2027-01-01, closes = 2027-04-30 }

[[conference.tickets]]
name = "Workshop"
slug = "workshop-thb"
category = "addon"
group = "workshop"
price = 1500.00
currency = "THB"
quota = 30
requires_session_choice = true
sessions = ["WS-1"]
"""


def _write_config(path, contents=_CONFIG):
    path.write_text(contents)
    return str(path)


def test_bootstrap_wraps_loader_type_errors_as_command_error(tmp_path):
    config_file = tmp_path / "bad.toml"
    config_file.write_text("""[conference]
name = "ACCP Test"
start = 2027-05-01
end = 2027-05-03
timezone = "UTC"
sessions = ["invalid"]
""")

    with pytest.raises(CommandError, match=r"conference\.sessions\[0\] must be a mapping"):
        call_command("bootstrap_conference", config=str(config_file))


def test_bootstrap_wraps_missing_file_as_command_error(tmp_path):
    with pytest.raises(CommandError, match="not found"):
        call_command("bootstrap_conference", config=str(tmp_path / "nope.toml"))


@pytest.mark.django_db
def test_bootstrap_creates_event_sessions_and_tickets(tmp_path):
    out = StringIO()
    call_command("bootstrap_conference", config=_write_config(tmp_path / "conf.toml"), stdout=out)

    event = Event.objects.get(slug="accp-test")
    assert event.start_date == datetime.date(2027, 5, 1)
    assert event.status == Event.Status.PUBLISHED
    assert event.venue == "Grand Hall"

    main = Session.objects.get(event=event, code="MAIN-D1")
    assert main.is_main_session is True
    assert main.session_type == Session.SessionType.LECTURE
    assert main.start_time == datetime.datetime(2027, 5, 1, 8, 30, tzinfo=_BANGKOK)
    workshop = Session.objects.get(event=event, code="WS-1")
    assert workshop.max_capacity == 30

    student = TicketType.objects.get(event=event, slug="thai-student")
    assert student.category == TicketType.Category.PRIMARY
    assert student.price == Decimal("3500.00")
    assert student.allowed_roles == "thstd,interstd"
    assert student.group_name == "Conference"
    assert student.features == ["Conference kit"]
    assert student.display_order == 0
    assert student.sale_start_date == datetime.datetime(2027, 1, 1, tzinfo=_BANGKOK)
    assert student.sale_end_date == datetime.datetime(2027, 4, 30, 23, 59, 59, tzinfo=_BANGKOK)
    assert list(student.sessions.values_list("code", flat=True)) == ["MAIN-D1"]

    addon = TicketType.objects.get(event=event, slug="workshop-thb")
    assert addon.category == TicketType.Category.ADDON
    assert addon.requires_session_choice is True
    assert addon.display_order == 1

    output = out.getvalue()
    assert "Created event: ACCP Test" in output
    assert "Tickets created:  2" in output


@pytest.mark.django_db
def test_bootstrap_refuses_existing_event_without_update(tmp_path):
    config_path = _write_config(tmp_path / "conf.toml")
    call_command("bootstrap_conference", config=config_path, stdout=StringIO())

    with pytest.raises(CommandError, match="already exists. Use --update"):
        call_command("bootstrap_conference", config=config_path, stdout=StringIO())


@pytest.mark.django_db
def test_bootstrap_update_changes_fields_and_replaces_session_links(tmp_path):
    call_command("bootstrap_conference", config=_write_config(tmp_path / "initial.toml"), stdout=StringIO())

    updated = _CONFIG.replace("price = 3500.00", "price = 3900.00").replace(
        'sessions = ["MAIN-D1"]', 'sessions = ["MAIN-D1", "WS-1"]'
    )
    out = StringIO()
    call_command(
        "bootstrap_conference",
        config=_write_config(tmp_path / "updated.toml", updated),
        update=True,
        stdout=out,
    )

    event = Event.objects.get(slug="accp-test")
    assert Event.objects.count() == 1
    assert TicketType.objects.filter(event=event).count() == 2
    student = TicketType.objects.get(event=event, slug="thai-student")
    assert student.price == Decimal("3900.00")
    assert set(TicketSession.objects.filter(ticket_type=student).values_list("session__code", flat=True)) == {
        "MAIN-D1",
        "WS-1",
    }
    assert "Updated event: ACCP Test" in out.getvalue()
    assert "Tickets updated:  2" in out.getvalue()


@pytest.mark.django_db
def test_bootstrap_dry_run_writes_nothing(tmp_path):
    out = StringIO()
    call_command("bootstrap_conference", config=_write_config(tmp_path / "conf.toml"), dry_run=True, stdout=out)

    assert Event.objects.count() == 0
    assert TicketType.objects.count() == 0
    output = out.getvalue()
    assert "[DRY RUN]" in output
    assert "[MAIN-D1] Main Day 1" in output
    assert "Workshop (workshop-thb) THB 1500.00 [addon]" in output


@pytest.mark.django_db
def test_bootstrap_verbose_summary_lists_items(tmp_path):
    out = StringIO()
    call_command("bootstrap_conference", config=_write_config(tmp_path / "conf.toml"), verbosity=2, stdout=out)

    output = out.getvalue()
    assert "+ Main Day 1" in output
    assert "+ Thai Student" in output
