"""Management command to bootstrap an event from a TOML configuration file."""

from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.db import transaction

from django_confreg.conference.models import Event, Session
from django_confreg.config_loader import load_conference_config
from django_confreg.registration.models import TicketSession, TicketType

# Mapping from TOML short field names to Django model field names.
_EVENT_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "description": "description",
    "start": "start_date",
    "end": "end_date",
    "timezone": "timezone",
    "venue": "venue",
    "address": "address",
    "website_url": "website_url",
    "status": "status",
}

_SESSION_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "type": "session_type",
    "main": "is_main_session",
    "description": "description",
    "room": "room",
    "start": "start_time",
    "end": "end_time",
    "capacity": "max_capacity",
}

_TICKET_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "category": "category",
    "group": "group_name",
    "description": "description",
    "price": "price",
    "currency": "currency",
    "quota": "quota",
    "requires_session_choice": "requires_session_choice",
    "features": "features",
}


def _map_fields(data: dict[str, Any], field_map: dict[str, str]) -> dict[str, Any]:
    """Map TOML config keys to Django model field names.

    Args:
        data: Raw config data with short field names.
        field_map: Mapping of config key -> model field name.

    Returns:
        Dict with model field names as keys.
    """
    result: dict[str, Any] = {}
    for config_key, model_field in field_map.items():
        if config_key in data:
            result[model_field] = data[config_key]
    return result


def _aware(value: date | datetime, tz: ZoneInfo, *, end_of_day: bool = False) -> datetime:
    """Interpret a TOML local date or datetime in the event's timezone."""
    if not isinstance(value, datetime):
        clock = datetime.max.time().replace(microsecond=0) if end_of_day else datetime.min.time()
        value = datetime.combine(value, clock)
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value


def _parse_availability(data: dict[str, Any], tz: ZoneInfo) -> dict[str, datetime]:
    """Extract the sale window from a ticket's ``available`` sub-table."""
    avail = data.get("available")
    if not avail or not isinstance(avail, dict):
        return {}
    result: dict[str, datetime] = {}
    if "opens" in avail:
        result["sale_start_date"] = _aware(avail["opens"], tz)
    if "closes" in avail:
        result["sale_end_date"] = _aware(avail["closes"], tz, end_of_day=True)
    return result


class Command(BaseCommand):
    """Bootstrap an event from a TOML configuration file.

    Parses the given TOML file, validates its structure, and creates (or
    updates) the corresponding ``Event``, ``Session``, ``TicketType`` and
    ``TicketSession`` records.

    Usage::

        manage.py bootstrap_conference --config conference.toml
        manage.py bootstrap_conference --config conference.toml --update
        manage.py bootstrap_conference --config conference.toml --dry-run
    """

    help = "Create or update an event, its sessions, and its tickets from a TOML config file."

    def add_arguments(self, parser: CommandParser) -> None:
        """Define the command-line arguments accepted by this command.

        Args:
            parser: The argument parser to configure.
        """
        parser.add_argument(
            "--config",
            required=True,
            help="Path to the conference TOML configuration file.",
        )
        parser.add_argument(
            "--update",
            action="store_true",
            default=False,
            help="Update an existing event instead of failing on duplicate slug.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Validate the config and print what would be created without saving.",
        )

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: ARG002
        """Execute the bootstrap command."""
        config_path: str = options["config"]
        update: bool = options["update"]
        dry_run: bool = options["dry_run"]
        verbosity: int = options["verbosity"]

        try:
            conf = load_conference_config(config_path)
        except (FileNotFoundError, TypeError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        sessions_data: list[dict[str, Any]] = conf["sessions"]
        tickets_data: list[dict[str, Any]] = conf["tickets"]

        if dry_run:
            self._print_dry_run(conf, sessions_data, tickets_data)
            return

        tz = ZoneInfo(conf["timezone"])
        with transaction.atomic():
            event = self._bootstrap_event(conf, update=update)
            sessions, session_results = self._bootstrap_sessions(event, sessions_data, tz)
            ticket_results = self._bootstrap_tickets(event, tickets_data, sessions, tz)

        self._print_summary(event, {"sessions": session_results, "tickets": ticket_results}, verbosity)

    def _bootstrap_event(self, conf: dict[str, Any], *, update: bool) -> Event:
        """Create or update the Event record.

        Raises:
            CommandError: If an event with the same slug already exists and
                ``update`` is ``False``.
        """
        slug = conf["slug"]
        fields = _map_fields(conf, _EVENT_FIELD_MAP)

        existing = Event.objects.filter(slug=slug).first()
        if existing and not update:
            raise CommandError(f"Event with slug '{slug}' already exists. Use --update to update it.")

        if existing:
            for attr, value in fields.items():
                setattr(existing, attr, value)
            existing.save()
            self.stdout.write(self.style.SUCCESS(f"  Updated event: {existing.name}"))
            return existing

        event = Event.objects.create(slug=slug, **fields)
        self.stdout.write(self.style.SUCCESS(f"  Created event: {event.name}"))
        return event

    def _bootstrap_sessions(
        self,
        event: Event,
        sessions_data: list[dict[str, Any]],
        tz: ZoneInfo,
    ) -> tuple[dict[str, Session], tuple[list[Session], list[Session]]]:
        """Create or update sessions keyed by ``code``.

        Returns:
            The sessions by code, and a tuple of (created, updated).
        """
        by_code: dict[str, Session] = {}
        created: list[Session] = []
        updated: list[Session] = []

        for session_data in sessions_data:
            fields = _map_fields(session_data, _SESSION_FIELD_MAP)
            fields["start_time"] = _aware(fields["start_time"], tz)
            fields["end_time"] = _aware(fields["end_time"], tz)
            session, was_created = Session.objects.update_or_create(
                event=event,
                code=session_data["code"],
                defaults=fields,
            )
            (created if was_created else updated).append(session)
            by_code[session.code] = session

        return by_code, (created, updated)

    def _bootstrap_tickets(
        self,
        event: Event,
        tickets_data: list[dict[str, Any]],
        sessions: dict[str, Session],
        tz: ZoneInfo,
    ) -> tuple[list[TicketType], list[TicketType]]:
        """Create or update ticket types and replace their session links.

        Returns:
            A tuple of (created, updated).
        """
        created: list[TicketType] = []
        updated: list[TicketType] = []

        for position, ticket_data in enumerate(tickets_data):
            fields = _map_fields(ticket_data, _TICKET_FIELD_MAP)
            fields["allowed_roles"] = ",".join(ticket_data.get("roles", []))
            fields["display_order"] = ticket_data.get("order", position)
            fields.update(_parse_availability(ticket_data, tz))

            ticket, was_created = TicketType.objects.update_or_create(
                event=event,
                slug=ticket_data["slug"],
                defaults=fields,
            )
            (created if was_created else updated).append(ticket)

            if "sessions" in ticket_data:
                TicketSession.objects.filter(ticket_type=ticket).delete()
                TicketSession.objects.bulk_create(
                    [TicketSession(ticket_type=ticket, session=sessions[code]) for code in ticket_data["sessions"]]
                )

        return created, updated

    def _print_dry_run(
        self,
        conf: dict[str, Any],
        sessions_data: list[dict[str, Any]],
        tickets_data: list[dict[str, Any]],
    ) -> None:
        """Print a preview of what would be created without touching the database."""
        self.stdout.write(self.style.MIGRATE_HEADING("\n[DRY RUN] No database changes will be made.\n"))
        self.stdout.write(self.style.MIGRATE_HEADING("Event:"))
        self.stdout.write(f"  Name:       {conf['name']}")
        self.stdout.write(f"  Slug:       {conf['slug']}")
        self.stdout.write(f"  Dates:      {conf['start']} -- {conf['end']}")
        self.stdout.write(f"  Timezone:   {conf['timezone']}")
        if conf.get("venue"):
            self.stdout.write(f"  Venue:      {conf['venue']}")

        if sessions_data:
            self.stdout.write(self.style.MIGRATE_HEADING(f"\nSessions ({len(sessions_data)}):"))
            for session in sessions_data:
                self.stdout.write(f"  [{session['code']}] {session['name']} {session['start']} -- {session['end']}")

        self.stdout.write(self.style.MIGRATE_HEADING(f"\nTickets ({len(tickets_data)}):"))
        for idx, ticket in enumerate(tickets_data):
            self.stdout.write(
                f"  [{idx}] {ticket['name']} ({ticket['slug']}) {ticket['currency']} {ticket['price']}"
                f" [{ticket['category']}]"
            )

        self.stdout.write("")

    def _print_summary(
        self,
        event: Event,
        results: dict[str, tuple[list[Any], list[Any]]],
        verbosity: int,
    ) -> None:
        """Print a summary of all bootstrap operations performed."""
        self.stdout.write("")
        self.stdout.write(self.style.MIGRATE_HEADING("Bootstrap summary:"))
        self.stdout.write(f"  Event:             {event.name} ({event.slug})")
        for label, (created, updated) in results.items():
            self.stdout.write(f"  {label.capitalize()} created:  {len(created)}")
            self.stdout.write(f"  {label.capitalize()} updated:  {len(updated)}")

        if verbosity >= 2:  # noqa: PLR2004
            for created, updated in results.values():
                for item in created:
                    self.stdout.write(f"    + {item.name}")
                for item in updated:
                    self.stdout.write(f"    ~ {item.name}")

        self.stdout.write(self.style.SUCCESS("\nDone."))
