"""TOML loader for conference bootstrap configuration.

Loads and validates a conference TOML file (see ``conference.example.toml``)
so that an event, its sessions, and its ticket catalog can be created
programmatically. Sessions are keyed by ``code``; tickets by ``slug``, which
is derived from the ticket name when omitted.
"""

import re
import tomllib
from decimal import Decimal
from pathlib import Path
from typing import Any

_REQUIRED_CONFERENCE_FIELDS: set[str] = {"name", "start", "end", "timezone"}
_REQUIRED_SESSION_FIELDS: set[str] = {"code", "name", "start", "end"}
_REQUIRED_TICKET_FIELDS: set[str] = {"name", "price", "currency", "quota"}

_TICKET_CATEGORIES = ("primary", "addon")

_SLUG_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"[-\s]+")


def _slugify(value: str) -> str:
    """Convert a string to a URL-friendly slug.

    Args:
        value: The string to slugify.

    Returns:
        Lowercase, hyphen-separated slug.
    """
    value = _SLUG_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub("-", value).strip("-")


def _validate_unique(items: list[dict[str, Any]], key: str, label: str) -> None:
    """Ensure each item has a unique, non-empty string value for *key*."""
    seen: set[str] = set()
    duplicates: set[str] = set()

    for idx, item in enumerate(items):
        value = item.get(key)
        if not isinstance(value, str) or not value:
            msg = f"{label}[{idx}].{key} must be a non-empty string"
            raise ValueError(msg)
        if value in seen:
            duplicates.add(value)
        seen.add(value)

    if duplicates:
        msg = f"{label} has duplicate {key}s: {', '.join(sorted(duplicates))}"
        raise ValueError(msg)


def _validate_list(
    conf: dict[str, Any],
    key: str,
    required_fields: set[str],
    *,
    must_exist: bool = False,
) -> list[dict[str, Any]]:
    """Validate an optional list of mappings within the conference config.

    Args:
        conf: The conference config dict.
        key: The key to validate (e.g. ``"sessions"``, ``"tickets"``).
        required_fields: Fields every item must carry.
        must_exist: If ``True``, the key must be present and non-empty.

    Returns:
        The validated list (empty when absent and optional).
    """
    label = f"conference.{key}"
    items = conf.get(key)

    if items is None:
        if must_exist:
            msg = f"{label} must be a non-empty list"
            raise ValueError(msg)
        conf[key] = []
        return conf[key]

    if not isinstance(items, list) or (must_exist and len(items) == 0):
        msg = f"{label} must be a non-empty list"
        raise ValueError(msg)

    for idx, item in enumerate(items):
        _validate_mapping(item, required_fields, f"{label}[{idx}]")
    return items


def _validate_tickets(tickets: list[dict[str, Any]], session_codes: set[str]) -> None:
    for idx, ticket in enumerate(tickets):
        label = f"conference.tickets[{idx}]"
        ticket.setdefault("slug", _slugify(ticket["name"]))
        category = ticket.setdefault("category", "primary")
        if category not in _TICKET_CATEGORIES:
            msg = f"{label}.category must be one of: {', '.join(_TICKET_CATEGORIES)}"
            raise ValueError(msg)
        if not isinstance(ticket["price"], Decimal | int) or ticket["price"] < 0:
            msg = f"{label}.price must be a non-negative number"
            raise ValueError(msg)
        if not isinstance(ticket["quota"], int) or ticket["quota"] < 0:
            msg = f"{label}.quota must be a non-negative integer"
            raise ValueError(msg)
        unknown = sorted(set(ticket.get("sessions", [])) - session_codes)
        if unknown:
            msg = f"{label} references unknown session code(s): {', '.join(unknown)}"
            raise ValueError(msg)

    _validate_unique(tickets, "slug", "conference.tickets")


def load_conference_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a conference TOML configuration file.

    Args:
        path: Filesystem path to the TOML file.

    Returns:
        The ``conference`` mapping from the parsed TOML, with native types
        (``datetime`` for dates and times, ``Decimal`` for prices). Slugs are
        auto-generated from ``name`` when not explicitly provided.

    Raises:
        FileNotFoundError: If *path* does not exist.
        TypeError: If a table or list entry is not a mapping.
        ValueError: If required keys or fields are missing, a ticket names an
            unknown session, or the file is not valid TOML.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Conference config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as fh:
        try:
            data: dict[str, Any] = tomllib.load(fh, parse_float=Decimal)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ValueError(msg) from exc

    if "conference" not in data:
        msg = "Missing required [conference] table in config file"
        raise ValueError(msg)

    conf = data["conference"]

    _validate_mapping(conf, _REQUIRED_CONFERENCE_FIELDS, "conference")
    if "slug" not in conf:
        conf["slug"] = _slugify(conf["name"])

    sessions = _validate_list(conf, "sessions", _REQUIRED_SESSION_FIELDS)
    _validate_unique(sessions, "code", "conference.sessions")
    tickets = _validate_list(conf, "tickets", _REQUIRED_TICKET_FIELDS, must_exist=True)
    _validate_tickets(tickets, {s["code"] for s in sessions})

    return conf


def _validate_mapping(mapping: object, required: set[str], label: str) -> None:
    """Validate that *mapping* is a dict containing all *required* keys.

    Args:
        mapping: The value to validate.
        required: Set of required key names.
        label: Human-readable context for error messages.

    Raises:
        TypeError: If *mapping* is not a dict.
        ValueError: If *mapping* is missing required keys.
    """
    if not isinstance(mapping, dict):
        msg = f"{label} must be a mapping, got {type(mapping).__name__}"
        raise TypeError(msg)
    missing = required - mapping.keys()
    if missing:
        msg = f"{label} is missing required fields: {', '.join(sorted(missing))}"
        raise ValueError(msg)
