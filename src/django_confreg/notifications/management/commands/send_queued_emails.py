"""Management command to deliver queued and previously failed emails.

Usage::

    manage.py send_queued_emails
    manage.py send_queued_emails --limit 20
"""

from typing import TYPE_CHECKING

from django.core.management.base import BaseCommand

from django_confreg.notifications.services import retry_pending

if TYPE_CHECKING:
    import argparse


class Command(BaseCommand):
    """Deliver outbound emails that have not been sent yet."""

    help = "Deliver queued and failed outbound emails that have attempts left"

    def add_arguments(self, parser: "argparse.ArgumentParser") -> None:
        """Register command-line arguments.

        Args:
            parser: The argument parser to add arguments to.
        """
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of emails to attempt.",
        )

    def handle(self, **options: object) -> None:
        """Attempt delivery and report the counts."""
        limit = int(options["limit"])  # type: ignore[arg-type]
        sent, failed = retry_pending(limit=limit)
        style = self.style.SUCCESS if not failed else self.style.WARNING
        self.stdout.write(style(f"Sent {sent} email(s), {failed} failed"))
