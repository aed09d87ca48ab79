"""Django app configuration for the notifications app."""

from typing import TYPE_CHECKING

from django.apps import AppConfig

if TYPE_CHECKING:
    from django_confreg.notifications.client import EmailClient


class ConfregNotificationsConfig(AppConfig):
    """Configuration for the notifications app.

    Owns the process-wide :class:`EmailClient` (and with it the provider's
    bearer-token cache), created on first use.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_confreg.notifications"
    label = "confreg_notifications"
    verbose_name = "Notifications"

    _email_client: "EmailClient | None" = None

    def ready(self) -> None:
        """Import signal receivers."""
        import django_confreg.notifications.receivers  # noqa: F401, PLC0415

    @property
    def email_client(self) -> "EmailClient":
        if self._email_client is None:
            from django_confreg.notifications.client import EmailClient  # noqa: PLC0415
            from django_confreg.settings import get_config  # noqa: PLC0415

            self._email_client = EmailClient(get_config().email)
        return self._email_client

    def reset_email_client(self) -> None:
        """Drop the cached client so the next use picks up new settings."""
        self._email_client = None
