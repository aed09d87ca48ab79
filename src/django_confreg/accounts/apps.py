"""Django app configuration for the accounts app."""

from django.apps import AppConfig


class ConfregAccountsConfig(AppConfig):
    """Configuration for the accounts app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_confreg.accounts"
    label = "confreg_accounts"
    verbose_name = "Accounts"
