"""Django app configuration for the conference app."""

from django.apps import AppConfig


class ConfregConferenceConfig(AppConfig):
    """Configuration for the conference app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_confreg.conference"
    label = "confreg_conference"
    verbose_name = "Conference"
