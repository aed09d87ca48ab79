"""Django app configuration for the registration app."""

from django.apps import AppConfig


class ConfregRegistrationConfig(AppConfig):
    """Configuration for the registration app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_confreg.registration"
    label = "confreg_registration"
    verbose_name = "Registration"
