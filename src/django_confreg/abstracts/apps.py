"""Django app configuration for the abstracts app."""

from django.apps import AppConfig


class ConfregAbstractsConfig(AppConfig):
    """Configuration for the abstracts app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_confreg.abstracts"
    label = "confreg_abstracts"
    verbose_name = "Abstracts"
