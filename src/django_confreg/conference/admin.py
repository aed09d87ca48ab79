"""Django admin configuration for the conference app."""

from django import forms
from django.contrib import admin

from django_confreg.conference.models import Event, Session

SECRET_PLACEHOLDER = "•" * 12


class SecretInput(forms.PasswordInput):
    """Password widget that shows a placeholder instead of the real value.

    The decrypted key never reaches the rendered HTML; submitting the
    placeholder (or an empty string) keeps the stored value.
    """

    def format_value(self, value: str | None) -> str:
        """Return a dot placeholder when a value exists, empty string otherwise."""
        if value:
            return SECRET_PLACEHOLDER
        return ""


class SecretField(forms.CharField):
    """Char field that preserves the stored secret when left unchanged."""

    widget = SecretInput

    def __init__(self, **kwargs: object) -> None:
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)
        self.widget.attrs.setdefault("autocomplete", "off")

    def has_changed(self, initial: str | None, data: str | None) -> bool:
        """Treat placeholder or blank submissions as unchanged."""
        if not data or data == SECRET_PLACEHOLDER:
            return False
        return super().has_changed(initial, data)

    def clean(self, value: str | None) -> str | None:
        """Return the stored value when the field is left blank or unchanged."""
        if not value or value == SECRET_PLACEHOLDER:
            return self.initial
        return super().clean(value)


class EventForm(forms.ModelForm):
    """Event form with masked Stripe credentials."""

    stripe_secret_key = SecretField()
    stripe_publishable_key = SecretField()
    stripe_webhook_secret = SecretField()

    class Meta:
        model = Event
        exclude: list[str] = []


class SessionInline(admin.TabularInline):
    """Inline editor for the sessions of an event."""

    model = Session
    extra = 1
    fields = ("code", "name", "session_type", "is_main_session", "start_time", "end_time", "max_capacity", "is_active")


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for managing events.

    Groups fields into basic information, dates, the Stripe integration and
    status. Sessions are editable inline.
    """

    form = EventForm
    list_display = ("name", "slug", "start_date", "end_date", "status", "is_active")
    list_filter = ("status", "is_active")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    inlines = (SessionInline,)

    fieldsets = (
        (
            None,
            {
                "fields": ("name", "slug", "description", "venue", "address", "website_url"),
            },
        ),
        (
            "Dates",
            {
                "fields": ("start_date", "end_date", "timezone"),
            },
        ),
        (
            "Stripe",
            {
                "fields": (
                    "stripe_secret_key",
                    "stripe_publishable_key",
                    "stripe_webhook_secret",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Status",
            {
                "fields": ("status", "is_active"),
            },
        ),
    )


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    """Admin list of sessions across events."""

    list_display = ("code", "name", "event", "session_type", "is_main_session", "max_capacity", "is_active")
    list_filter = ("event", "session_type", "is_main_session", "is_active")
    search_fields = ("code", "name")
