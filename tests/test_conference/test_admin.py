"""Tests for the masked Stripe credential fields of the event admin."""

import pytest
from django.contrib import admin

from django_confreg.conference.admin import SECRET_PLACEHOLDER, EventAdmin, EventForm, SecretField, SecretInput
from django_confreg.conference.models import Event, Session


class TestSecretInput:
    def test_masks_stored_secret(self):
        assert SecretInput().format_value("sk_live_abc123") == SECRET_PLACEHOLDER

    @pytest.mark.parametrize("value", [None, ""])
    def test_renders_blank_without_secret(self, value):
        assert SecretInput().format_value(value) == ""


class TestSecretField:
    @pytest.mark.parametrize("data", [None, "", SECRET_PLACEHOLDER])
    def test_blank_or_placeholder_is_unchanged(self, data):
        assert SecretField().has_changed("sk_test_old", data) is False

    def test_new_value_is_a_change(self):
        assert SecretField().has_changed("sk_test_old", "sk_test_new") is True

    @pytest.mark.parametrize("value", [None, "", SECRET_PLACEHOLDER])
    def test_clean_keeps_stored_value(self, value):
        field = SecretField()
        field.initial = "whsec_stored"
        assert field.clean(value) == "whsec_stored"

    def test_clean_accepts_new_value(self):
        field = SecretField()
        field.initial = "whsec_stored"
        assert field.clean("whsec_rotated") == "whsec_rotated"

    def test_is_optional_and_not_autocompleted(self):
        field = SecretField()
        assert field.required is False
        assert field.widget.attrs["autocomplete"] == "off"


@pytest.mark.django_db
class TestEventForm:
    def test_placeholder_submission_keeps_existing_key(self):
        event = Event.objects.create(
            name="ACCP",
            slug="accp",
            start_date="2027-05-01",
            end_date="2027-05-03",
            stripe_secret_key="sk_test_existing",
        )
        form = EventForm(
            data={
                "name": "ACCP",
                "slug": "accp",
                "description": "",
                "start_date": "2027-05-01",
                "end_date": "2027-05-03",
                "timezone": "Asia/Bangkok",
                "venue": "",
                "address": "",
                "website_url": "",
                "status": Event.Status.PUBLISHED,
                "stripe_secret_key": SECRET_PLACEHOLDER,
                "stripe_publishable_key": "",
                "stripe_webhook_secret": "whsec_new",
                "is_active": "on",
            },
            instance=event,
        )
        form.fields["stripe_secret_key"].initial = event.stripe_secret_key

        assert form.is_valid(), form.errors
        saved = form.save()
        saved.refresh_from_db()
        assert saved.stripe_secret_key == "sk_test_existing"
        assert saved.stripe_webhook_secret == "whsec_new"
        assert saved.status == Event.Status.PUBLISHED


def test_event_and_session_are_registered():
    assert isinstance(admin.site._registry[Event], EventAdmin)
    assert Session in admin.site._registry
