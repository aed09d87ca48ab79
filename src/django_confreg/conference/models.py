"""Event and Session models for django-confreg."""

from django.db import models
from encrypted_fields import EncryptedCharField


class Event(models.Model):
    """A conference event with dates, venue, and payment gateway settings.

    The central model that the ticket catalog, orders, registrations and
    abstracts reference. Stripe keys are stored per event and encrypted at
    rest.
    """

    class Status(models.TextChoices):
        """Publication states for an event."""

        DRAFT = "draft", "Draft"
        PUBLISHED = "published", "Published"
        CANCELLED = "cancelled", "Cancelled"
        COMPLETED = "completed", "Completed"

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True, default="")
    start_date = models.DateField()
    end_date = models.DateField()
    timezone = models.CharField(max_length=100, default="Asia/Bangkok")
    venue = models.CharField(max_length=300, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    website_url = models.URLField(blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)

    stripe_secret_key = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    stripe_publishable_key = EncryptedCharField(max_length=200, blank=True, null=True, default=None)
    stripe_webhook_secret = EncryptedCharField(max_length=200, blank=True, null=True, default=None)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_date"]

    def __str__(self) -> str:
        return self.name

    @property
    def is_published(self) -> bool:
        return self.status == self.Status.PUBLISHED


class Session(models.Model):
    """A scheduled slot of an event that attendees can be admitted to.

    Main sessions are the plenary programme every full-conference ticket
    grants; workshops and the gala dinner are sold separately as add-ons.
    A ``max_capacity`` of ``0`` means unlimited.
    """

    class SessionType(models.TextChoices):
        """Kinds of session."""

        WORKSHOP = "workshop", "Workshop"
        GALA_DINNER = "gala_dinner", "Gala dinner"
        LECTURE = "lecture", "Lecture"
        CEREMONY = "ceremony", "Ceremony"
        BREAK = "break", "Break"
        OTHER = "other", "Other"

    event = models.ForeignKey(
        Event,
        on_delete=models.CASCADE,
        related_name="sessions",
    )
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=255)
    session_type = models.CharField(max_length=20, choices=SessionType.choices, default=SessionType.OTHER)
    is_main_session = models.BooleanField(default=False)
    description = models.TextField(blank=True, default="")
    room = models.CharField(max_length=100, blank=True, default="")
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    max_capacity = models.PositiveIntegerField(
        default=0,
        help_text="Maximum number of attendees. 0 means unlimited.",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["start_time", "code"]
        unique_together = [("event", "code")]

    def __str__(self) -> str:
        return f"{self.name} ({self.event.slug})"
