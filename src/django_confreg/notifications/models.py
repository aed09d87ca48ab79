"""Outbound email queue."""

from django.db import models


class OutboundEmail(models.Model):
    """A templated email waiting for, or past, delivery.

    Rows are written in the same transaction as the change that triggers the
    email and delivered after commit. Failed deliveries keep their error text
    and are retried by the ``send_queued_emails`` command.
    """

    class Status(models.TextChoices):
        QUEUED = "queued", "Queued"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"

    template = models.CharField(max_length=100)
    to_email = models.EmailField()
    to_name = models.CharField(max_length=200, blank=True, default="")
    variables = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.QUEUED)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")
    provider_message_id = models.CharField(max_length=200, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "created_at"], name="confreg_outbound_status_idx")]

    def __str__(self) -> str:
        return f"{self.template} -> {self.to_email} ({self.status})"
