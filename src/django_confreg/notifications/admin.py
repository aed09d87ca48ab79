"""Django admin configuration for the notifications app."""

from typing import TYPE_CHECKING

from django.contrib import admin

from django_confreg.notifications.models import OutboundEmail
from django_confreg.notifications.services import deliver

if TYPE_CHECKING:
    from django.db.models import QuerySet
    from django.http import HttpRequest


@admin.register(OutboundEmail)
class OutboundEmailAdmin(admin.ModelAdmin):
    """Outbound email queue with a retry action for failed rows."""

    list_display = ("template", "to_email", "status", "attempts", "created_at", "sent_at")
    list_filter = ("status", "template")
    search_fields = ("to_email", "to_name", "provider_message_id")
    readonly_fields = (
        "template",
        "to_email",
        "to_name",
        "variables",
        "status",
        "attempts",
        "last_error",
        "provider_message_id",
        "created_at",
        "sent_at",
    )
    actions = ("retry_delivery",)

    @admin.action(description="Retry delivery of selected emails")
    def retry_delivery(self, request: "HttpRequest", queryset: "QuerySet[OutboundEmail]") -> None:
        sent = sum(1 for outbound in queryset.exclude(status=OutboundEmail.Status.SENT) if deliver(outbound))
        self.message_user(request, f"Delivered {sent} email(s).")

    def has_add_permission(self, request: "HttpRequest") -> bool:  # noqa: ARG002, D102
        return False
