"""Django admin configuration for the registration app."""

from typing import TYPE_CHECKING

from django.contrib import admin

from django_confreg.registration.models import (
    EventProcessingException,
    Order,
    OrderItem,
    Payment,
    Registration,
    RegistrationSession,
    StripeEvent,
    TicketSession,
    TicketType,
)

if TYPE_CHECKING:
    from django.http import HttpRequest


class TicketSessionInline(admin.TabularInline):
    """Sessions a ticket type grants access to."""

    model = TicketSession
    extra = 0
    autocomplete_fields = ("session",)


@admin.register(TicketType)
class TicketTypeAdmin(admin.ModelAdmin):
    """Admin interface for managing ticket types.

    Provides filtering by event, category and currency, search by name and
    slug, and auto-population of the slug from the ticket name. The sold
    count is maintained by payment reconciliation and is read-only here.
    """

    list_display = ("name", "event", "category", "group_name", "price", "currency", "sold_count", "quota", "is_active")
    list_filter = ("event", "category", "currency", "is_active")
    search_fields = ("name", "slug", "group_name")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("sold_count",)
    inlines = (TicketSessionInline,)


class OrderItemInline(admin.TabularInline):
    """Order items are snapshots taken at checkout and are shown read-only."""

    model = OrderItem
    extra = 0
    readonly_fields = ("item_type", "ticket_type", "price", "quantity", "session", "registration")


class PaymentInline(admin.StackedInline):
    """Inline display of the payment within the order admin."""

    model = Payment
    extra = 0
    readonly_fields = ("stripe_payment_intent_id", "amount", "currency", "paid_at", "stripe_receipt_url")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for orders.

    Money fields are read-only; changes flow through checkout and payment
    reconciliation instead.
    """

    list_display = ("order_number", "user", "event", "status", "total_amount", "currency", "created_at")
    list_filter = ("event", "status", "currency", "fee_method")
    search_fields = ("order_number", "user__email")
    readonly_fields = ("order_number", "subtotal", "fee", "total_amount", "fee_method")
    inlines = (OrderItemInline, PaymentInline)


class RegistrationSessionInline(admin.TabularInline):
    model = RegistrationSession
    extra = 0
    fk_name = "registration"
    readonly_fields = ("session", "ticket_type", "checked_in_at", "checked_in_by")


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    """Admin interface for confirmed and cancelled registrations."""

    list_display = ("reg_code", "first_name", "last_name", "email", "event", "ticket_type", "status", "created_at")
    list_filter = ("event", "status", "ticket_type")
    search_fields = ("reg_code", "email", "first_name", "last_name")
    readonly_fields = ("reg_code", "order")
    inlines = (RegistrationSessionInline,)


@admin.register(RegistrationSession)
class RegistrationSessionAdmin(admin.ModelAdmin):
    """Check-in log, one row per registration and session."""

    list_display = ("registration", "session", "ticket_type", "checked_in_at", "checked_in_by")
    list_filter = ("session__event", "session")
    search_fields = ("registration__reg_code", "registration__email")
    date_hierarchy = "checked_in_at"


@admin.register(StripeEvent)
class StripeEventAdmin(admin.ModelAdmin):
    """Read-only admin for Stripe webhook events."""

    list_display = ("stripe_id", "kind", "processed", "livemode", "created_at")
    list_filter = ("kind", "processed", "livemode")
    search_fields = ("stripe_id", "customer_id")
    readonly_fields = (
        "stripe_id",
        "kind",
        "livemode",
        "payload",
        "customer_id",
        "processed",
        "api_version",
        "created_at",
    )

    def has_add_permission(self, request: "HttpRequest") -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: "HttpRequest", obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: "HttpRequest", obj: StripeEvent | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(EventProcessingException)
class EventProcessingExceptionAdmin(admin.ModelAdmin):
    """Read-only admin for webhook processing failures."""

    list_display = ("event", "message", "created_at")
    search_fields = ("message", "event__stripe_id")
    readonly_fields = ("event", "data", "message", "traceback", "created_at")

    def has_add_permission(self, request: "HttpRequest") -> bool:  # noqa: ARG002, D102
        return False
