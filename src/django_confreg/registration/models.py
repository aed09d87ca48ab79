"""Ticket catalog, order, payment, and registration models for django-confreg."""

from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class TicketType(models.Model):
    """A purchasable catalog entry: a primary conference ticket or an add-on.

    Primary tickets grant the main programme; add-ons (workshops, gala
    dinner) are bought on top of a primary ticket. ``group_name`` groups
    equivalent items sold in different currencies or to different roles so
    that duplicate purchases can be detected across them.

    ``sold_count`` is only ever changed with an atomic
    ``F("sold_count") + n`` update when an order is reconciled.
    """

    class Category(models.TextChoices):
        """Catalog categories."""

        PRIMARY = "primary", "Primary ticket"
        ADDON = "addon", "Add-on"

    event = models.ForeignKey(
        "confreg_conference.Event",
        on_delete=models.CASCADE,
        related_name="ticket_types",
    )
    category = models.CharField(max_length=20, choices=Category.choices)
    group_name = models.CharField(max_length=100, blank=True, default="")
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="THB")
    allowed_roles = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Comma-separated role codes allowed to buy this ticket, e.g. 'thstd,interstd'.",
    )
    quota = models.PositiveIntegerField(help_text="The ticket is sold out once sold_count reaches quota.")
    sold_count = models.PositiveIntegerField(default=0)
    sale_start_date = models.DateTimeField(null=True, blank=True)
    sale_end_date = models.DateTimeField(null=True, blank=True)
    requires_session_choice = models.BooleanField(
        default=False,
        help_text="When True, the buyer must pick one of the linked sessions (e.g. a workshop).",
    )
    features = models.JSONField(default=list, blank=True)
    sessions = models.ManyToManyField(
        "confreg_conference.Session",
        through="TicketSession",
        related_name="ticket_types",
        blank=True,
    )
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "id"]
        unique_together = [("event", "slug")]

    def __str__(self) -> str:
        return f"{self.name} ({self.currency})"

    @property
    def role_codes(self) -> list[str]:
        """Return the allowed role codes as a list."""
        return [code.strip() for code in self.allowed_roles.split(",") if code.strip()]

    @property
    def is_sold_out(self) -> bool:
        return self.sold_count >= self.quota

    def is_on_sale(self, now: datetime | None = None) -> bool:
        """Check whether the current time is within the sale window (if set)."""
        now = now or timezone.now()
        if self.sale_start_date and now < self.sale_start_date:
            return False
        return not (self.sale_end_date and now > self.sale_end_date)

    @property
    def is_available(self) -> bool:
        """Active, on sale, and not sold out."""
        return self.is_active and self.is_on_sale() and not self.is_sold_out


class TicketSession(models.Model):
    """Links a ticket type to a session it grants access to."""

    ticket_type = models.ForeignKey(
        TicketType,
        on_delete=models.CASCADE,
        related_name="session_links",
    )
    session = models.ForeignKey(
        "confreg_conference.Session",
        on_delete=models.CASCADE,
        related_name="ticket_links",
    )

    class Meta:
        unique_together = [("ticket_type", "session")]

    def __str__(self) -> str:
        return f"{self.ticket_type.name} -> {self.session.code}"


class Order(models.Model):
    """A purchase of one primary ticket and/or add-ons.

    Amounts are captured at creation time: ``subtotal`` is the net catalog
    price, ``fee`` the gateway fee passed on to the buyer, and
    ``total_amount`` the gross amount charged. The only transitions are
    pending to paid and pending to cancelled.
    """

    class Status(models.TextChoices):
        """Lifecycle states for an order."""

        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        CANCELLED = "cancelled", "Cancelled"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="orders",
    )
    event = models.ForeignKey(
        "confreg_conference.Event",
        on_delete=models.CASCADE,
        related_name="orders",
    )
    order_number = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique order number, e.g. "ORD-LX4K2P-8F3A".',
    )
    currency = models.CharField(max_length=3, default="THB")
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    fee_method = models.CharField(max_length=30, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"

    @property
    def is_addon_only(self) -> bool:
        """True when the order contains no primary ticket item."""
        return not any(item.item_type == OrderItem.ItemType.TICKET for item in self.items.all())


class OrderItem(models.Model):
    """A catalog item captured on an order at its purchase-time price."""

    class ItemType(models.TextChoices):
        """Primary ticket or add-on."""

        TICKET = "ticket", "Ticket"
        ADDON = "addon", "Add-on"

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    item_type = models.CharField(max_length=20, choices=ItemType.choices)
    ticket_type = models.ForeignKey(
        TicketType,
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)
    session = models.ForeignKey(
        "confreg_conference.Session",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
        help_text="The session chosen by the buyer for items that require a choice.",
    )
    registration = models.ForeignKey(
        "Registration",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.ticket_type.name}"

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Payment(models.Model):
    """The gateway payment attempt for an order.

    ``stripe_payment_intent_id`` identifies the PaymentIntent across the
    webhook, verify and status-check paths; a payment reaches ``paid`` at
    most once.
    """

    class Status(models.TextChoices):
        """Lifecycle states for a payment."""

        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"

    order = models.OneToOneField(
        Order,
        on_delete=models.CASCADE,
        related_name="payment",
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="THB")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    stripe_payment_intent_id = models.CharField(max_length=255, unique=True)
    payment_channel = models.CharField(max_length=50, blank=True, default="")
    stripe_receipt_url = models.URLField(max_length=500, blank=True, default="")
    payment_details = models.JSONField(default=dict, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.stripe_payment_intent_id} {self.amount} ({self.status})"


class Registration(models.Model):
    """An attendee's confirmed admission to an event.

    Created when the first order containing a primary ticket is paid, and
    kept even if the order is later cancelled. Name and email are a snapshot
    of the user at that moment.
    """

    class Status(models.TextChoices):
        """Registration states."""

        CONFIRMED = "confirmed", "Confirmed"
        CANCELLED = "cancelled", "Cancelled"

    reg_code = models.CharField(max_length=50, unique=True)
    event = models.ForeignKey(
        "confreg_conference.Event",
        on_delete=models.CASCADE,
        related_name="registrations",
    )
    ticket_type = models.ForeignKey(
        TicketType,
        on_delete=models.PROTECT,
        related_name="registrations",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="registrations",
    )
    order = models.ForeignKey(
        Order,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registrations",
    )
    email = models.EmailField()
    first_name = models.CharField(max_length=100, blank=True, default="")
    last_name = models.CharField(max_length=100, blank=True, default="")
    dietary_requirements = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.CONFIRMED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "event"],
                condition=models.Q(status="confirmed"),
                name="confreg_one_confirmed_registration_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.reg_code} ({self.email})"


class RegistrationSession(models.Model):
    """Access of a registration to one session, with its check-in state."""

    registration = models.ForeignKey(
        Registration,
        on_delete=models.CASCADE,
        related_name="session_links",
    )
    session = models.ForeignKey(
        "confreg_conference.Session",
        on_delete=models.CASCADE,
        related_name="registration_links",
    )
    ticket_type = models.ForeignKey(
        TicketType,
        on_delete=models.PROTECT,
        related_name="registration_session_links",
    )
    checked_in_at = models.DateTimeField(null=True, blank=True)
    checked_in_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["session__start_time", "id"]
        unique_together = [("registration", "session")]

    def __str__(self) -> str:
        return f"{self.registration.reg_code} @ {self.session.code}"

    @property
    def is_checked_in(self) -> bool:
        return self.checked_in_at is not None


class StripeEvent(models.Model):
    """A raw Stripe webhook event, stored once per Stripe event id."""

    stripe_id = models.CharField(max_length=255, unique=True)
    kind = models.CharField(max_length=255)
    livemode = models.BooleanField(default=False)
    payload = models.JSONField(default=dict)
    customer_id = models.CharField(max_length=255, blank=True, default="")
    processed = models.BooleanField(default=False)
    api_version = models.CharField(max_length=50, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} ({self.stripe_id})"


class EventProcessingException(models.Model):
    """A captured error raised while handling a Stripe webhook event."""

    event = models.ForeignKey(
        StripeEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="exceptions",
    )
    data = models.TextField(blank=True, default="")
    message = models.CharField(max_length=500)
    traceback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.message
