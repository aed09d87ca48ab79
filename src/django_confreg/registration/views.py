"""JSON endpoints of the registration app.

Catalog listings are public. Purchase and payment-status endpoints require a
bearer token and act on the caller's own orders only. The receipt download
is authorised by its signed token alone, so it can be linked from email.
Check-in endpoints are staff only.

Every handler is wrapped in :func:`~django_confreg.api.json_view`, which
turns :class:`~django_confreg.errors.ApiError` into the error envelope.
"""

import logging
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from django_confreg.accounts.models import Member
from django_confreg.api import form_data, json_view, parse_json_body, success, validate_form
from django_confreg.auth import Principal, issue_access_token, require_principal, require_staff
from django_confreg.errors import DomainRuleViolation, Forbidden, NotFound, Unauthorized, ValidationFailed
from django_confreg.registration.forms import (
    CancelIntentForm,
    CheckInForm,
    CheckInListForm,
    CreatePaymentIntentForm,
    LoginForm,
)
from django_confreg.registration.models import Order, Payment, Registration
from django_confreg.registration.services.catalog import list_public_tickets, list_workshops
from django_confreg.registration.services.checkin import check_in, list_check_ins
from django_confreg.registration.services.checkout import CheckoutRequest, CheckoutService
from django_confreg.registration.services.purchases import get_my_tickets, get_purchases
from django_confreg.registration.services.receipts import (
    build_receipt,
    receipt_url,
    render_receipt_pdf,
    verify_receipt_token,
)
from django_confreg.registration.services.reconciliation import ReconciliationService
from django_confreg.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)

_CREATE_INTENT_KEYS = {
    "packageId": "package_id",
    "addOnIds": "addon_ids",
    "paymentMethod": "payment_method",
    "workshopSessionId": "workshop_session_id",
}
_CHECK_IN_KEYS = {"regCode": "reg_code", "sessionId": "session_id", "checkInAll": "check_in_all"}


def _payment_dict(payment: Payment | None) -> dict[str, Any] | None:
    if payment is None:
        return None
    return {
        "status": payment.status,
        "amount": str(payment.amount),
        "paidAt": payment.paid_at.isoformat() if payment.paid_at else None,
        "stripeReceiptUrl": payment.stripe_receipt_url or None,
        "paymentChannel": payment.payment_channel or None,
    }


def _owned_order(principal: Principal, order: Order | None) -> Order:
    if order is None:
        raise NotFound("Order not found")
    if order.user_id != principal.user_id:
        raise Forbidden("Access denied")
    return order


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


@csrf_exempt
@require_POST
@json_view
def login(request: "HttpRequest") -> HttpResponse:
    """Exchange email and password for a bearer token."""
    data = validate_form(LoginForm(parse_json_body(request)))
    user = get_user_model().objects.filter(email__iexact=data["email"], is_active=True).first()
    if user is None or not user.check_password(data["password"]):
        logger.info("Failed login attempt for %s", data["email"])
        raise Unauthorized("Invalid email or password")
    status = Member.objects.filter(user=user).values_list("status", flat=True).first()
    if status == Member.Status.PENDING_APPROVAL:
        raise Forbidden("Your account is pending approval.", code="ACCOUNT_PENDING")
    if status == Member.Status.REJECTED:
        raise Forbidden("Your account verification was rejected.", code="ACCOUNT_REJECTED")
    principal = Principal.from_user(user)
    return success(
        {
            "token": issue_access_token(user),
            "user": {"id": principal.user_id, "email": principal.email, "isStaff": principal.is_staff},
        }
    )


# ---------------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------------


@require_GET
@json_view
def tickets(request: "HttpRequest") -> HttpResponse:
    """List public tickets, optionally filtered by ``?role=``."""
    return success(list_public_tickets(request.GET.get("role") or None))


@require_GET
@json_view
def workshops(request: "HttpRequest") -> HttpResponse:  # noqa: ARG001
    """List workshop sessions with enrollment."""
    return success(list_workshops())


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------


@require_GET
@json_view
@require_principal
def my_purchases(request: "HttpRequest", *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    """What the caller already owns, for hiding sold-to-you items."""
    return success(get_purchases(principal))


@require_GET
@json_view
@require_principal
def my_tickets(request: "HttpRequest", *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    """The caller's ticket wallet."""
    return success(get_my_tickets(principal))


@csrf_exempt
@require_POST
@json_view
@require_principal
def create_intent(request: "HttpRequest", *, principal: Principal) -> HttpResponse:
    """Create a pending order and its Stripe PaymentIntent."""
    form = CreatePaymentIntentForm(form_data(parse_json_body(request), _CREATE_INTENT_KEYS))
    data = validate_form(form)
    result = CheckoutService.create_order(
        principal,
        CheckoutRequest(
            package_id=data["package_id"],
            addon_ids=data["addon_ids"],
            currency=data["currency"],
            payment_method=data["payment_method"],
            workshop_session_id=data["workshop_session_id"],
        ),
    )
    return success(result.as_dict())


@csrf_exempt
@require_POST
@json_view
@require_principal
def cancel_intent(request: "HttpRequest", *, principal: Principal) -> HttpResponse:
    """Cancel one of the caller's pending orders."""
    data = validate_form(CancelIntentForm(form_data(parse_json_body(request), {"orderId": "order_id"})))
    order = CheckoutService.cancel_order(principal, data["order_id"])
    return success({"orderId": order.pk, "orderStatus": order.status})


# ---------------------------------------------------------------------------
# Payment status
# ---------------------------------------------------------------------------


@require_GET
@json_view
@require_principal
def verify_payment(request: "HttpRequest", *, principal: Principal) -> HttpResponse:
    """Report an order by PaymentIntent id, reconciling with Stripe if pending.

    Called by the frontend on return from the payment page, when the
    webhook may not have arrived yet.
    """
    intent_id = request.GET.get("payment_intent", "").strip()
    if not intent_id:
        raise ValidationFailed("Missing payment_intent parameter")

    payment = Payment.objects.select_related("order", "order__event").filter(stripe_payment_intent_id=intent_id).first()
    if payment is None:
        raise NotFound("Payment not found")
    _owned_order(principal, payment.order)

    payment = ReconciliationService.sync_with_gateway(payment)
    order = payment.order

    items = [
        {
            "type": item.item_type,
            "name": item.ticket_type.name,
            "category": item.ticket_type.category,
            "price": str(item.price),
            "quantity": item.quantity,
        }
        for item in order.items.select_related("ticket_type")
    ]
    is_paid = order.status == Order.Status.PAID
    registration = Registration.objects.filter(order_items__order=order).first() if is_paid else None
    return success(
        {
            "orderId": order.pk,
            "orderNumber": order.order_number,
            "orderStatus": order.status,
            "payment": _payment_dict(payment),
            "receiptDownloadUrl": receipt_url(order) if is_paid else None,
            "regCode": registration.reg_code if registration else None,
            "items": items,
            "subtotal": str(order.subtotal),
            "fee": str(order.fee),
            "total": str(order.total_amount),
        }
    )


@require_GET
@json_view
@require_principal
def order_status(request: "HttpRequest", order_id: int, *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    """Report an order's status, falling back to Stripe while pending."""
    order = _owned_order(principal, Order.objects.select_related("event").filter(pk=order_id).first())
    payment = Payment.objects.filter(order=order).first()
    if payment is not None:
        payment = ReconciliationService.sync_with_gateway(payment)
        order.refresh_from_db()
    return success(
        {
            "orderId": order.pk,
            "orderNumber": order.order_number,
            "orderStatus": order.status,
            "payment": _payment_dict(payment),
        }
    )


@require_GET
@json_view
def receipt(request: "HttpRequest", token: str) -> HttpResponse:  # noqa: ARG001
    """Download the PDF receipt of a paid order."""
    order_id = verify_receipt_token(token)
    if order_id is None:
        raise Unauthorized("Invalid or malformed receipt token")

    order = Order.objects.select_related("user").filter(pk=order_id).first()
    if order is None:
        raise NotFound("Order not found")
    if order.status != Order.Status.PAID:
        raise DomainRuleViolation("ORDER_NOT_PAID", "Receipt is only available for paid orders")

    pdf = render_receipt_pdf(build_receipt(order))
    filename = f"{get_config().receipts.filename_prefix}-{order.order_number}.pdf"
    response = HttpResponse(pdf, content_type="application/pdf")
    response["Content-Disposition"] = f'inline; filename="{filename}"'
    response["Content-Length"] = str(len(pdf))
    return response


# ---------------------------------------------------------------------------
# Back office
# ---------------------------------------------------------------------------


@csrf_exempt
@require_http_methods(["GET", "POST"])
@json_view
@require_staff
def checkins(request: "HttpRequest", *, principal: Principal) -> HttpResponse:
    """Scan a registration code (POST) or page through the check-in log (GET)."""
    if request.method == "GET":
        query = validate_form(CheckInListForm(form_data(request.GET.dict(), {"eventId": "event_id"})))
        return success(
            list_check_ins(
                page=query["page"] or 1,
                per_page=query["limit"] or 50,
                search=query["search"],
                event_id=query["event_id"],
            )
        )

    data = validate_form(CheckInForm(form_data(parse_json_body(request), _CHECK_IN_KEYS)))
    result = check_in(
        principal,
        data["reg_code"],
        session_id=data["session_id"],
        check_in_all=data["check_in_all"],
    )
    return success(result.as_dict())
