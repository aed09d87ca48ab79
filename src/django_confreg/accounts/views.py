"""JSON endpoints for sign-up and back-office student verification."""

from typing import TYPE_CHECKING

from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from django_confreg.accounts.forms import RegisterForm, RejectForm, ResubmitDocumentForm, VerificationListForm
from django_confreg.accounts.services import (
    approve_member,
    list_verifications,
    member_dict,
    register_member,
    reject_member,
    resubmit_document,
)
from django_confreg.api import form_data, json_view, parse_json_body, success, validate_form
from django_confreg.auth import Principal, require_staff

if TYPE_CHECKING:
    from django.http import HttpRequest

_REGISTER_KEYS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "accountType": "account_type",
    "idCard": "id_card",
    "passportId": "passport_id",
    "pharmacyLicenseId": "pharmacy_license_id",
    "verificationDocUrl": "verification_doc_url",
}
_RESUBMIT_KEYS = {"verificationDocUrl": "verification_doc_url"}


@csrf_exempt
@require_POST
@json_view
def register(request: "HttpRequest") -> HttpResponse:
    """Create an account. Students are held for document review."""
    data = validate_form(RegisterForm(form_data(parse_json_body(request), _REGISTER_KEYS)))
    member = register_member(data)
    return success({"user": member_dict(member)}, status=201)


@csrf_exempt
@require_POST
@json_view
def resubmit(request: "HttpRequest") -> HttpResponse:
    data = validate_form(ResubmitDocumentForm(form_data(parse_json_body(request), _RESUBMIT_KEYS)))
    resubmit_document(data["email"], data["password"], data["verification_doc_url"])
    return success(message="Document resubmitted successfully. Your account is now pending review.")


@require_GET
@json_view
@require_staff
def backoffice_list(request: "HttpRequest", *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    """Page through members who uploaded a verification document."""
    query = validate_form(VerificationListForm(request.GET.dict()))
    return success(
        list_verifications(
            page=query["page"] or 1,
            per_page=query["limit"] or 10,
            search=query["search"],
            status=query["status"],
        )
    )


@csrf_exempt
@require_POST
@json_view
@require_staff
def approve(request: "HttpRequest", member_id: int, *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    member = approve_member(principal, member_id)
    return success({"id": member.pk, "status": member.status}, message="User approved successfully")


@csrf_exempt
@require_POST
@json_view
@require_staff
def reject(request: "HttpRequest", member_id: int, *, principal: Principal) -> HttpResponse:
    data = validate_form(RejectForm(parse_json_body(request)))
    member = reject_member(principal, member_id, data["reason"])
    return success(
        {"id": member.pk, "status": member.status, "rejectionReason": member.rejection_reason},
        message="User rejected",
    )
