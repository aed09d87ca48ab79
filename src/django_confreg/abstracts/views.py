"""JSON endpoints for abstract submission and back-office review."""

from typing import TYPE_CHECKING

from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from django_confreg.abstracts.forms import AbstractListForm, AbstractReviewForm, AbstractSubmissionForm
from django_confreg.abstracts.services import (
    abstract_dict,
    abstract_word_count,
    list_abstracts,
    list_user_abstracts,
    review_abstract,
    submit_abstract,
)
from django_confreg.api import form_data, json_view, parse_json_body, success, validate_form
from django_confreg.auth import Principal, require_principal, require_staff

if TYPE_CHECKING:
    from django.http import HttpRequest

_SUBMISSION_KEYS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "presentationType": "presentation_type",
    "fullPaperUrl": "full_paper_url",
    "coAuthors": "co_authors",
    "eventId": "event_id",
}
_LIST_KEYS = {"eventId": "event_id", "presentationType": "presentation_type"}


@csrf_exempt
@require_POST
@json_view
@require_principal
def submit(request: "HttpRequest", *, principal: Principal) -> HttpResponse:
    """Submit an abstract on behalf of the caller."""
    data = validate_form(AbstractSubmissionForm(form_data(parse_json_body(request), _SUBMISSION_KEYS)))
    abstract = submit_abstract(principal, data)
    return success(
        {
            "abstract": abstract_dict(abstract),
            "wordCount": abstract_word_count(data),
        },
        status=201,
    )


@require_GET
@json_view
@require_principal
def mine(request: "HttpRequest", *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    """The caller's own abstracts."""
    abstracts = list_user_abstracts(principal)
    return success({"abstracts": abstracts, "total": len(abstracts)})


@require_GET
@json_view
@require_staff
def backoffice_list(request: "HttpRequest", *, principal: Principal) -> HttpResponse:  # noqa: ARG001
    """Page through all abstracts with optional filters."""
    query = validate_form(AbstractListForm(form_data(request.GET.dict(), _LIST_KEYS)))
    return success(
        list_abstracts(
            page=query["page"] or 1,
            per_page=query["limit"] or 10,
            search=query["search"],
            event_id=query["event_id"],
            status=query["status"],
            category=query["category"],
            presentation_type=query["presentation_type"],
        )
    )


@csrf_exempt
@require_POST
@json_view
@require_staff
def review(request: "HttpRequest", abstract_id: int, *, principal: Principal) -> HttpResponse:
    """Record a review decision."""
    data = validate_form(AbstractReviewForm(parse_json_body(request)))
    result = review_abstract(principal, abstract_id, data["status"], data["comment"])
    return success(
        {
            "abstractId": abstract_id,
            "status": result.decision,
            "comment": result.comment,
            "reviewedAt": result.reviewed_at.isoformat(),
        }
    )
