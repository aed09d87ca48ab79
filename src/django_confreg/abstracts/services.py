"""Abstract submission, listing, and review."""

import logging
from typing import TYPE_CHECKING, Any

from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q

from django_confreg.abstracts.models import Abstract, AbstractReview, CoAuthor
from django_confreg.abstracts.signals import abstract_reviewed, abstract_submitted
from django_confreg.conference.models import Event
from django_confreg.errors import DomainRuleViolation, NotFound
from django_confreg.settings import get_config

if TYPE_CHECKING:
    from django_confreg.auth import Principal

logger = logging.getLogger(__name__)

_CONTENT_SECTIONS = ("background", "methods", "results", "conclusion")


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def abstract_word_count(data: dict[str, Any]) -> int:
    """Total words over the four content sections of a submission."""
    return sum(count_words(data.get(section) or "") for section in _CONTENT_SECTIONS)


def _submission_event(event_id: int | None) -> Event:
    events = Event.objects.filter(is_active=True, status=Event.Status.PUBLISHED)
    event = events.filter(pk=event_id).first() if event_id else events.order_by("-start_date").first()
    if event is None:
        raise NotFound("Event not found")
    return event


def abstract_dict(abstract: Abstract) -> dict[str, Any]:
    return {
        "id": abstract.pk,
        "trackingId": abstract.tracking_id,
        "eventId": abstract.event_id,
        "title": abstract.title,
        "category": abstract.category,
        "presentationType": abstract.presentation_type,
        "status": abstract.status,
        "keywords": abstract.keywords,
        "background": abstract.background,
        "methods": abstract.methods,
        "results": abstract.results,
        "conclusion": abstract.conclusion,
        "fullPaperUrl": abstract.full_paper_url or None,
        "author": {
            "firstName": abstract.first_name,
            "lastName": abstract.last_name,
            "email": abstract.email,
            "affiliation": abstract.affiliation,
            "country": abstract.country,
        },
        "coAuthors": [
            {
                "firstName": co.first_name,
                "lastName": co.last_name,
                "email": co.email,
                "institution": co.institution,
                "country": co.country,
            }
            for co in abstract.co_authors.all()
        ],
        "createdAt": abstract.created_at.isoformat(),
    }


@transaction.atomic
def submit_abstract(principal: "Principal", data: dict[str, Any]) -> Abstract:
    """Store a validated submission and its co-authors.

    Args:
        principal: The submitting user.
        data: ``cleaned_data`` of an
            :class:`~django_confreg.abstracts.forms.AbstractSubmissionForm`.

    Raises:
        DomainRuleViolation: ``INVALID_WORD_COUNT`` when the content sections
            together fall outside the configured word range.
        NotFound: No open event matches ``event_id``.
    """
    limits = get_config().abstracts
    words = abstract_word_count(data)
    if not limits.min_words <= words <= limits.max_words:
        raise DomainRuleViolation(
            "INVALID_WORD_COUNT",
            f"Abstract word count must be between {limits.min_words}-{limits.max_words} words. "
            f"Current: {words} words",
            details={"wordCount": words},
        )

    event = _submission_event(data.get("event_id"))
    abstract = Abstract.objects.create(
        event=event,
        user_id=principal.user_id,
        first_name=data["first_name"],
        last_name=data["last_name"],
        email=data["email"],
        affiliation=data["affiliation"],
        country=data["country"],
        phone=data.get("phone") or "",
        title=data["title"],
        category=data["category"],
        presentation_type=data["presentation_type"],
        keywords=data["keywords"],
        background=data["background"],
        methods=data["methods"],
        results=data["results"],
        conclusion=data["conclusion"],
        full_paper_url=data.get("full_paper_url") or "",
    )
    CoAuthor.objects.bulk_create(
        [CoAuthor(abstract=abstract, position=index, **entry) for index, entry in enumerate(data.get("co_authors") or [])]
    )
    logger.info("Abstract %s submitted by user %s (%d words)", abstract.tracking_id, principal.user_id, words)

    transaction.on_commit(lambda: abstract_submitted.send(sender=Abstract, abstract=abstract), robust=True)
    return abstract


def list_user_abstracts(principal: "Principal") -> list[dict[str, Any]]:
    """The caller's abstracts, newest first."""
    abstracts = Abstract.objects.filter(user_id=principal.user_id).prefetch_related("co_authors")
    return [abstract_dict(abstract) for abstract in abstracts]


@transaction.atomic
def review_abstract(principal: "Principal", abstract_id: int, status: str, comment: str = "") -> AbstractReview:
    """Record a review decision and move the abstract to that status.

    Raises:
        NotFound: Unknown abstract.
    """
    abstract = Abstract.objects.select_for_update().filter(pk=abstract_id).first()
    if abstract is None:
        raise NotFound("Abstract not found")

    previous = abstract.status
    abstract.status = status
    abstract.save(update_fields=["status", "updated_at"])
    review = AbstractReview.objects.create(
        abstract=abstract,
        reviewer_id=principal.user_id,
        decision=status,
        comment=comment,
    )
    logger.info(
        "Abstract %s reviewed by user %s: %s -> %s",
        abstract.tracking_id,
        principal.user_id,
        previous,
        status,
    )

    transaction.on_commit(
        lambda: abstract_reviewed.send(sender=Abstract, abstract=abstract, review=review),
        robust=True,
    )
    return review


def list_abstracts(
    *,
    page: int = 1,
    per_page: int = 10,
    search: str = "",
    event_id: int | None = None,
    status: str = "",
    category: str = "",
    presentation_type: str = "",
) -> dict[str, Any]:
    """Paginated back-office listing of abstracts, newest first."""
    abstracts = Abstract.objects.prefetch_related("co_authors")
    if event_id:
        abstracts = abstracts.filter(event_id=event_id)
    if status:
        abstracts = abstracts.filter(status=status)
    if category:
        abstracts = abstracts.filter(category=category)
    if presentation_type:
        abstracts = abstracts.filter(presentation_type=presentation_type)
    if search:
        abstracts = abstracts.filter(
            Q(title__icontains=search)
            | Q(first_name__icontains=search)
            | Q(last_name__icontains=search)
            | Q(email__icontains=search)
        )

    paginator = Paginator(abstracts, per_page)
    page_obj = paginator.get_page(page)
    return {
        "abstracts": [abstract_dict(abstract) for abstract in page_obj],
        "pagination": {
            "page": page_obj.number,
            "limit": per_page,
            "total": paginator.count,
            "totalPages": paginator.num_pages,
        },
    }
