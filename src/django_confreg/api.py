"""JSON view plumbing shared by every django-confreg endpoint."""

import functools
import json
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse

from django_confreg.errors import ApiError, ValidationFailed

if TYPE_CHECKING:
    from django import forms
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


def parse_json_body(request: "HttpRequest") -> dict[str, Any]:
    """Decode a JSON object from the request body.

    An empty body decodes to an empty dict.

    Raises:
        ValidationFailed: If the body is not a JSON object.
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationFailed("Request body must be valid JSON") from exc
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    return data


def form_data(data: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    """Rename the camelCase keys of a request payload to form field names.

    Keys absent from *aliases* are passed through unchanged.

    Example::

        >>> form_data({"orderId": 7}, {"orderId": "order_id"})
        {'order_id': 7}
    """
    return {aliases.get(key, key): value for key, value in data.items()}


def validate_form(form: "forms.Form") -> dict[str, Any]:
    """Return ``form.cleaned_data`` or raise :class:`ValidationFailed`."""
    if not form.is_valid():
        details = {name: [str(e) for e in errors] for name, errors in form.errors.items()}
        raise ValidationFailed("Validation failed", details=details)
    return form.cleaned_data


def success(data: Any = None, *, status: int = 200, **extra: Any) -> JsonResponse:
    """Build the standard ``{"success": true, "data": ...}`` envelope."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return JsonResponse(body, status=status)


def error_response(error: ApiError) -> JsonResponse:
    """Render an :class:`ApiError` as JSON."""
    return JsonResponse(error.to_dict(), status=error.status)


def json_view(view: Callable[..., HttpResponse]) -> Callable[..., HttpResponse]:
    """Map exceptions raised by *view* onto JSON error responses.

    ``ApiError`` keeps its status and code, Django ``ValidationError`` becomes
    a 400, and anything else is logged and reported as a generic 500.
    """

    @functools.wraps(view)
    def wrapper(request: "HttpRequest", *args: Any, **kwargs: Any) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except ApiError as exc:
            if exc.status >= 500:  # noqa: PLR2004
                logger.error("%s %s failed: %s", request.method, request.path, exc.message)
            return error_response(exc)
        except ValidationError as exc:
            return error_response(ValidationFailed("Validation failed", details=exc.messages))
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.path)
            return JsonResponse(
                {"success": False, "code": "INTERNAL_ERROR", "error": "Internal server error"},
                status=500,
            )

    return wrapper
