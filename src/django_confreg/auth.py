"""Bearer-token authentication producing an explicit :class:`Principal`.

Tokens are signed with :mod:`django.core.signing` and carry only the user id.
Views never read ``request.user``; the ``require_principal`` decorator
resolves the caller once and hands the principal to the handler, which in
turn passes it to service calls.
"""

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.contrib.auth import get_user_model
from django.core import signing

from django_confreg.errors import Forbidden, Unauthorized
from django_confreg.settings import get_config

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.http import HttpRequest

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller of a request."""

    user_id: int
    email: str
    is_staff: bool = False

    @classmethod
    def from_user(cls, user: "AbstractBaseUser") -> "Principal":
        """Build a principal from a Django user instance."""
        return cls(
            user_id=user.pk,
            email=getattr(user, "email", "") or "",
            is_staff=bool(getattr(user, "is_staff", False)),
        )


def issue_access_token(user: "AbstractBaseUser") -> str:
    """Return a signed bearer token for *user*."""
    config = get_config()
    return signing.dumps({"uid": user.pk}, salt=config.auth.token_salt, compress=True)


def principal_from_token(token: str) -> Principal:
    """Verify a bearer token and resolve it to an active user.

    Raises:
        Unauthorized: If the token is malformed, expired, or names an
            inactive or unknown user.
    """
    config = get_config()
    try:
        payload = signing.loads(token, salt=config.auth.token_salt, max_age=config.auth.token_max_age)
    except signing.BadSignature as exc:
        raise Unauthorized("Invalid or expired token") from exc

    user_id = payload.get("uid") if isinstance(payload, dict) else None
    if not isinstance(user_id, int):
        raise Unauthorized("Invalid or expired token")

    user = get_user_model().objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        logger.warning("Token presented for missing or inactive user %s", user_id)
        raise Unauthorized("Invalid or expired token")
    return Principal.from_user(user)


def authenticate_request(request: "HttpRequest") -> Principal:
    """Resolve the ``Authorization: Bearer`` header of *request*.

    Raises:
        Unauthorized: If the header is missing or the token is invalid.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise Unauthorized("Authentication required")
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthorized("Authentication required")
    return principal_from_token(token)


def require_principal(view: Callable[..., Any]) -> Callable[..., Any]:
    """Authenticate the request and pass ``principal=`` to *view*."""

    @functools.wraps(view)
    def wrapper(request: "HttpRequest", *args: Any, **kwargs: Any) -> Any:
        principal = authenticate_request(request)
        return view(request, *args, principal=principal, **kwargs)

    return wrapper


def require_staff(view: Callable[..., Any]) -> Callable[..., Any]:
    """Like :func:`require_principal`, but also demand a staff account."""

    @functools.wraps(view)
    def wrapper(request: "HttpRequest", *args: Any, **kwargs: Any) -> Any:
        principal = authenticate_request(request)
        if not principal.is_staff:
            raise Forbidden("Staff access required")
        return view(request, *args, principal=principal, **kwargs)

    return wrapper
