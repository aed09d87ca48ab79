"""HTTP client for the transactional email provider.

The provider renders stored templates: a send request names a template id and
supplies the variables to fill in. Requests are authorised with a short-lived
bearer token from the OAuth client-credentials grant. The token lives in an
:class:`AccessTokenCache` owned by the caller, so no token state is global.
"""

import http
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from django_confreg.settings import EmailConfig

logger = logging.getLogger(__name__)

# Refresh slightly before the provider's stated expiry.
_EXPIRY_MARGIN = 60.0


class EmailDeliveryError(Exception):
    """The provider rejected a request or could not be reached."""


@dataclass
class AccessTokenCache:
    """A bearer token and the monotonic time at which it expires."""

    token: str = ""
    expires_at: float = 0.0

    def get(self, now: float | None = None) -> str | None:
        """Return the cached token, or ``None`` when missing or expired."""
        now = time.monotonic() if now is None else now
        if not self.token or now >= self.expires_at - _EXPIRY_MARGIN:
            return None
        return self.token

    def store(self, token: str, expires_in: float, now: float | None = None) -> None:
        now = time.monotonic() if now is None else now
        self.token = token
        self.expires_at = now + expires_in

    def clear(self) -> None:
        self.token = ""
        self.expires_at = 0.0


class EmailClient:
    """Send template emails through the provider's REST API.

    Args:
        config: Provider endpoints, credentials, and sender identity.
        token_cache: Where the bearer token is kept between calls. A fresh
            cache is created when omitted.
        transport: Optional httpx transport, used by tests to stub the
            provider.

    Example::

        client = EmailClient(get_config().email)
        message_id = client.send_template(
            "tpl-receipt", "ada@example.com", "Ada Lovelace", {"orderNumber": "ORD-1"}
        )
    """

    def __init__(
        self,
        config: EmailConfig,
        *,
        token_cache: AccessTokenCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self.token_cache = token_cache if token_cache is not None else AccessTokenCache()
        self._transport = transport

    def _http(self) -> httpx.Client:
        return httpx.Client(timeout=self.config.timeout, transport=self._transport)

    def _fetch_token(self, client: httpx.Client) -> str:
        """Obtain a new bearer token via the client-credentials grant.

        Raises:
            EmailDeliveryError: If credentials are missing or the token
                endpoint fails.
        """
        if not self.config.client_id or not self.config.client_secret:
            msg = "Email provider credentials are not configured"
            raise EmailDeliveryError(msg)
        try:
            response = client.post(
                self.config.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = f"Email token request failed: {exc.response.status_code}"
            raise EmailDeliveryError(msg) from exc
        except httpx.RequestError as exc:
            msg = f"Email token request error: {exc}"
            raise EmailDeliveryError(msg) from exc

        try:
            data = response.json()
        except ValueError as exc:
            msg = "Email token response is not valid JSON"
            raise EmailDeliveryError(msg) from exc
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            msg = "Email token response has no access_token"
            raise EmailDeliveryError(msg)
        try:
            expires_in = float(data.get("expires_in", 3600))
        except (TypeError, ValueError) as exc:
            msg = f"Email token response has an invalid expires_in: {data.get('expires_in')!r}"
            raise EmailDeliveryError(msg) from exc
        self.token_cache.store(token, expires_in)
        logger.debug("Obtained email provider access token")
        return token

    def _access_token(self, client: httpx.Client) -> str:
        return self.token_cache.get() or self._fetch_token(client)

    def send_template(
        self,
        template_id: str,
        to_email: str,
        to_name: str = "",
        variables: Mapping[str, Any] | None = None,
    ) -> str:
        """Send one templated email.

        A 401 response clears the cached token and the request is retried
        once with a fresh one.

        Returns:
            The provider's message id, or an empty string if none is given.

        Raises:
            EmailDeliveryError: If the provider rejects the message or cannot
                be reached.
        """
        payload = {
            "template_id": template_id,
            "from": {"email": self.config.from_address, "name": self.config.from_name},
            "to": [{"email": to_email, "name": to_name}],
            "variables": dict(variables or {}),
        }
        url = f"{self.config.base_url.rstrip('/')}/email/send"

        with self._http() as client:
            try:
                response = client.post(url, json=payload, headers=self._auth_headers(client))
                if response.status_code == http.HTTPStatus.UNAUTHORIZED:
                    logger.info("Email provider rejected cached token, refreshing")
                    self.token_cache.clear()
                    response = client.post(url, json=payload, headers=self._auth_headers(client))
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                msg = f"Email send failed: {exc.response.status_code} {exc.response.text[:200]}"
                raise EmailDeliveryError(msg) from exc
            except httpx.RequestError as exc:
                msg = f"Email send error: {exc}"
                raise EmailDeliveryError(msg) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        message_id = data.get("message_id", "") if isinstance(data, dict) else ""
        logger.info("Sent template %s to %s", template_id, to_email)
        return str(message_id or "")

    def _auth_headers(self, client: httpx.Client) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token(client)}", "Accept": "application/json"}
