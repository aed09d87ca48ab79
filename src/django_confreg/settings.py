"""Typed configuration for django-confreg.

Reads a single ``DJANGO_CONFREG`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from django_confreg.settings import get_config

    config = get_config()
    config.stripe.api_version
    config.fees.thai_card.rate
    config.email.base_url
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class StripeConfig:
    """Stripe payment gateway configuration."""

    api_version: str = "2024-12-18"
    webhook_tolerance: int = 300


@dataclass(frozen=True, slots=True)
class FeeRate:
    """Gateway fee schedule for one payment channel.

    ``rate`` is the percentage fee as a fraction, ``fixed_fee`` a per-charge
    amount in the charge currency, and ``tax`` the tax levied on the fee.
    """

    rate: Decimal
    fixed_fee: Decimal
    tax: Decimal


@dataclass(frozen=True, slots=True)
class FeesConfig:
    """Fee schedules per gateway channel."""

    promptpay: FeeRate = field(default_factory=lambda: FeeRate(Decimal("0.0165"), Decimal("0"), Decimal("0.07")))
    thai_card: FeeRate = field(default_factory=lambda: FeeRate(Decimal("0.0365"), Decimal("10"), Decimal("0.07")))
    international_card: FeeRate = field(
        default_factory=lambda: FeeRate(Decimal("0.0675"), Decimal("0.30"), Decimal("0.07"))
    )


@dataclass(frozen=True, slots=True)
class EmailConfig:
    """Transactional email provider configuration.

    The provider accepts a template id plus variables and authenticates with a
    short-lived bearer token obtained via the OAuth client-credentials grant.
    """

    base_url: str = "https://api.email.example.com/v1"
    token_url: str = "https://api.email.example.com/oauth/token"
    client_id: str | None = None
    client_secret: str | None = None
    from_address: str = "noreply@example.com"
    from_name: str = "Conference Registration"
    timeout: float = 10.0
    max_attempts: int = 5
    templates: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ReceiptConfig:
    """Receipt signing and rendering configuration."""

    secret: str | None = None
    issuer_name: str = "Conference Secretariat"
    issuer_address: str = ""
    filename_prefix: str = "receipt"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Bearer token configuration."""

    token_salt: str = "django_confreg.auth"
    token_max_age: int = 60 * 60 * 24


@dataclass(frozen=True, slots=True)
class AbstractsConfig:
    """Abstract submission rules."""

    min_words: int = 250
    max_words: int = 300
    tracking_prefix: str = "ABS"


@dataclass(frozen=True, slots=True)
class ConfregConfig:
    """Top-level django-confreg configuration."""

    stripe: StripeConfig = field(default_factory=StripeConfig)
    fees: FeesConfig = field(default_factory=FeesConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    receipts: ReceiptConfig = field(default_factory=ReceiptConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    abstracts: AbstractsConfig = field(default_factory=AbstractsConfig)
    api_base_url: str = "http://localhost:8000"
    order_number_prefix: str = "ORD"
    registration_code_prefix: str = "REG"
    domestic_currency: str = "THB"
    supported_currencies: tuple[str, ...] = ("THB", "USD")
    package_roles: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            "student": ("thstd", "interstd"),
            "professional": ("thpro", "interpro"),
        }
    )


_SECTIONS = ("stripe", "fees", "email", "receipts", "auth", "abstracts")


def _section(raw_data: dict[str, object], key: str) -> dict[str, object]:
    value = raw_data.pop(key, {})
    if not isinstance(value, Mapping):
        msg = f"DJANGO_CONFREG['{key}'] must be a mapping (dict-like object)"
        raise TypeError(msg)
    return dict(value)


def _fee_rate(name: str, data: object, default: FeeRate) -> FeeRate:
    if not isinstance(data, Mapping):
        msg = f"DJANGO_CONFREG['fees']['{name}'] must be a mapping (dict-like object)"
        raise TypeError(msg)
    try:
        return FeeRate(
            rate=Decimal(str(data.get("rate", default.rate))),
            fixed_fee=Decimal(str(data.get("fixed_fee", default.fixed_fee))),
            tax=Decimal(str(data.get("tax", default.tax))),
        )
    except ArithmeticError as exc:
        msg = f"DJANGO_CONFREG['fees']['{name}'] values must be numeric"
        raise ValueError(msg) from exc


def _build_fees(data: dict[str, object]) -> FeesConfig:
    defaults = FeesConfig()
    unknown = set(data) - {"promptpay", "thai_card", "international_card"}
    if unknown:
        msg = f"DJANGO_CONFREG['fees'] has unknown channels: {', '.join(sorted(unknown))}"
        raise ValueError(msg)
    return FeesConfig(
        promptpay=_fee_rate("promptpay", data.get("promptpay", {}), defaults.promptpay),
        thai_card=_fee_rate("thai_card", data.get("thai_card", {}), defaults.thai_card),
        international_card=_fee_rate(
            "international_card", data.get("international_card", {}), defaults.international_card
        ),
    )


@functools.lru_cache(maxsize=1)
def get_config() -> ConfregConfig:
    """Build and return the registration configuration.

    Reads ``settings.DJANGO_CONFREG`` (a plain dict) and returns a frozen
    :class:`ConfregConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_CONFREG", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_CONFREG must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    sections = {key: _section(raw_data, key) for key in _SECTIONS}

    if "supported_currencies" in raw_data:
        raw_data["supported_currencies"] = tuple(str(c).upper() for c in raw_data["supported_currencies"])
    if "package_roles" in raw_data:
        roles = raw_data["package_roles"]
        if not isinstance(roles, Mapping):
            msg = "DJANGO_CONFREG['package_roles'] must be a mapping (dict-like object)"
            raise TypeError(msg)
        raw_data["package_roles"] = {str(k): tuple(v) for k, v in roles.items()}

    config = ConfregConfig(
        stripe=StripeConfig(**sections["stripe"]),
        fees=_build_fees(sections["fees"]),
        email=EmailConfig(**sections["email"]),
        receipts=ReceiptConfig(**sections["receipts"]),
        auth=AuthConfig(**sections["auth"]),
        abstracts=AbstractsConfig(**sections["abstracts"]),
        **raw_data,
    )
    _validate_confreg_config(config)
    return config


def get_receipt_secret() -> str:
    """Return the receipt signing secret, falling back to ``SECRET_KEY``."""
    return get_config().receipts.secret or settings.SECRET_KEY


def _validate_confreg_config(config: ConfregConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not isinstance(config.domestic_currency, str) or len(config.domestic_currency) != 3:  # noqa: PLR2004
        msg = "DJANGO_CONFREG['domestic_currency'] must be a three-letter currency code"
        raise ValueError(msg)
    if config.domestic_currency.upper() not in config.supported_currencies:
        msg = "DJANGO_CONFREG['domestic_currency'] must be one of the supported currencies"
        raise ValueError(msg)
    if not isinstance(config.order_number_prefix, str) or not config.order_number_prefix.strip():
        msg = "DJANGO_CONFREG['order_number_prefix'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.registration_code_prefix, str) or not config.registration_code_prefix.strip():
        msg = "DJANGO_CONFREG['registration_code_prefix'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.stripe.webhook_tolerance, int) or config.stripe.webhook_tolerance <= 0:
        msg = "DJANGO_CONFREG['stripe']['webhook_tolerance'] must be a positive integer"
        raise ValueError(msg)
    for name in ("promptpay", "thai_card", "international_card"):
        fee_rate: FeeRate = getattr(config.fees, name)
        if not Decimal(0) <= fee_rate.rate < Decimal(1) or fee_rate.fixed_fee < 0 or fee_rate.tax < 0:
            msg = f"DJANGO_CONFREG['fees']['{name}'] must have 0 <= rate < 1 and non-negative fixed_fee and tax"
            raise ValueError(msg)
        if fee_rate.rate * (1 + fee_rate.tax) >= 1:
            msg = f"DJANGO_CONFREG['fees']['{name}'] rate including tax must be below 1"
            raise ValueError(msg)
    if not isinstance(config.email.max_attempts, int) or config.email.max_attempts <= 0:
        msg = "DJANGO_CONFREG['email']['max_attempts'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.auth.token_max_age, int) or config.auth.token_max_age <= 0:
        msg = "DJANGO_CONFREG['auth']['token_max_age'] must be a positive integer"
        raise ValueError(msg)
    words = config.abstracts
    if not isinstance(words.min_words, int) or not isinstance(words.max_words, int):
        msg = "DJANGO_CONFREG['abstracts'] word limits must be integers"
        raise TypeError(msg)
    if words.min_words < 0 or words.max_words < words.min_words:
        msg = "DJANGO_CONFREG['abstracts'] requires 0 <= min_words <= max_words"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_CONFREG":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_confreg.settings.clear_config_cache")
