"""Forms validating the JSON bodies of the registration endpoints.

Views convert camelCase request keys to field names with
:func:`~django_confreg.api.form_data` before binding.
"""

from django import forms

from django_confreg.registration.services.pricing import PaymentMethod
from django_confreg.settings import get_config


class StringListField(forms.Field):
    """A JSON array of non-empty strings, cleaned to a tuple."""

    default_error_messages = {
        "invalid": "Enter a list of strings.",
    }

    def to_python(self, value: object) -> tuple[str, ...]:
        if value in self.empty_values:
            return ()
        if not isinstance(value, list | tuple) or not all(isinstance(v, str) for v in value):
            raise forms.ValidationError(self.error_messages["invalid"], code="invalid")
        return tuple(v.strip() for v in value if v.strip())


class LoginForm(forms.Form):
    """Email and password for ``POST /auth/login``."""

    email = forms.EmailField()
    password = forms.CharField(strip=False)


class CreatePaymentIntentForm(forms.Form):
    """Purchase request for ``POST /payments/create-intent``.

    ``package_id`` may be blank for an add-on-only purchase.
    """

    package_id = forms.CharField(max_length=50, required=False)
    addon_ids = StringListField(required=False)
    currency = forms.ChoiceField(choices=())
    payment_method = forms.ChoiceField(choices=[(m.value, m.value) for m in PaymentMethod], required=False)
    workshop_session_id = forms.IntegerField(min_value=1, required=False)

    def __init__(self, *args: object, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)
        self.fields["currency"].choices = [(c, c) for c in get_config().supported_currencies]

    def clean_payment_method(self) -> str:
        return self.cleaned_data.get("payment_method") or PaymentMethod.CARD.value

    def clean_package_id(self) -> str:
        return (self.cleaned_data.get("package_id") or "").strip().lower()


class CancelIntentForm(forms.Form):
    """Body of ``POST /payments/cancel-intent``."""

    order_id = forms.IntegerField(min_value=1)


class CheckInForm(forms.Form):
    """Scan payload of ``POST /backoffice/checkins/``."""

    reg_code = forms.CharField(max_length=50)
    session_id = forms.IntegerField(min_value=1, required=False)
    check_in_all = forms.BooleanField(required=False)


class CheckInListForm(forms.Form):
    """Query string of ``GET /backoffice/checkins/``."""

    page = forms.IntegerField(min_value=1, required=False)
    limit = forms.IntegerField(min_value=1, max_value=100, required=False)
    event_id = forms.IntegerField(min_value=1, required=False)
    search = forms.CharField(max_length=100, required=False)
