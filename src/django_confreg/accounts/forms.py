"""Forms for sign-up and student document verification."""

from django import forms

from django_confreg.accounts.models import Member


class RegisterForm(forms.Form):
    """Body of ``POST /auth/register``.

    ``account_type`` uses the sign-up wording (``thaiStudent`` and so on);
    :data:`ACCOUNT_TYPE_ROLES` maps it onto :class:`Member.Role`. The student
    document is uploaded elsewhere and only its URL is stored here.
    """

    ACCOUNT_TYPE_ROLES = {
        "thaiStudent": Member.Role.THAI_STUDENT,
        "internationalStudent": Member.Role.INTERNATIONAL_STUDENT,
        "thaiProfessional": Member.Role.THAI_PROFESSIONAL,
        "internationalProfessional": Member.Role.INTERNATIONAL_PROFESSIONAL,
    }

    first_name = forms.CharField(max_length=150)
    last_name = forms.CharField(max_length=150)
    email = forms.EmailField()
    password = forms.CharField(min_length=6, strip=False)
    account_type = forms.ChoiceField(choices=[(key, key) for key in ACCOUNT_TYPE_ROLES])
    organization = forms.CharField(max_length=300, required=False)
    id_card = forms.RegexField(regex=r"^\d{13}$", required=False)
    passport_id = forms.CharField(max_length=50, required=False)
    pharmacy_license_id = forms.CharField(max_length=50, required=False)
    country = forms.CharField(max_length=100, required=False)
    phone = forms.CharField(max_length=50, required=False)
    verification_doc_url = forms.URLField(max_length=500, required=False)

    def clean_email(self) -> str:
        return self.cleaned_data["email"].lower()

    def clean(self) -> dict:
        cleaned = super().clean()
        role = self.ACCOUNT_TYPE_ROLES.get(cleaned.get("account_type", ""))
        if role is None:
            return cleaned
        cleaned["role"] = role
        if role in (Member.Role.THAI_STUDENT, Member.Role.INTERNATIONAL_STUDENT) and not cleaned.get(
            "verification_doc_url"
        ):
            self.add_error("verification_doc_url", "Students must provide a verification document.")
        return cleaned


class ResubmitDocumentForm(forms.Form):
    """Body of ``POST /auth/resubmit-document``."""

    email = forms.EmailField()
    password = forms.CharField(strip=False)
    verification_doc_url = forms.URLField(max_length=500)


class RejectForm(forms.Form):
    """Body of ``POST /backoffice/verifications/<id>/reject``."""

    reason = forms.CharField(max_length=1000)


class VerificationListForm(forms.Form):
    """Query string of ``GET /backoffice/verifications/``."""

    page = forms.IntegerField(min_value=1, required=False)
    limit = forms.IntegerField(min_value=1, max_value=1000, required=False)
    search = forms.CharField(max_length=100, required=False)
    status = forms.ChoiceField(choices=Member.Status.choices, required=False)
