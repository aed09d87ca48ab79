"""Forms for abstract submission and review."""

from django import forms

from django_confreg.abstracts.models import Abstract

_SECTION_MIN_LENGTH = 50


class CoAuthorForm(forms.Form):
    """One entry of the ``coAuthors`` array."""

    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100)
    email = forms.EmailField()
    institution = forms.CharField(max_length=300)
    country = forms.CharField(max_length=100)


_CO_AUTHOR_KEYS = {"firstName": "first_name", "lastName": "last_name"}


class AbstractSubmissionForm(forms.Form):
    """Body of ``POST /abstracts/submit``.

    Each content section needs at least 50 characters; the overall word count
    is checked by :func:`~django_confreg.abstracts.services.submit_abstract`.
    """

    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100)
    email = forms.EmailField()
    affiliation = forms.CharField(max_length=300)
    country = forms.CharField(max_length=100)
    phone = forms.CharField(max_length=50, required=False)

    title = forms.CharField(min_length=10, max_length=500)
    category = forms.ChoiceField(choices=Abstract.Category.choices)
    presentation_type = forms.ChoiceField(choices=Abstract.PresentationType.choices)
    keywords = forms.CharField(max_length=500)
    background = forms.CharField(min_length=_SECTION_MIN_LENGTH)
    methods = forms.CharField(min_length=_SECTION_MIN_LENGTH)
    results = forms.CharField(min_length=_SECTION_MIN_LENGTH)
    conclusion = forms.CharField(min_length=_SECTION_MIN_LENGTH)
    full_paper_url = forms.URLField(max_length=500, required=False)

    co_authors = forms.JSONField(required=False)
    event_id = forms.IntegerField(min_value=1, required=False)

    def clean_co_authors(self) -> list[dict[str, str]]:
        """Validate every co-author entry and return them in order."""
        value = self.cleaned_data.get("co_authors")
        if value in (None, ""):
            return []
        if not isinstance(value, list):
            raise forms.ValidationError("Co-authors must be a list.", code="invalid")

        co_authors = []
        for index, entry in enumerate(value, start=1):
            if not isinstance(entry, dict):
                raise forms.ValidationError(f"Co-author {index} is not an object.", code="invalid")
            form = CoAuthorForm({_CO_AUTHOR_KEYS.get(k, k): v for k, v in entry.items()})
            if not form.is_valid():
                fields = ", ".join(sorted(form.errors))
                raise forms.ValidationError(f"Co-author {index} is invalid: {fields}", code="invalid")
            co_authors.append(form.cleaned_data)
        return co_authors


class AbstractReviewForm(forms.Form):
    """Body of ``POST /backoffice/abstracts/<id>/review``."""

    status = forms.ChoiceField(choices=Abstract.Status.choices)
    comment = forms.CharField(required=False)


class AbstractListForm(forms.Form):
    """Query string of ``GET /backoffice/abstracts/``."""

    page = forms.IntegerField(min_value=1, required=False)
    limit = forms.IntegerField(min_value=1, max_value=1000, required=False)
    search = forms.CharField(max_length=100, required=False)
    event_id = forms.IntegerField(min_value=1, required=False)
    status = forms.ChoiceField(choices=Abstract.Status.choices, required=False)
    category = forms.ChoiceField(choices=Abstract.Category.choices, required=False)
    presentation_type = forms.ChoiceField(choices=Abstract.PresentationType.choices, required=False)
