"""Abstract submission and review models."""

from django.conf import settings
from django.db import models

from django_confreg.settings import get_config


class Abstract(models.Model):
    """A research abstract submitted for presentation at an event.

    The author fields are a snapshot taken at submission time and are not
    kept in sync with the submitting user's profile.
    """

    class Category(models.TextChoices):
        CLINICAL_PHARMACY = "clinical_pharmacy", "Clinical Pharmacy"
        SOCIAL_ADMINISTRATIVE = "social_administrative", "Social and Administrative Pharmacy"
        COMMUNITY_PHARMACY = "community_pharmacy", "Community Pharmacy"
        PHARMACOLOGY_TOXICOLOGY = "pharmacology_toxicology", "Pharmacology and Toxicology"
        PHARMACY_EDUCATION = "pharmacy_education", "Pharmacy Education"
        DIGITAL_PHARMACY = "digital_pharmacy", "Digital Pharmacy"

    class PresentationType(models.TextChoices):
        ORAL = "oral", "Oral"
        POSTER = "poster", "Poster"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        ACCEPTED = "accepted", "Accepted"
        REJECTED = "rejected", "Rejected"

    event = models.ForeignKey(
        "confreg_conference.Event",
        on_delete=models.CASCADE,
        related_name="abstracts",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="abstracts",
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    affiliation = models.CharField(max_length=300)
    country = models.CharField(max_length=100)
    phone = models.CharField(max_length=50, blank=True, default="")

    title = models.CharField(max_length=500)
    category = models.CharField(max_length=30, choices=Category.choices)
    presentation_type = models.CharField(max_length=10, choices=PresentationType.choices)
    keywords = models.CharField(max_length=500)
    background = models.TextField()
    methods = models.TextField()
    results = models.TextField()
    conclusion = models.TextField()
    full_paper_url = models.URLField(max_length=500, blank=True, default="")

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.tracking_id}: {self.title}"

    @property
    def tracking_id(self) -> str:
        """Public tracking code, e.g. ``ABS-42``."""
        return f"{get_config().abstracts.tracking_prefix}-{self.pk}"

    @property
    def author_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class CoAuthor(models.Model):
    """A co-author listed on an abstract, in byline order."""

    abstract = models.ForeignKey(Abstract, on_delete=models.CASCADE, related_name="co_authors")
    position = models.PositiveSmallIntegerField(default=0)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    institution = models.CharField(max_length=300)
    country = models.CharField(max_length=100)

    class Meta:
        ordering = ["position", "id"]
        constraints = [
            models.UniqueConstraint(fields=["abstract", "position"], name="confreg_unique_coauthor_position"),
        ]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}"


class AbstractReview(models.Model):
    """One review decision recorded against an abstract."""

    abstract = models.ForeignKey(Abstract, on_delete=models.CASCADE, related_name="reviews")
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    decision = models.CharField(max_length=20, choices=Abstract.Status.choices)
    comment = models.TextField(blank=True, default="")
    reviewed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-reviewed_at", "-id"]

    def __str__(self) -> str:
        return f"{self.abstract_id}: {self.decision}"
