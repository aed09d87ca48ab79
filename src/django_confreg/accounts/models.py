"""Attendee profiles and the student verification lifecycle."""

from django.conf import settings
from django.db import models


class Member(models.Model):
    """Registration profile attached one-to-one to a Django user.

    The role decides which tickets a member may buy. Professionals are active
    from sign-up; students start in ``pending_approval`` until staff check
    the uploaded student document.
    """

    class Role(models.TextChoices):
        THAI_STUDENT = "thstd", "Thai Student"
        INTERNATIONAL_STUDENT = "interstd", "International Student"
        THAI_PROFESSIONAL = "thpro", "Thai Professional"
        INTERNATIONAL_PROFESSIONAL = "interpro", "International Professional"

    class Status(models.TextChoices):
        PENDING_APPROVAL = "pending_approval", "Pending Approval"
        ACTIVE = "active", "Active"
        REJECTED = "rejected", "Rejected"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="member",
    )
    role = models.CharField(max_length=10, choices=Role.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING_APPROVAL)
    country = models.CharField(max_length=100, blank=True, default="")
    institution = models.CharField(max_length=300, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    thai_id_card = models.CharField(max_length=13, unique=True, null=True, blank=True)
    passport_id = models.CharField(max_length=50, unique=True, null=True, blank=True)
    pharmacy_license_id = models.CharField(max_length=50, unique=True, null=True, blank=True)
    verification_doc_url = models.URLField(max_length=500, blank=True, default="")
    rejection_reason = models.TextField(blank=True, default="")
    resubmission_count = models.PositiveIntegerField(default=0)

    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.user} ({self.role})"

    @property
    def is_student(self) -> bool:
        return self.role in (self.Role.THAI_STUDENT, self.Role.INTERNATIONAL_STUDENT)

    @property
    def is_thai(self) -> bool:
        return self.role in (self.Role.THAI_STUDENT, self.Role.THAI_PROFESSIONAL)

    @property
    def full_name(self) -> str:
        return f"{self.user.first_name} {self.user.last_name}".strip()
