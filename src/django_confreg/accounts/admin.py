"""Django admin configuration for the accounts app."""

from django.contrib import admin

from django_confreg.accounts.models import Member


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    """Admin interface for member profiles.

    Approvals should go through the verification endpoints so the member is
    emailed.
    """

    list_display = ("user", "role", "status", "institution", "country", "resubmission_count", "created_at")
    list_filter = ("role", "status")
    search_fields = ("user__email", "user__first_name", "user__last_name", "institution")
    readonly_fields = ("user", "reviewed_by", "reviewed_at", "created_at", "updated_at")
