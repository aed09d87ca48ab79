"""Django admin configuration for the abstracts app."""

from django.contrib import admin

from django_confreg.abstracts.models import Abstract, AbstractReview, CoAuthor


class CoAuthorInline(admin.TabularInline):
    model = CoAuthor
    extra = 0


class AbstractReviewInline(admin.TabularInline):
    """Review history, newest first. Reviews are append-only."""

    model = AbstractReview
    extra = 0
    readonly_fields = ("reviewer", "decision", "comment", "reviewed_at")
    can_delete = False


@admin.register(Abstract)
class AbstractAdmin(admin.ModelAdmin):
    """Admin interface for abstracts.

    Status changes should go through the review endpoint so authors are
    notified; the field is editable here for corrections.
    """

    list_display = ("title", "first_name", "last_name", "event", "category", "presentation_type", "status", "created_at")
    list_filter = ("event", "status", "category", "presentation_type")
    search_fields = ("title", "first_name", "last_name", "email")
    readonly_fields = ("user", "created_at", "updated_at")
    inlines = (CoAuthorInline, AbstractReviewInline)
