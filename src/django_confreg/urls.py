"""Root URL configuration for the django-confreg API.

Include it from the host project::

    urlpatterns = [
        path("api/", include("django_confreg.urls")),
    ]
"""

from django.urls import include, path

from django_confreg.abstracts import views as abstract_views
from django_confreg.accounts import views as account_views
from django_confreg.registration import views as registration_views

urlpatterns = [
    path("auth/login", registration_views.login, name="confreg-login"),
    path("auth/register", account_views.register, name="confreg-register"),
    path("auth/resubmit-document", account_views.resubmit, name="confreg-resubmit-document"),
    path("tickets/", registration_views.tickets, name="confreg-tickets"),
    path("workshops/", registration_views.workshops, name="confreg-workshops"),
    path("payments/", include("django_confreg.registration.urls")),
    path("abstracts/", include("django_confreg.abstracts.urls")),
    path("backoffice/checkins/", registration_views.checkins, name="confreg-backoffice-checkins"),
    path("backoffice/verifications/", account_views.backoffice_list, name="confreg-backoffice-verifications"),
    path(
        "backoffice/verifications/<int:member_id>/approve",
        account_views.approve,
        name="confreg-backoffice-verification-approve",
    ),
    path(
        "backoffice/verifications/<int:member_id>/reject",
        account_views.reject,
        name="confreg-backoffice-verification-reject",
    ),
    path("backoffice/abstracts/", abstract_views.backoffice_list, name="confreg-backoffice-abstracts"),
    path(
        "backoffice/abstracts/<int:abstract_id>/review",
        abstract_views.review,
        name="confreg-backoffice-abstract-review",
    ),
]
