"""URL configuration for attendee-facing abstract endpoints.

Mount under ``abstracts/``; the back-office routes live in
:mod:`django_confreg.urls`.
"""

from django.urls import path

from django_confreg.abstracts import views

app_name = "confreg_abstracts"

urlpatterns = [
    path("submit", views.submit, name="submit"),
    path("mine", views.mine, name="mine"),
]
