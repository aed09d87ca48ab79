"""URL configuration for the payment endpoints.

Mount under ``payments/`` in the host project::

    urlpatterns = [
        path("payments/", include("django_confreg.registration.urls")),
    ]

Receipt links are built with ``reverse("confreg_payments:receipt", ...)``,
so the namespace must be kept.
"""

from django.urls import path

from django_confreg.registration import views
from django_confreg.registration.webhooks import stripe_webhook

app_name = "confreg_payments"

urlpatterns = [
    path("my-purchases", views.my_purchases, name="my-purchases"),
    path("my-tickets", views.my_tickets, name="my-tickets"),
    path("create-intent", views.create_intent, name="create-intent"),
    path("cancel-intent", views.cancel_intent, name="cancel-intent"),
    path("webhook/<slug:event_slug>/", stripe_webhook, name="stripe-webhook"),
    path("verify", views.verify_payment, name="verify"),
    path("<int:order_id>/status", views.order_status, name="order-status"),
    path("receipt/<str:token>", views.receipt, name="receipt"),
]
