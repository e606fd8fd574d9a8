"""
URL configuration for the shipping API.

Usage in config/urls.py:
    path("api/v1/shipping/", include("shipping.urls")),
"""

from django.urls import path

from . import views

app_name = "shipping"

urlpatterns = [
    path(
        "tracking/<str:tracking_number>/",
        views.TrackingStatusView.as_view(),
        name="tracking-status",
    ),
    path(
        "tax/",
        views.TaxQuoteView.as_view(),
        name="tax-quote",
    ),
    path(
        "rates/",
        views.ShippingRatesView.as_view(),
        name="rates",
    ),
]
