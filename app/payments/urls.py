"""
URL configuration for the payments app.

Routes (under /api/v1/payments/):
    - POST holds/ - Create a hold
    - POST settle/ - Settle a cleanup request
    - GET history/ - Hold history
    - POST webhooks/ - Stripe webhook endpoint

Routes (under /api/v1/payouts/, from payout_urlpatterns):
    - GET history/ - Payout history
    - POST accounts/ - Start payout account onboarding
    - GET accounts/status/ - Payout account status
    - PUT accounts/schedule/ - Update payout schedule
    - GET accounts/methods/ - Payout methods
    - GET accounts/balance/ - Connected account balance
    - POST instant/ - Create an instant payout
    - GET instant/history/ - Instant payout history

Usage:
    # In config/urls.py
    from payments.urls import payout_urlpatterns

    api_v1_patterns = [
        path("payments/", include("payments.urls")),
        path("payouts/", include((payout_urlpatterns, "payouts"))),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path("holds/", views.CreateHoldView.as_view(), name="create-hold"),
    path("settle/", views.SettleRequestView.as_view(), name="settle-request"),
    path("history/", views.HoldHistoryView.as_view(), name="hold-history"),
    # Webhook endpoints
    path("webhooks/", stripe_webhook, name="stripe-webhook"),
]

payout_urlpatterns = [
    path("history/", views.PayoutHistoryView.as_view(), name="payout-history"),
    path("accounts/", views.PayoutAccountView.as_view(), name="payout-account"),
    path(
        "accounts/status/",
        views.PayoutAccountStatusView.as_view(),
        name="payout-account-status",
    ),
    path(
        "accounts/schedule/",
        views.PayoutScheduleView.as_view(),
        name="payout-schedule",
    ),
    path(
        "accounts/methods/",
        views.PayoutMethodsView.as_view(),
        name="payout-methods",
    ),
    path(
        "accounts/balance/",
        views.PayoutBalanceView.as_view(),
        name="payout-balance",
    ),
    path("instant/", views.InstantPayoutView.as_view(), name="instant-payout"),
    path(
        "instant/history/",
        views.InstantPayoutHistoryView.as_view(),
        name="instant-payout-history",
    ),
]
