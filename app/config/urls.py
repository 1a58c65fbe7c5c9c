"""
URL configuration for the funds custody service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/payments/              - Payment endpoints
        holds/                     - Create a hold (POST)
        settle/                    - Settle a cleanup request (POST)
        history/                   - Hold history (GET, ?user_id=)
        webhooks/                  - Stripe webhook endpoint (POST)
    /api/v1/payouts/               - Payout endpoints
        history/                   - Payout history (GET, ?user_id=)
        accounts/                  - Start payout onboarding (POST)
        accounts/status/           - Payout account status (GET)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check
from payments.urls import payout_urlpatterns

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("payments/", include("payments.urls")),
    path("payouts/", include((payout_urlpatterns, "payouts"))),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Funds Custody Admin"
admin.site.site_title = "Funds Custody"
admin.site.index_title = "Holds, payouts and webhook events"
