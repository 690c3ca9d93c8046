"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface (payouts, ledger, perks)
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/health/                - Health check (API prefix)
    /api/v1/auth/token/            - JWT access/refresh pair for dashboards and the console
    /api/v1/banking/               - Banking endpoints
        balances/{identifier}/     - Unified balance for a collector
        vendors/balances/          - All vendor balances (admin)
        payouts/process/           - Admin payout console batch (POST)
        payouts/validate/          - Payout pre-flight validation (POST)
        integrity/                 - Platform integrity report (admin)
        adjustments/               - Manual ledger adjustment (POST, admin)
        fulfillment/               - Fulfillment event intake (POST)
        perks/{identifier}/        - Perk unlock status
        perks/redeem/              - Redeem a perk (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("health/", health_check, name="api_health_check"),
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("banking/", include("banking.urls")),
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
admin.site.site_header = "Marketplace Banking Admin"
admin.site.site_title = "Banking Admin"
admin.site.index_title = "Ledger, payouts and perks"
