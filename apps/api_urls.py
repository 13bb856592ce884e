from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain-pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("inventory/", include("apps.inventory.urls")),
    path("", include("apps.wholesale.urls")),
    path("", include("apps.settlement.urls")),
    path("", include("apps.returns.urls")),
    path("analytics/", include("apps.analytics.urls")),
]
