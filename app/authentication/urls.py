"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/token/            - Email/password login, returns access + refresh JWT
    /api/v1/auth/token/refresh/    - Exchange a refresh token for a new access token
    /api/v1/auth/me/               - Current user
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.views import CurrentUserView

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("me/", CurrentUserView.as_view(), name="me"),
]
