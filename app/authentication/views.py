"""
Authentication views.

Login and token refresh are simplejwt's own views (wired in urls.py);
this module adds the current-user endpoint.

Related files:
    - serializers.py: Response serialization
    - urls.py: URL routing
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer


class CurrentUserView(APIView):
    """
    API view for the authenticated user's account.

    URL: /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current user",
        description="Account attributes, including role and seller tier.",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)
