"""
Serializers for authentication models.

Related files:
    - models.py: User model
    - views.py: Views that use these serializers
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model (read operations).

    Exposes the marketplace attributes a client needs to render its own
    account: role, seller tier and ban state.
    """

    display_name = serializers.CharField(read_only=True)
    is_platform_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "display_name",
            "role",
            "subscription_tier",
            "is_banned",
            "is_platform_admin",
            "date_joined",
        ]
        read_only_fields = fields
