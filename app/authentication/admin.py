"""
Django admin configuration for marketplace users.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Email-based user admin exposing role, ban and tier controls."""

    list_display = (
        "email",
        "name",
        "role",
        "subscription_tier",
        "is_banned",
        "is_active",
        "date_joined",
    )
    list_filter = ("role", "subscription_tier", "is_banned", "is_active", "is_staff")
    search_fields = ("email", "name")
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("email", "password", "name")}),
        ("Marketplace", {"fields": ("role", "subscription_tier", "is_banned")}),
        (
            "Permissions",
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )
    readonly_fields = ("date_joined", "last_login")
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2", "role", "subscription_tier"),
            },
        ),
    )
