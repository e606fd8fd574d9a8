"""
Authentication models.

The User row carries the account attributes the escrow engine reads:
role (admin authority for dispute resolution and payout bypass), the
banned flag (blocks checkout) and the seller subscription tier (drives
the platform fee rate). Payout account state lives on
payments.ConnectedAccount.

Related files:
    - managers.py: email-based user creation
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Marketplace account using email as the login identifier.

    Fields:
        email: Primary identifier, unique, used for login
        name: Display name shown to the other party of a sale
        role: USER, MODERATOR or ADMIN
        is_banned: Banned accounts cannot buy and lose admin authority
        subscription_tier: FREE, PLUS or PRO seller plan
        is_active / is_staff: Django auth flags
    """

    class Role(models.TextChoices):
        USER = "USER", "User"
        MODERATOR = "MODERATOR", "Moderator"
        ADMIN = "ADMIN", "Admin"

    class SubscriptionTier(models.TextChoices):
        FREE = "FREE", "Free"
        PLUS = "PLUS", "Plus"
        PRO = "PRO", "Pro"

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Display name",
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.USER,
        db_index=True,
        help_text="Marketplace role",
    )
    is_banned = models.BooleanField(
        default=False,
        help_text="Banned users cannot purchase or act as admins",
    )
    subscription_tier = models.CharField(
        max_length=10,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.FREE,
        help_text="Seller plan; determines the platform fee rate",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name or self.email.split("@")[0]

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]

    @property
    def is_platform_admin(self) -> bool:
        """ADMIN role and not banned."""
        return self.role == self.Role.ADMIN and not self.is_banned
