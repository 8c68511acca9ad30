"""
Authentication models.

This module defines:
- User: Custom user model with email-based authentication
- Profile: Per-user data, including the storage usage counter that
  finalized uploads are charged against

Related files:
    - managers.py: Custom user manager for email-based creation
    - signals.py: Auto-create profile on user creation
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.db.models import F

from authentication.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email


class Profile(BaseModel):
    """
    Extended user data (OneToOne with User).

    Fields:
        user: OneToOne link to User (also serves as primary key)
        display_name: Optional name shown in clients
        total_storage_bytes: Bytes of finalized uploads owned by the user

    Note:
        Profile is automatically created via signals when a User is created.
        Storage counters are only ever changed with F() expressions so that
        concurrent finalizations never lose an increment.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )
    display_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Name shown in clients",
    )
    total_storage_bytes = models.BigIntegerField(
        default=0,
        help_text="Total bytes of finalized uploads owned by this user",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"

    def __str__(self):
        return self.display_name or str(self.user)

    def add_storage_usage(self, size):
        """
        Atomically increment total_storage_bytes by ``size``.

        The in-memory instance is refreshed afterwards so callers see the
        committed value.
        """
        Profile.objects.filter(pk=self.pk).update(
            total_storage_bytes=F("total_storage_bytes") + size
        )
        self.refresh_from_db(fields=["total_storage_bytes"])
