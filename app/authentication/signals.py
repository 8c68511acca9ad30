"""
Django signals for authentication.

Signals are connected in AuthenticationConfig.ready().
"""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created, **kwargs):
    """
    Create a Profile for newly created users.

    Every upload owner needs a Profile: finalization charges the stored
    bytes to it.
    """
    if created:
        from authentication.models import Profile

        Profile.objects.get_or_create(user=instance)
        logger.debug(f"Profile created for user: {instance.email}")
