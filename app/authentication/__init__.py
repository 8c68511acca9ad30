"""
Authentication application.

This app provides the email-keyed user model and the per-user Profile that
finalized uploads are charged against.

Key components:
    - User model: Custom email-based user authentication
    - Profile model: Display name and storage usage counter

Usage:
    from authentication.models import User, Profile
"""
