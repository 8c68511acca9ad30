"""
Tests for authentication app.

This package contains test modules for:
- test_quota.py: Profile creation and the storage usage counter

Usage:
    pytest authentication/tests/
"""
