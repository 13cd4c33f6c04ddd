"""
Tests for notifications app.

Usage:
    pytest notifications/tests/
"""
