"""
Authentication application.

Email-based User model with a platform-admin flag. Marketplace roles
(buyer, seller, organizer) live in the accounts app and hang off User.

Usage:
    from authentication.models import User
"""
