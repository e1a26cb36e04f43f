"""
Authentication modules for Cargo Tracker.

This package contains:
- identity.py: per-request identity (authenticated / registered)
- google.py: Google ID token verification against the published JWKS
- oauth.py: OAuth2 authorization-code exchange and profile lookup
"""
from cargo_tracker.auth.identity import Identity

__all__ = ["Identity"]
