"""Verbio - authentication service for the Verbio translation app.

Verifies Sign in with Apple identity tokens, issues ES256 access tokens,
and rotates single-use refresh tokens with reuse detection.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
