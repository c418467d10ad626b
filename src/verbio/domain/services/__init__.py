"""Domain services for Verbio."""

from verbio.domain.services.rotation import as_utc, classify_refresh_token

__all__ = ["as_utc", "classify_refresh_token"]
