"""Infrastructure layer for Verbio."""
