"""Application layer for Verbio."""
