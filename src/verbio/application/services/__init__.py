"""Application services coordinating domain rules and infrastructure."""

from verbio.application.services.session_service import LoginResult, SessionService

__all__ = ["LoginResult", "SessionService"]
