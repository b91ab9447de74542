"""
Service-level errors.

Each error carries the HTTP status the API layer maps it to.
"""


class GameKeeperError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(GameKeeperError):
    status_code = 400


class UnauthorizedError(GameKeeperError):
    status_code = 401


class ForbiddenError(GameKeeperError):
    status_code = 403


class NotFoundError(GameKeeperError):
    status_code = 404


class ConflictError(GameKeeperError):
    # Reported as 400 by the API, like the other client-side request errors
    status_code = 400


class CodeGenerationError(GameKeeperError):
    """No unused session code found within the retry limit."""

    status_code = 500
