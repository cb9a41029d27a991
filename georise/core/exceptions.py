"""HTTP-facing application errors plus the domain errors services raise."""

from fastapi import HTTPException


class AppError(HTTPException):
    status_code = 500

    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=self.status_code, detail=detail)


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail)
        self.headers = {"WWW-Authenticate": "Bearer"}


class PlanLimitError(AppError):
    status_code = 402


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class RateLimitedError(AppError):
    status_code = 429


class UpstreamError(AppError):
    status_code = 502


# --- Domain errors (translated to HTTP at the API boundary) ---


class MissingCredentialError(RuntimeError):
    """An upstream API key is not configured."""

    def __init__(self, name: str):
        super().__init__(f"{name} not configured")
        self.name = name


class CompetitorParseError(ValueError):
    """The AI gateway answer could not be turned into competitor data."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class GatewayError(RuntimeError):
    """Non-success answer from the AI gateway; keeps the upstream status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"AI gateway error: {status_code} - {body[:300]}")
        self.status_code = status_code
        self.body = body
