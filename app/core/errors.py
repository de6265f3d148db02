"""Application errors. Each maps to one HTTP status and a machine readable code."""


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(AppError):
    """Business rule violation: duplicate code, already paid, not paid..."""
    status_code = 409
    code = "CONFLICT"


class VerificationFailedError(AppError):
    status_code = 400
    code = "VERIFICATION_FAILED"


class GatewayError(AppError):
    """Infrastructure fault while talking to the payment provider."""
    status_code = 500
    code = "GATEWAY_ERROR"
