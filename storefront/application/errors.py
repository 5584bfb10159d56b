from typing import Optional, Sequence


class AppError(Exception):
    """Base class for errors that map onto an HTTP response.

    Args:
        message: Short, caller-safe summary rendered as ``error``.
        details: Individual problems rendered as ``details``.
    """

    status_code = 500
    code = "InternalError"

    def __init__(self, message: str, details: Optional[Sequence[str]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])
        if status_code is not None:
            self.status_code = status_code
        self.status = "fail" if str(self.status_code).startswith("4") else "error"

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(AppError):
    status_code = 400
    code = "ValidationError"


class MissingParameters(ValidationError):
    code = "MissingParameters"


class AuthenticationError(AppError):
    status_code = 401
    code = "AuthenticationError"


class AuthorizationError(AppError):
    status_code = 403
    code = "AuthorizationError"


class SignatureInvalid(AuthorizationError):
    code = "SignatureInvalid"


class NotFoundError(AppError):
    status_code = 404
    code = "NotFoundError"


class OrderNotFound(NotFoundError):
    code = "OrderNotFound"


class ConflictError(AppError):
    status_code = 409
    code = "ConflictError"


class UpstreamError(AppError):
    status_code = 502
    code = "UpstreamError"


class UpstreamConfigurationError(AppError):
    status_code = 500
    code = "UpstreamConfigurationError"


class InternalError(AppError):
    status_code = 500
    code = "InternalError"


def describe_validation_errors(errors) -> list[str]:
    """Flatten pydantic error dicts into ``"field.path: message"`` lines."""
    described = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc)
        described.append(f"{field}: {err['msg']}" if field else err["msg"])
    return described
