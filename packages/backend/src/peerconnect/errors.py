"""Domain exceptions raised by the service layer.

Learn: services never import FastAPI. They raise one of these, and a single
exception handler registered in main.py turns it into an HTTP response
with {"detail": message}. The WebSocket gateway catches the same classes
and reports them as `error` frames instead.
"""


class ServiceError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ServiceError):
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class PayloadTooLargeError(ServiceError):
    status_code = 413


class UpstreamError(ServiceError):
    """A third-party provider (SMTP, Cloudinary) failed."""

    status_code = 502


class ServiceUnavailableError(ServiceError):
    status_code = 503
