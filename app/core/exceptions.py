"""
Custom application exceptions.

Controller and user-store failures are classified into this small set so the
HTTP layer can render them without knowing which upstream produced them.
Transport failures (no response at all) are not wrapped: ``httpx.TransportError``
propagates unchanged.
"""

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code: str = "InternalServerError"

    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NotFound"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    code = "UnauthorizedUserError"

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(detail=detail, status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "ForbiddenUserError"

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class BadRequestException(AppException):
    """Bad request exception."""

    code = "BadRequestError"

    def __init__(self, detail: str = "Bad request"):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


# ==================== Jobs ====================


class NoJobError(NotFoundException):
    """The framework controller has no framework for this job."""

    code = "NoJobError"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job {job_name} is not found.")


class NoJobConfigError(NotFoundException):
    """The job exists but carries no stored config annotation."""

    code = "NoJobConfigError"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Config of job {job_name} is not found.")


class NoJobSshInfoError(NotFoundException):
    """SSH info is not available from the framework controller."""

    code = "NoJobSshInfoError"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"SSH info of job {job_name} is not found.")


def error_status(upstream_status: int) -> int:
    """HTTP status to answer with; a non-error upstream status becomes 502."""
    if upstream_status >= status.HTTP_400_BAD_REQUEST:
        return upstream_status
    return status.HTTP_502_BAD_GATEWAY


class UpstreamError(AppException):
    """Unexpected status code returned by an upstream service."""

    code = "UnknownError"

    def __init__(self, upstream_status: int, message: str = ""):
        self.upstream_status = upstream_status
        self.message = message
        super().__init__(detail=message or "Unknown upstream error", status_code=error_status(upstream_status))
