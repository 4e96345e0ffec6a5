# errors.py - Domain error taxonomy
from fastapi import status


class CivicReportError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CivicReportError):
    """Malformed or missing required input"""
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(ValidationError):
    """Unique field (username, email) already taken"""


class AuthenticationError(CivicReportError):
    """No session, or the session token is invalid"""
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(CivicReportError):
    """Authenticated, but the role or ownership does not allow the operation"""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(CivicReportError):
    """Referenced id does not resolve"""
    status_code = status.HTTP_404_NOT_FOUND
