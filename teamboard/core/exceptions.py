from fastapi import status


class AppException(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "An application error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationMissingError(AppException):
    """Raised when no authenticated user can be resolved for the request."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AuthorizationDeniedError(AppException):
    """Raised when a user lacks the permission required for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class ValidationFailedError(AppException):
    """Raised when required fields are missing or a request breaks a board rule."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message)


class NotFoundError(AppException):
    """Raised when a referenced task, column, team or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str = "Resource", identifier: object = ""):
        message = f"{resource} not found"
        if identifier != "":
            message = f"{resource} '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(message)


class InconsistentStateError(AppException):
    """Raised when stored data breaks a board invariant (e.g. no fallback column)."""

    def __init__(self, message: str = "Board data is in an inconsistent state"):
        super().__init__(message)


class TransientStoreError(AppException):
    """Raised when a persistence call fails."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message)
