"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class InvalidOperationError(AppError):
    """Raised when a well-formed request is not allowed in the current state."""

    def __init__(self, message="Operation not allowed."):
        """Initialize the error."""
        super().__init__(message, 400)


class ForbiddenError(AppError):
    """Raised when the caller lacks the role an operation requires."""

    def __init__(self, message="Forbidden."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class UploadError(AppError):
    """Raised when the blob store rejects or fails an upload."""

    def __init__(self, message="Image upload failed."):
        """Initialize the error."""
        super().__init__(message, 500)
