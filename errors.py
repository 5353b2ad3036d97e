"""
Error kinds raised by the Survey API.

Each carries the HTTP status it is rendered with; main.py turns them into
the `{success: false, message}` envelope.
"""


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ApiError):
    """Missing or empty required fields."""
    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class StorageError(ApiError):
    """Any failure coming out of the persistence layer, message kept verbatim."""
    status_code = 500
