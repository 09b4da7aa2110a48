from __future__ import annotations

from fastapi import status


class SaludPlusError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SaludPlusError):
    status_code = status.HTTP_400_BAD_REQUEST


class ReferenceNotFoundError(SaludPlusError):
    """A foreign key on a live write does not resolve to an existing row."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reference: str) -> None:
        super().__init__(f"Invalid {reference}")
        self.reference = reference


class ConflictError(SaludPlusError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SaludPlusError):
    status_code = status.HTTP_404_NOT_FOUND


class SourceFormatError(SaludPlusError):
    pass
