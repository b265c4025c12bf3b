"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a discriminating ``kind`` (the class name) and an HTTP
status so the API can render ``{"error": {"kind": ..., "message": ...}}``
without a lookup table.
"""

from __future__ import annotations


class BoardError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(BoardError):
    status_code = 404


class ValidationError(BoardError):
    status_code = 422


class InvalidReorderError(BoardError):
    status_code = 409


class IndexOutOfRangeError(BoardError):
    status_code = 422


class NonEmptyColumnError(BoardError):
    status_code = 409


class AuthorizationError(BoardError):
    status_code = 403


class AuthenticationError(BoardError):
    status_code = 401


class BoardBusyError(BoardError):
    status_code = 503
