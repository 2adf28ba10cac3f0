"""
Service-layer errors.

Route handlers validate request shape inline and return ``jsonify(...)`` with
a status code. Services raise one of these when a workflow rule fails; the
app-level handler registered in ``create_app`` turns them into JSON.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        body.update(self.extra)
        return body


class BadRequest(ApiError):
    status_code = 400


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class Unprocessable(ApiError):
    status_code = 422
