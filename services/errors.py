"""Typed errors raised by the TaskFlow services.

Routes translate each of these into a JSON error response.
"""
from __future__ import annotations


class TaskFlowError(Exception):
    """Base class for every error raised by the services."""

    status_code = 500


class ValidationError(TaskFlowError, ValueError):
    """A required field is empty or malformed."""

    status_code = 400

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class DuplicateError(TaskFlowError, ValueError):
    """A name or value collides, case-insensitively, with another record."""

    status_code = 409

    def __init__(self, message: str, *, field: str, value: str):
        super().__init__(message)
        self.field = field
        self.value = value


class NotFoundError(TaskFlowError, LookupError):
    status_code = 404


class StoreError(TaskFlowError, RuntimeError):
    """The database rejected a read or a write."""

    status_code = 500
