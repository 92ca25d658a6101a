# spendlog/errors.py
"""Errors raised by the store and mapped to HTTP statuses by the API."""


class SpendlogError(Exception):
    status_code = 500


class ValidationError(SpendlogError):
    """A required field is missing or a value is out of range."""

    status_code = 400


class ConflictError(SpendlogError):
    """The operation would break a reference, e.g. deleting a used category."""

    status_code = 400


class NotFoundError(SpendlogError):
    status_code = 404


class StoreError(SpendlogError):
    """The underlying SQLite query failed."""

    status_code = 500
