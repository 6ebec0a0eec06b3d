"""Taxoclass exception hierarchy.

This module defines custom exceptions for the taxoclass library,
providing structured error handling with context information.
"""


class TaxoclassError(Exception):
    """Base exception for all taxoclass errors.

    All taxoclass-specific exceptions inherit from this class,
    allowing callers to catch all taxoclass errors with a single
    except clause if desired.
    """
    pass


class StorageError(TaxoclassError):
    """Raised when hierarchy store operations fail.

    Attributes:
        operation: The operation that failed (e.g., 'save_classification').
        key: The QID involved in the failed operation (if applicable).
    """

    def __init__(self, message, operation=None, key=None):
        super().__init__(message)
        self.operation = operation
        self.key = key


class GraphClientError(TaxoclassError):
    """Raised when the knowledge graph API cannot be queried.

    Attributes:
        qid: The entity (or '|'-joined batch) being fetched.
        status_code: HTTP status code of the last response (if any).
    """

    def __init__(self, message, qid=None, status_code=None):
        super().__init__(message)
        self.qid = qid
        self.status_code = status_code


class EntityNotFoundError(GraphClientError):
    """Raised when a requested entity is missing from the API response."""
    pass


class ConfigError(TaxoclassError):
    """Raised when the category configuration cannot be loaded.

    Attributes:
        path: The configuration file involved (if any).
    """

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class ValidationError(TaxoclassError):
    """Raised when input validation fails.

    Attributes:
        value: The invalid value that was provided.
        expected_type: Description of what type/format was expected.
    """

    def __init__(self, message, value=None, expected_type=None):
        super().__init__(message)
        self.value = value
        self.expected_type = expected_type
