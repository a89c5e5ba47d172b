"""Exceptions module for es_aggs.

This module contains the error taxonomy raised by the aggregation facade. Configuration and
programmer errors (bad specs, unregistered entities) are kept apart from infrastructure
errors so that callers can choose a retry policy per class.
"""

from typing import Any, Optional


class AggregationError(Exception):
    """Base class for all errors raised by es_aggs."""


class InvalidAggregationSpecError(AggregationError, ValueError):
    """Raised when an aggregation request is missing or has malformed arguments.

    Raised before any request is sent to the engine. Never worth retrying.
    """


class InvalidIndexMetadataError(AggregationError, ValueError):
    """Raised when index metadata cannot be registered."""


class UnresolvedEntityError(AggregationError, LookupError):
    """Raised when an entity type has no registered index metadata.

    Attributes:
        entity (str): Name of the entity type that could not be resolved
    """

    def __init__(self, entity: str):
        """Initialize UnresolvedEntityError.

        Args:
            entity (str): Name of the entity type that could not be resolved
        """
        super().__init__(f"No index metadata registered for entity '{entity}'")
        self.entity = entity


class AggregationNotFoundError(AggregationError, LookupError):
    """Raised when a response tree lacks an expected aggregation node or value.

    Attributes:
        name (str): Name of the missing aggregation node
    """

    def __init__(self, name: str, message: Optional[str] = None):
        """Initialize AggregationNotFoundError.

        Args:
            name (str): Name of the missing aggregation node
            message (Optional[str]): Override for the default message
        """
        super().__init__(message or f"Aggregation '{name}' not found in response")
        self.name = name


class EngineCommunicationError(AggregationError):
    """Raised when the document store fails to answer an aggregation request.

    Attributes:
        cause (Any): The exception raised by the underlying client
    """

    def __init__(self, message: str, cause: Any = None):
        """Initialize EngineCommunicationError.

        Args:
            message (str): Human-readable error description
            cause (Any): The exception raised by the underlying client
        """
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        """Return the message with the underlying client error appended."""
        if self.cause is None:
            return super().__str__()
        return f"{super().__str__()} ({type(self.cause).__name__}: {self.cause})"
