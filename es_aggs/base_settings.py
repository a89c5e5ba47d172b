"""Base settings."""

from abc import ABC, abstractmethod


class ApiBaseSettings(ABC):
    """Abstract base class for settings that can build a document store client."""

    @abstractmethod
    def create_client(self):
        """Create a database client."""
        pass
