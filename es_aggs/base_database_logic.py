"""Base database logic."""

import abc
from typing import Any, Dict, Sequence

from elasticsearch_dsl import Search


class BaseDatabaseLogic(abc.ABC):
    """
    Abstract base class for database logic.

    The aggregation facade only needs one capability from the document store: run a
    filtered, aggregation-only search against a set of indices and hand back the
    response tree.
    """

    @abc.abstractmethod
    def execute_aggregation(
        self, search: Search, index_names: Sequence[str]
    ) -> Dict[str, Any]:
        """Execute an aggregation request.

        Args:
            search (Search): Query filter and aggregation tree to execute.
            index_names (Sequence[str]): Indices to run the request against.

        Returns:
            Dict[str, Any]: The raw search response.

        Raises:
            EngineCommunicationError: If the document store fails to answer.
        """
        pass
