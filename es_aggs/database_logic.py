"""Database logic."""

import logging
from typing import Any, Dict, Optional, Sequence

import attr
from elasticsearch_dsl import Search
from overrides import overrides

from elasticsearch import exceptions  # type: ignore
from es_aggs.base_database_logic import BaseDatabaseLogic
from es_aggs.config import ElasticsearchSettings
from es_aggs.database import indices
from es_aggs.exceptions import EngineCommunicationError

logger = logging.getLogger(__name__)


@attr.s
class DatabaseLogic(BaseDatabaseLogic):
    """Elasticsearch implementation of the document store used by the aggregation facade."""

    settings: ElasticsearchSettings = attr.ib(factory=ElasticsearchSettings)
    client: Any = attr.ib(default=None)

    def __attrs_post_init__(self):
        """Create the client from settings when none is supplied."""
        if self.client is None:
            self.client = self.settings.create_client

    @overrides
    def execute_aggregation(
        self, search: Search, index_names: Sequence[str]
    ) -> Dict[str, Any]:
        """Run an aggregation-only search.

        Args:
            search (Search): Query filter and aggregations to execute.
            index_names (Sequence[str]): Indices to run the request against.

        Returns:
            Dict[str, Any]: The search response body.

        Raises:
            EngineCommunicationError: On any API or transport error from the client.
        """
        index_param = indices(index_names)
        try:
            es_response = self.client.search(
                index=index_param,
                ignore_unavailable=self.settings.ignore_unavailable,
                body=search.to_dict(),
            )
        except (
            exceptions.ApiError,
            exceptions.TransportError,
            exceptions.ConnectionError,
            exceptions.ConnectionTimeout,
        ) as e:
            logger.error(f"Aggregation request on '{index_param}' failed: {e}")
            raise EngineCommunicationError(
                f"Aggregation request on '{index_param}' failed", cause=e
            ) from e

        return _body(es_response)

    def close(self) -> None:
        """Close the underlying client."""
        self.client.close()


def _body(es_response: Any) -> Optional[Dict[str, Any]]:
    # the 8.x client wraps bodies in ObjectApiResponse
    return getattr(es_response, "body", es_response)
