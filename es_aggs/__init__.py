"""es_aggs: aggregation facade for Elasticsearch."""

from es_aggs.aggregation import AggregationClient, AggregationTranslator
from es_aggs.database import IndexMetadataRegistry
from es_aggs.enums import MetricOperator
from es_aggs.exceptions import (
    AggregationError,
    AggregationNotFoundError,
    EngineCommunicationError,
    InvalidAggregationSpecError,
    UnresolvedEntityError,
)
from es_aggs.models import AggregationSpec, Down, IndexMetadata, StatsRecord

__version__ = "0.1.0"

__all__ = [
    "AggregationClient",
    "AggregationError",
    "AggregationNotFoundError",
    "AggregationSpec",
    "AggregationTranslator",
    "Down",
    "EngineCommunicationError",
    "IndexMetadata",
    "IndexMetadataRegistry",
    "InvalidAggregationSpecError",
    "MetricOperator",
    "StatsRecord",
    "UnresolvedEntityError",
]
