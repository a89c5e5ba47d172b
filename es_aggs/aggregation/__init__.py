"""Aggregation facade for Elasticsearch.

The aggregation package is organized as follows:
- translate.py: Builds aggregation requests from specs
- format.py: Flattens aggregation responses
- client.py: The facade tying resolution, translation, execution and flattening together
"""

from .client import AggregationClient
from .translate import DEFAULT_PERCENTS, AggregationTranslator

__all__ = [
    "AggregationClient",
    "AggregationTranslator",
    "DEFAULT_PERCENTS",
]
