"""Client implementation of the aggregation facade."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import attr
import orjson
from elasticsearch_dsl import Search

from es_aggs.base_database_logic import BaseDatabaseLogic
from es_aggs.database import IndexMetadataRegistry, entity_name, resolve_indices
from es_aggs.enums import MetricOperator
from es_aggs.exceptions import InvalidAggregationSpecError
from es_aggs.models import AggregationSpec, Down, StatsRecord

from . import format as agg_format
from .translate import AggregationTranslator, QueryFilter

logger = logging.getLogger(__name__)

Indices = Optional[Sequence[str]]


@attr.s
class AggregationClient:
    """Runs aggregations over an entity's indices from primitive arguments.

    Every family method resolves the target indices, builds an `AggregationSpec`,
    translates it into a request, executes it through the database logic and
    flattens the response. All of them accept a trailing `indices` list that replaces
    the entity's configured index names.
    """

    database: BaseDatabaseLogic = attr.ib()
    registry: IndexMetadataRegistry = attr.ib(factory=IndexMetadataRegistry)
    translator: AggregationTranslator = attr.ib(factory=AggregationTranslator)

    @classmethod
    def create_from_settings(
        cls, settings: Any, database: Optional[BaseDatabaseLogic] = None
    ) -> "AggregationClient":
        """Create a client whose registry and bucket size come from settings."""
        if database is None:
            from es_aggs.database_logic import DatabaseLogic

            database = DatabaseLogic(settings=settings)
        return cls(
            database=database,
            registry=IndexMetadataRegistry.from_settings(settings),
            translator=AggregationTranslator(bucket_size=settings.bucket_size),
        )

    def _execute(
        self, entity_type: Any, search: Search, index_names: Sequence[str]
    ) -> Dict[str, Any]:
        if entity_type in self.registry and self.registry.lookup(entity_type).print_log:
            logger.info(
                f"Aggregation on {list(index_names)} for '{entity_name(entity_type)}': "
                f"{orjson.dumps(search.to_dict()).decode()}"
            )
        return self.database.execute_aggregation(search, index_names)

    def metric(
        self,
        metric_field: str,
        operator: MetricOperator,
        query_filter: QueryFilter,
        entity_type: Any,
        indices: Indices = None,
    ) -> float:
        """Single metric value over all matching documents."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, operator, (), query_filter, index_names)
        response = self._execute(entity_type, self.translator.translate(spec), index_names)
        return agg_format.unflatten(spec, response)

    def metric_by_bucket(
        self,
        metric_field: str,
        operator: MetricOperator,
        query_filter: QueryFilter,
        entity_type: Any,
        bucket_field: str,
        indices: Indices = None,
    ) -> Dict[str, float]:
        """Metric value per term of `bucket_field`, in engine bucket order."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(
            metric_field, operator, (bucket_field,), query_filter, index_names
        )
        response = self._execute(entity_type, self.translator.translate(spec), index_names)
        return agg_format.unflatten(spec, response)

    def drill_down(
        self,
        metric_field: str,
        operator: MetricOperator,
        query_filter: QueryFilter,
        entity_type: Any,
        bucket_fields: Sequence[str],
        indices: Indices = None,
    ) -> List[Down]:
        """Metric value per (level 1 term, level 2 term) combination."""
        if isinstance(bucket_fields, str):
            bucket_fields = (bucket_fields,)
        bucket_fields = tuple(bucket_fields or ())
        if len(bucket_fields) != 2:
            raise InvalidAggregationSpecError(
                f"A drill-down needs exactly two bucket fields, got {len(bucket_fields)}"
            )
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(
            metric_field, operator, bucket_fields, query_filter, index_names
        )
        response = self._execute(entity_type, self.translator.translate(spec), index_names)
        return agg_format.unflatten(spec, response)

    def stats(
        self,
        metric_field: str,
        query_filter: QueryFilter,
        entity_type: Any,
        indices: Indices = None,
    ) -> StatsRecord:
        """Min, max, sum, count and average of a field in one pass."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, None, (), query_filter, index_names)
        response = self._execute(
            entity_type, self.translator.translate_stats(spec), index_names
        )
        return agg_format.stats(response)

    def stats_by_bucket(
        self,
        metric_field: str,
        query_filter: QueryFilter,
        entity_type: Any,
        bucket_field: str,
        indices: Indices = None,
    ) -> Dict[str, StatsRecord]:
        """Stats per term of `bucket_field`."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, None, (bucket_field,), query_filter, index_names)
        response = self._execute(
            entity_type, self.translator.translate_stats(spec), index_names
        )
        return agg_format.stats_by_bucket(response)

    def cardinality(
        self,
        metric_field: str,
        query_filter: QueryFilter,
        entity_type: Any,
        indices: Indices = None,
    ) -> int:
        """Approximate number of distinct values of a field."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, None, (), query_filter, index_names)
        response = self._execute(
            entity_type, self.translator.translate_cardinality(spec), index_names
        )
        return agg_format.cardinality(response)

    def percentiles(
        self,
        metric_field: str,
        query_filter: QueryFilter,
        entity_type: Any,
        percents: Optional[Iterable[float]] = None,
        indices: Indices = None,
    ) -> Dict[float, float]:
        """Field value at each percentile; the default breakpoints are 1, 5, 25, 50, 75, 95, 99."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, None, (), query_filter, index_names)
        response = self._execute(
            entity_type, self.translator.translate_percentiles(spec, percents), index_names
        )
        return agg_format.percentile_values(response)

    def percentile_ranks(
        self,
        metric_field: str,
        query_filter: QueryFilter,
        entity_type: Any,
        values: Iterable[float],
        indices: Indices = None,
    ) -> Dict[float, float]:
        """Percentage of observations at or below each value."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, None, (), query_filter, index_names)
        response = self._execute(
            entity_type,
            self.translator.translate_percentile_ranks(spec, values),
            index_names,
        )
        return agg_format.percentile_values(response)

    def filter_aggregation(
        self,
        metric_field: str,
        operator: MetricOperator,
        query_filter: QueryFilter,
        entity_type: Any,
        named_filters: Mapping[str, Any],
        indices: Indices = None,
    ) -> Dict[str, float]:
        """Metric value inside each named filter bucket.

        Example:
            `{"men": Q("term", gender="male"), "women": {"term": {"gender": "female"}}}`
        """
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(metric_field, operator, (), query_filter, index_names)
        response = self._execute(
            entity_type, self.translator.translate_filters(spec, named_filters), index_names
        )
        return agg_format.filter_values(response, spec.operator)

    def histogram(
        self,
        metric_field: str,
        operator: MetricOperator,
        query_filter: QueryFilter,
        entity_type: Any,
        bucket_field: str,
        interval: float,
        indices: Indices = None,
    ) -> Dict[float, float]:
        """Metric value per fixed-width interval of the numeric `bucket_field`."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(
            metric_field, operator, (bucket_field,), query_filter, index_names
        )
        response = self._execute(
            entity_type, self.translator.translate_histogram(spec, interval), index_names
        )
        return agg_format.histogram_values(response, spec.operator)

    def temporal_histogram(
        self,
        metric_field: str,
        operator: MetricOperator,
        query_filter: QueryFilter,
        entity_type: Any,
        bucket_field: str,
        interval: Union[str, timedelta],
        indices: Indices = None,
    ) -> Dict[datetime, float]:
        """Metric value per calendar ("month") or fixed ("2h", timedelta) interval of a date field."""
        index_names = resolve_indices(self.registry, entity_type, indices)
        spec = AggregationSpec(
            metric_field, operator, (bucket_field,), query_filter, index_names
        )
        response = self._execute(
            entity_type,
            self.translator.translate_date_histogram(spec, interval),
            index_names,
        )
        return agg_format.date_histogram_values(response, spec.operator)

    def aggregate(
        self,
        aggregations: Mapping[str, Any],
        query_filter: QueryFilter,
        entity_type: Any,
        indices: Indices = None,
    ) -> Dict[str, Any]:
        """Run caller-built aggregations and return the raw response untouched.

        Args:
            aggregations (Mapping[str, Any]): `elasticsearch_dsl` aggregations or
                aggregation dictionaries keyed by name.
        """
        index_names = resolve_indices(self.registry, entity_type, indices)
        search = self.translator.translate_custom(aggregations, query_filter)
        return self._execute(entity_type, search, index_names)
