"""Translation of aggregation specs into Elasticsearch aggregation requests."""

import math
import re
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import attr
from elasticsearch_dsl import A, Q, Search
from elasticsearch_dsl.aggs import Agg

from es_aggs.exceptions import InvalidAggregationSpecError
from es_aggs.models import AggregationSpec

METRIC_AGG_NAME = "agg"
BUCKET_AGG_NAMES = ("bucket", "sub_bucket")

DEFAULT_PERCENTS: Tuple[float, ...] = (1.0, 5.0, 25.0, 50.0, 75.0, 95.0, 99.0)

CALENDAR_INTERVALS = {
    "minute": "minute",
    "1m": "minute",
    "hour": "hour",
    "1h": "hour",
    "day": "day",
    "1d": "day",
    "week": "week",
    "1w": "week",
    "month": "month",
    "1M": "month",
    "quarter": "quarter",
    "1q": "quarter",
    "year": "year",
    "1y": "year",
}

_FIXED_INTERVAL = re.compile(r"^[1-9][0-9]*(ms|s|m|h|d)$")

QueryFilter = Optional[Union[Q, Dict[str, Any]]]


def _check_name(value: Any, what: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidAggregationSpecError(f"{what} must be a non-empty field name")


def validate_spec(
    spec: AggregationSpec, max_depth: int = 2, needs_operator: bool = True
) -> None:
    """Check a spec before any request is built.

    Raises:
        InvalidAggregationSpecError: If a field name is blank, the operator is missing,
            or there are more bucket fields than the aggregation family supports.
    """
    _check_name(spec.metric_field, "metric_field")
    for bucket_field in spec.bucket_fields:
        _check_name(bucket_field, "bucket field")
    if spec.depth > max_depth:
        raise InvalidAggregationSpecError(
            f"Expected at most {max_depth} bucket field(s), got {spec.depth}"
        )
    if needs_operator and spec.operator is None:
        raise InvalidAggregationSpecError("A metric operator is required")


def date_interval_param(interval: Union[str, timedelta]) -> Tuple[str, str]:
    """Pick the date_histogram interval parameter for an interval.

    Calendar units map to `calendar_interval`; durations such as "2h", "90m" or a
    `timedelta` map to `fixed_interval`.

    Returns:
        Tuple[str, str]: Parameter name and value.
    """
    if isinstance(interval, timedelta):
        millis = int(interval.total_seconds() * 1000)
        if millis <= 0:
            raise InvalidAggregationSpecError("Date histogram interval must be positive")
        return "fixed_interval", f"{millis}ms"
    if isinstance(interval, str):
        value = interval.strip()
        if value in CALENDAR_INTERVALS:
            return "calendar_interval", CALENDAR_INTERVALS[value]
        if value.lower() in CALENDAR_INTERVALS and len(value) > 2:
            return "calendar_interval", CALENDAR_INTERVALS[value.lower()]
        if _FIXED_INTERVAL.match(value):
            return "fixed_interval", value
    raise InvalidAggregationSpecError(f"Unsupported date histogram interval: {interval!r}")


def _numbers(values: Iterable[Any], what: str) -> List[float]:
    try:
        numbers = [float(v) for v in values]
    except (TypeError, ValueError) as e:
        raise InvalidAggregationSpecError(f"{what} must be numbers") from e
    if not all(math.isfinite(n) for n in numbers):
        raise InvalidAggregationSpecError(f"{what} must be finite numbers")
    return numbers


@attr.s
class AggregationTranslator:
    """Builds `Search` requests whose aggregations mirror an `AggregationSpec`.

    Each bucket level nests the next one, and the metric sits inside the innermost
    bucket. The query filter is applied in filter context and no hits are fetched.
    """

    bucket_size: int = attr.ib(default=10000)

    def make_search(self, query_filter: QueryFilter = None) -> Search:
        """Create a hit-less search restricted by the query filter."""
        search = Search().extra(size=0)
        if query_filter is not None:
            search = search.filter(Q(query_filter))
        return search

    def _build(
        self, spec: AggregationSpec, metric: Agg, buckets: Sequence[Agg] = ()
    ) -> Search:
        search = self.make_search(spec.query_filter)
        parent = search.aggs
        for name, bucket in zip(BUCKET_AGG_NAMES, buckets):
            parent = parent.bucket(name, bucket)
        parent.metric(METRIC_AGG_NAME, metric)
        return search

    def _terms(self, spec: AggregationSpec) -> List[Agg]:
        return [
            A("terms", field=field, size=self.bucket_size) for field in spec.bucket_fields
        ]

    def translate(self, spec: AggregationSpec) -> Search:
        """Single operator metric, optionally grouped by one or two term levels."""
        validate_spec(spec)
        metric = A(spec.operator.es_type, field=spec.metric_field)
        return self._build(spec, metric, self._terms(spec))

    def translate_stats(self, spec: AggregationSpec) -> Search:
        """Stats metric, optionally grouped by one term level."""
        validate_spec(spec, max_depth=1, needs_operator=False)
        return self._build(spec, A("stats", field=spec.metric_field), self._terms(spec))

    def translate_cardinality(self, spec: AggregationSpec) -> Search:
        """Distinct count estimate."""
        validate_spec(spec, max_depth=0, needs_operator=False)
        return self._build(spec, A("cardinality", field=spec.metric_field))

    def translate_percentiles(
        self, spec: AggregationSpec, percents: Optional[Iterable[float]] = None
    ) -> Search:
        """Percentiles at the given breakpoints, or `DEFAULT_PERCENTS`."""
        validate_spec(spec, max_depth=0, needs_operator=False)
        percents = _numbers(percents if percents else DEFAULT_PERCENTS, "Percents")
        if any(p < 0 or p > 100 for p in percents):
            raise InvalidAggregationSpecError("Percents must be between 0 and 100")
        return self._build(
            spec, A("percentiles", field=spec.metric_field, percents=percents)
        )

    def translate_percentile_ranks(
        self, spec: AggregationSpec, values: Iterable[float]
    ) -> Search:
        """Percentile ranks of the given values."""
        validate_spec(spec, max_depth=0, needs_operator=False)
        values = _numbers(values or (), "Percentile rank values")
        if not values:
            raise InvalidAggregationSpecError("At least one percentile rank value is required")
        return self._build(
            spec, A("percentile_ranks", field=spec.metric_field, values=values)
        )

    def translate_filters(
        self, spec: AggregationSpec, named_filters: Mapping[str, Any]
    ) -> Search:
        """Operator metric inside one bucket per named filter."""
        validate_spec(spec, max_depth=0)
        if not named_filters:
            raise InvalidAggregationSpecError("At least one named filter is required")
        for name in named_filters:
            _check_name(name, "filter name")
        bucket = A("filters", filters={k: Q(v) for k, v in named_filters.items()})
        metric = A(spec.operator.es_type, field=spec.metric_field)
        return self._build(spec, metric, [bucket])

    def translate_histogram(self, spec: AggregationSpec, interval: float) -> Search:
        """Operator metric inside fixed-width numeric buckets of the bucket field."""
        validate_spec(spec, max_depth=1)
        if spec.depth != 1:
            raise InvalidAggregationSpecError("A histogram needs exactly one bucket field")
        if (
            isinstance(interval, bool)
            or not isinstance(interval, (int, float))
            or not math.isfinite(interval)
            or interval <= 0
        ):
            raise InvalidAggregationSpecError("Histogram interval must be a positive number")
        bucket = A(
            "histogram", field=spec.bucket_fields[0], interval=interval, min_doc_count=1
        )
        metric = A(spec.operator.es_type, field=spec.metric_field)
        return self._build(spec, metric, [bucket])

    def translate_date_histogram(
        self, spec: AggregationSpec, interval: Union[str, timedelta]
    ) -> Search:
        """Operator metric inside calendar or fixed time buckets of the bucket field."""
        validate_spec(spec, max_depth=1)
        if spec.depth != 1:
            raise InvalidAggregationSpecError(
                "A date histogram needs exactly one bucket field"
            )
        param, value = date_interval_param(interval)
        bucket = A(
            "date_histogram",
            field=spec.bucket_fields[0],
            min_doc_count=1,
            **{param: value},
        )
        metric = A(spec.operator.es_type, field=spec.metric_field)
        return self._build(spec, metric, [bucket])

    def translate_custom(
        self, aggregations: Mapping[str, Any], query_filter: QueryFilter = None
    ) -> Search:
        """Attach caller-built aggregations to a filtered search as they are."""
        if not aggregations:
            raise InvalidAggregationSpecError("At least one aggregation is required")
        search = self.make_search(query_filter)
        for name, agg in aggregations.items():
            _check_name(name, "aggregation name")
            search.aggs[name] = A(agg)
        return search
