"""Flattening of nested aggregation responses into caller-facing results."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar, Union

from es_aggs.enums import MetricOperator
from es_aggs.exceptions import AggregationNotFoundError
from es_aggs.models import AggregationSpec, Down, StatsRecord

from .translate import BUCKET_AGG_NAMES, METRIC_AGG_NAME

K = TypeVar("K")


def get_aggregations(response: Dict[str, Any]) -> Dict[str, Any]:
    """Return the top-level aggregations of a search response.

    Raises:
        AggregationNotFoundError: If the response carries no aggregations.
    """
    aggs = response.get("aggregations") if response else None
    if not isinstance(aggs, dict):
        raise AggregationNotFoundError("aggregations", "Response contains no aggregations")
    return aggs


def _node(parent: Dict[str, Any], name: str) -> Dict[str, Any]:
    node = parent.get(name)
    if not isinstance(node, dict):
        raise AggregationNotFoundError(name)
    return node


def _term_key(bucket: Dict[str, Any]) -> str:
    return str(bucket.get("key_as_string") or bucket["key"])


def _float_key(bucket: Dict[str, Any]) -> float:
    return float(bucket["key"])


def _date_key(bucket: Dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(bucket["key"] / 1e3, tz=timezone.utc)


def _buckets(
    node: Dict[str, Any], key: Callable[[Dict[str, Any]], Any]
) -> Iterator[Tuple[Any, Dict[str, Any]]]:
    """Yield (key, bucket) pairs in engine order, skipping buckets without documents."""
    buckets = node.get("buckets")
    if buckets is None:
        raise AggregationNotFoundError("buckets")
    # filters aggregations key their buckets by filter name
    pairs = (
        buckets.items()
        if isinstance(buckets, dict)
        else ((key(b), b) for b in buckets)
    )
    for bucket_key, bucket in pairs:
        if bucket.get("doc_count", 0) > 0:
            yield bucket_key, bucket


def _bucket_value(
    bucket: Dict[str, Any], operator: Optional[MetricOperator]
) -> Optional[float]:
    """Metric value of a bucket, or None when the bucket should be omitted."""
    value = _node(bucket, METRIC_AGG_NAME).get("value")
    if value is None:
        return None
    if operator is MetricOperator.COUNT and value == 0:
        return None
    return float(value)


def metric_value(response: Dict[str, Any]) -> float:
    """Value of an unbucketed metric.

    Raises:
        AggregationNotFoundError: If the metric is missing or has no value.
    """
    node = _node(get_aggregations(response), METRIC_AGG_NAME)
    value = node.get("value")
    if value is None:
        raise AggregationNotFoundError(
            METRIC_AGG_NAME, "Metric has no value, no documents matched"
        )
    return float(value)


def keyed_values(
    response: Dict[str, Any],
    operator: Optional[MetricOperator],
    key: Callable[[Dict[str, Any]], K] = _term_key,
) -> Dict[K, float]:
    """Metric value per bucket of the first bucket level."""
    result: Dict[K, float] = {}
    node = _node(get_aggregations(response), BUCKET_AGG_NAMES[0])
    for bucket_key, bucket in _buckets(node, key):
        value = _bucket_value(bucket, operator)
        if value is not None:
            result[bucket_key] = value
    return result


def drill_down(
    response: Dict[str, Any], operator: Optional[MetricOperator]
) -> List[Down]:
    """Flatten a two-level bucket tree into `Down` records."""
    downs: List[Down] = []
    top = _node(get_aggregations(response), BUCKET_AGG_NAMES[0])
    for level_1_key, level_1 in _buckets(top, _term_key):
        sub = _node(level_1, BUCKET_AGG_NAMES[1])
        for level_2_key, level_2 in _buckets(sub, _term_key):
            value = _bucket_value(level_2, operator)
            if value is not None:
                downs.append(Down(level_1_key, level_2_key, value))
    return downs


def unflatten(
    spec: AggregationSpec, response: Dict[str, Any]
) -> Union[float, Dict[str, float], List[Down]]:
    """Shape an operator metric response by the number of bucket fields in the spec."""
    if spec.depth == 0:
        return metric_value(response)
    if spec.depth == 1:
        return keyed_values(response, spec.operator)
    return drill_down(response, spec.operator)


def _stats_record(node: Dict[str, Any]) -> Optional[StatsRecord]:
    if not node.get("count"):
        return None
    return StatsRecord(
        min=node["min"],
        max=node["max"],
        sum=node["sum"],
        count=node["count"],
        avg=node["avg"],
    )


def stats(response: Dict[str, Any]) -> StatsRecord:
    """Unbucketed stats.

    Raises:
        AggregationNotFoundError: If the node is missing or no document had the field.
    """
    record = _stats_record(_node(get_aggregations(response), METRIC_AGG_NAME))
    if record is None:
        raise AggregationNotFoundError(
            METRIC_AGG_NAME, "Stats are empty, no documents matched"
        )
    return record


def stats_by_bucket(response: Dict[str, Any]) -> Dict[str, StatsRecord]:
    """Stats per bucket of the first bucket level."""
    result: Dict[str, StatsRecord] = {}
    node = _node(get_aggregations(response), BUCKET_AGG_NAMES[0])
    for bucket_key, bucket in _buckets(node, _term_key):
        record = _stats_record(_node(bucket, METRIC_AGG_NAME))
        if record is not None:
            result[bucket_key] = record
    return result


def cardinality(response: Dict[str, Any]) -> int:
    """Distinct count estimate."""
    return int(metric_value(response))


def percentile_values(response: Dict[str, Any]) -> Dict[float, float]:
    """Percentile or percentile rank values keyed by their float marker.

    Handles both the keyed object form and the list form of the response.
    """
    node = _node(get_aggregations(response), METRIC_AGG_NAME)
    values = node.get("values")
    if values is None:
        raise AggregationNotFoundError(METRIC_AGG_NAME)
    pairs = (
        values.items()
        if isinstance(values, dict)
        else ((v["key"], v.get("value")) for v in values)
    )
    result: Dict[float, float] = {}
    for marker, value in pairs:
        if value is None:
            raise AggregationNotFoundError(
                METRIC_AGG_NAME, f"No value for {marker}, no documents matched"
            )
        result[float(marker)] = float(value)
    return result


def filter_values(
    response: Dict[str, Any], operator: Optional[MetricOperator]
) -> Dict[str, float]:
    """Metric value per named filter bucket."""
    return keyed_values(response, operator)


def histogram_values(
    response: Dict[str, Any], operator: Optional[MetricOperator]
) -> Dict[float, float]:
    """Metric value per numeric interval, keyed by the interval's lower bound."""
    return keyed_values(response, operator, key=_float_key)


def date_histogram_values(
    response: Dict[str, Any], operator: Optional[MetricOperator]
) -> Dict[datetime, float]:
    """Metric value per time interval, keyed by the interval start in UTC."""
    return keyed_values(response, operator, key=_date_key)
