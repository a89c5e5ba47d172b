"""Record types used by the aggregation facade."""

from typing import Any, Dict, Optional, Tuple

import attr

from es_aggs.enums import MetricOperator
from es_aggs.exceptions import InvalidAggregationSpecError, InvalidIndexMetadataError
from es_aggs.utilities import FALSE_VALUES, TRUE_VALUES


def _str_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _check_index_name(instance, attribute, value):
    if not isinstance(value, str) or not value.strip():
        raise InvalidIndexMetadataError("index_name must be a non-empty string")


def _check_search_index_names(instance, attribute, value):
    if any(not isinstance(name, str) or not name.strip() for name in value):
        raise InvalidIndexMetadataError("search_index_names must be non-empty strings")


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        if value.strip().lower() in TRUE_VALUES:
            return True
        if value.strip().lower() in FALSE_VALUES:
            return False
        raise InvalidIndexMetadataError(f"Expected a boolean, got {value!r}")
    return bool(value)


@attr.s(frozen=True)
class IndexMetadata:
    """Index configuration for one entity type.

    Attributes:
        index_name (str): Primary index, used for writes and as the search default.
        search_index_names (Tuple[str, ...]): Indices searched instead of `index_name`, if any.
        index_type (str): Mapping type name, defaults to `index_name`.
        number_of_shards (int): Primary shard count.
        number_of_replicas (int): Replica count.
        print_log (bool): Log request bodies sent for this entity.
    """

    index_name: str = attr.ib(validator=_check_index_name)
    search_index_names: Tuple[str, ...] = attr.ib(
        default=(), converter=_str_tuple, validator=_check_search_index_names
    )
    index_type: str = attr.ib(
        default=attr.Factory(lambda self: self.index_name, takes_self=True)
    )
    number_of_shards: int = attr.ib(default=5, converter=int)
    number_of_replicas: int = attr.ib(default=1, converter=int)
    print_log: bool = attr.ib(default=False, converter=_flag)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexMetadata":
        """Build metadata from a configuration mapping, ignoring unknown keys."""
        known = {a.name for a in attr.fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if not kwargs.get("index_type"):
            kwargs.pop("index_type", None)
        if "index_name" not in kwargs:
            raise InvalidIndexMetadataError("index_name is required")
        return cls(**kwargs)

    @property
    def search_indices(self) -> Tuple[str, ...]:
        """Indices used for search operations."""
        return self.search_index_names or (self.index_name,)


def _operator(value: Any) -> Optional[MetricOperator]:
    if value is None:
        return None
    try:
        return MetricOperator(value)
    except ValueError as e:
        raise InvalidAggregationSpecError(f"Unknown metric operator: {value!r}") from e


def _check_bucket_fields(instance, attribute, value):
    if len(value) > 2:
        raise InvalidAggregationSpecError(
            f"At most two bucket fields are supported, got {len(value)}"
        )


@attr.s(frozen=True)
class AggregationSpec:
    """A single aggregation request built from primitive arguments.

    The number of bucket fields decides the result shape: none gives a scalar,
    one a mapping keyed by bucket, two a list of `Down` records.
    """

    metric_field: str = attr.ib()
    operator: Optional[MetricOperator] = attr.ib(default=None, converter=_operator)
    bucket_fields: Tuple[str, ...] = attr.ib(
        default=(), converter=_str_tuple, validator=_check_bucket_fields
    )
    query_filter: Any = attr.ib(default=None)
    indices: Tuple[str, ...] = attr.ib(default=(), converter=_str_tuple)

    @property
    def depth(self) -> int:
        """Number of bucket levels."""
        return len(self.bucket_fields)


@attr.s(frozen=True)
class Down:
    """One leaf of a two-level drill-down."""

    level_1_key: str = attr.ib()
    level_2_key: str = attr.ib()
    value: float = attr.ib(converter=float)


@attr.s(frozen=True)
class StatsRecord:
    """Result of a stats aggregation."""

    min: float = attr.ib(converter=float)
    max: float = attr.ib(converter=float)
    sum: float = attr.ib(converter=float)
    count: int = attr.ib(converter=int)
    avg: float = attr.ib(converter=float)
