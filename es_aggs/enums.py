"""Metric operators supported by the aggregation facade."""

from enum import Enum
from typing import Dict


class MetricOperator(str, Enum):
    """Closed set of single-value metric operators.

    Adding a member also requires an entry in `ES_METRIC_TYPES`.
    """

    SUM = "sum"
    COUNT = "count"
    AVG = "avg"
    MIN = "min"
    MAX = "max"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            value = value.lower()
            if value == "average":
                return cls.AVG
            for member in cls:
                if member.value == value:
                    return member
        return None

    @property
    def es_type(self) -> str:
        """Name of the Elasticsearch metric aggregation for this operator."""
        return ES_METRIC_TYPES[self]


ES_METRIC_TYPES: Dict[MetricOperator, str] = {
    MetricOperator.SUM: "sum",
    MetricOperator.COUNT: "value_count",
    MetricOperator.AVG: "avg",
    MetricOperator.MIN: "min",
    MetricOperator.MAX: "max",
}
