import copy
import math
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

import pytest
from elasticsearch_dsl import Search

from es_aggs.aggregation import AggregationClient, AggregationTranslator
from es_aggs.base_database_logic import BaseDatabaseLogic
from es_aggs.database import IndexMetadataRegistry
from es_aggs.models import IndexMetadata

HOUR_MS = 3600 * 1000
DAY_MS = 24 * HOUR_MS
# 2024-01-01T00:00:00Z
BASE_MS = 1704067200000

POLICY_DOCS = [
    {"proposal_no": "P1", "appli_name": "A", "risk_code": "0101", "premium": 50.0, "input_date": BASE_MS},
    {"proposal_no": "P2", "appli_name": "A", "risk_code": "0101", "premium": 100.0, "input_date": BASE_MS + HOUR_MS},
    {"proposal_no": "P3", "appli_name": "B", "risk_code": "0101", "premium": 150.0, "input_date": BASE_MS + DAY_MS},
    {"proposal_no": "P4", "appli_name": "B", "risk_code": "0103", "premium": 60.0, "input_date": BASE_MS + DAY_MS},
    {"proposal_no": "P4", "appli_name": "C", "risk_code": "0103", "premium": 90.0, "input_date": BASE_MS + 3 * DAY_MS},
]


def _field_values(docs: List[Dict], field: str) -> List[Any]:
    return [d[field] for d in docs if d.get(field) is not None]


def _term_value(spec: Any) -> Any:
    return spec["value"] if isinstance(spec, dict) else spec


def matches(doc: Dict, query: Optional[Dict]) -> bool:
    """Evaluate the subset of the query DSL the tests use."""
    if not query:
        return True
    [(kind, body)] = query.items()
    if kind == "match_all":
        return True
    if kind == "bool":
        return all(matches(doc, q) for q in body.get("filter", []) + body.get("must", [])) and not any(
            matches(doc, q) for q in body.get("must_not", [])
        )
    [(field, spec)] = body.items()
    if kind in ("term", "match", "match_phrase"):
        if isinstance(spec, dict):
            spec = spec.get("value", spec.get("query"))
        return doc.get(field) == spec
    if kind == "terms":
        return doc.get(field) in spec
    if kind == "range":
        value = doc.get(field)
        if value is None:
            return False
        checks = {
            "gte": lambda a, b: a >= b,
            "gt": lambda a, b: a > b,
            "lte": lambda a, b: a <= b,
            "lt": lambda a, b: a < b,
        }
        return all(checks[op](value, bound) for op, bound in spec.items())
    raise NotImplementedError(kind)


def _percentile(values: List[float], percent: float) -> float:
    ordered = sorted(values)
    rank = percent / 100 * (len(ordered) - 1)
    low, high = math.floor(rank), math.ceil(rank)
    return ordered[low] + (ordered[high] - ordered[low]) * (rank - low)


def _interval_ms(params: Dict) -> int:
    if "calendar_interval" in params:
        return {"minute": 60 * 1000, "hour": HOUR_MS, "day": DAY_MS}[params["calendar_interval"]]
    value = params["fixed_interval"]
    for suffix, factor in (("ms", 1), ("s", 1000), ("m", 60 * 1000), ("h", HOUR_MS), ("d", DAY_MS)):
        if value.endswith(suffix) and value[: -len(suffix)].isdigit():
            return int(value[: -len(suffix)]) * factor
    raise NotImplementedError(value)


def aggregate(docs: List[Dict], aggs: Dict[str, Dict]) -> Dict[str, Any]:
    """Evaluate an aggregation request tree over documents the way Elasticsearch shapes it."""
    result: Dict[str, Any] = {}
    for name, definition in aggs.items():
        sub = definition.get("aggs", {})
        [(kind, params)] = [(k, v) for k, v in definition.items() if k != "aggs"]
        field = params.get("field")
        values = _field_values(docs, field) if field else []

        if kind == "terms":
            counts = Counter(values)
            keys = sorted(counts, key=lambda k: (-counts[k], k))[: params.get("size", 10)]
            buckets = []
            for key in keys:
                group = [d for d in docs if d.get(field) == key]
                buckets.append({"key": key, "doc_count": len(group), **aggregate(group, sub)})
            result[name] = {"doc_count_error_upper_bound": 0, "sum_other_doc_count": 0, "buckets": buckets}
        elif kind in ("histogram", "date_histogram"):
            width = params["interval"] if kind == "histogram" else _interval_ms(params)
            groups: Dict[Any, List[Dict]] = {}
            for doc in docs:
                if doc.get(field) is not None:
                    key = math.floor(doc[field] / width) * width
                    groups.setdefault(key, []).append(doc)
            buckets = []
            for key in sorted(groups):
                bucket = {"key": float(key) if kind == "histogram" else int(key), "doc_count": len(groups[key])}
                buckets.append({**bucket, **aggregate(groups[key], sub)})
            result[name] = {"buckets": buckets}
        elif kind == "filters":
            buckets = {}
            for filter_name, query in params["filters"].items():
                group = [d for d in docs if matches(d, query)]
                buckets[filter_name] = {"doc_count": len(group), **aggregate(group, sub)}
            result[name] = {"buckets": buckets}
        elif kind == "sum":
            result[name] = {"value": float(sum(values))}
        elif kind == "value_count":
            result[name] = {"value": len(values)}
        elif kind == "avg":
            result[name] = {"value": sum(values) / len(values) if values else None}
        elif kind == "min":
            result[name] = {"value": float(min(values)) if values else None}
        elif kind == "max":
            result[name] = {"value": float(max(values)) if values else None}
        elif kind == "stats":
            result[name] = {
                "count": len(values),
                "min": min(values) if values else None,
                "max": max(values) if values else None,
                "avg": sum(values) / len(values) if values else None,
                "sum": float(sum(values)),
            }
        elif kind == "cardinality":
            result[name] = {"value": len(set(values))}
        elif kind == "percentiles":
            result[name] = {
                "values": {
                    str(float(p)): _percentile(values, p) if values else None for p in params["percents"]
                }
            }
        elif kind == "percentile_ranks":
            result[name] = {
                "values": {
                    str(float(v)): 100.0 * len([x for x in values if x <= v]) / len(values) if values else None
                    for v in params["values"]
                }
            }
        else:
            raise NotImplementedError(kind)
    return result


class InMemoryDatabaseLogic(BaseDatabaseLogic):
    """Document store evaluating aggregation requests over in-memory documents."""

    def __init__(self, documents: Dict[str, List[Dict]]):
        self.documents = documents
        self.requests: List[Dict] = []

    def execute_aggregation(self, search: Search, index_names: Sequence[str]) -> Dict[str, Any]:
        body = search.to_dict()
        self.requests.append({"body": body, "index": list(index_names)})
        docs = [d for index in index_names for d in self.documents.get(index, [])]
        docs = [d for d in docs if matches(d, body.get("query"))]
        response = {
            "took": 1,
            "timed_out": False,
            "hits": {"total": {"value": len(docs), "relation": "eq"}, "hits": []},
        }
        aggs = aggregate(docs, body.get("aggs", {}))
        if aggs:
            response["aggregations"] = aggs
        return response


class CannedDatabaseLogic(BaseDatabaseLogic):
    """Document store replaying a fixed response."""

    def __init__(self, response: Dict[str, Any]):
        self.response = response
        self.requests: List[Dict] = []

    def execute_aggregation(self, search: Search, index_names: Sequence[str]) -> Dict[str, Any]:
        self.requests.append({"body": search.to_dict(), "index": list(index_names)})
        return copy.deepcopy(self.response)


class Policy:
    """Entity type registered by class."""


@pytest.fixture
def policy_docs() -> List[Dict]:
    return copy.deepcopy(POLICY_DOCS)


@pytest.fixture
def registry() -> IndexMetadataRegistry:
    registry = IndexMetadataRegistry()
    registry.register(Policy, IndexMetadata(index_name="policy"))
    registry.register(
        "Archive",
        IndexMetadata(index_name="archive", search_index_names=["archive_2023", "archive_2024"]),
    )
    return registry


@pytest.fixture
def database(policy_docs) -> InMemoryDatabaseLogic:
    return InMemoryDatabaseLogic(
        {
            "policy": policy_docs,
            "archive_2023": policy_docs[:2],
            "archive_2024": policy_docs[2:],
            "empty": [],
        }
    )


@pytest.fixture
def client(database, registry) -> AggregationClient:
    return AggregationClient(database=database, registry=registry, translator=AggregationTranslator())
