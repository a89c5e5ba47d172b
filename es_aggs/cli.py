"""es-aggs CLI - run aggregations against a configured Elasticsearch cluster.

Connection settings come from the ES_* environment variables and entity registrations
from ES_AGGS_INDEX_METADATA.

Usage:
    es-aggs metric Policy premium --operator sum
    es-aggs metric Policy premium --operator sum --bucket appli_name --bucket risk_code
    es-aggs stats Policy premium --bucket risk_code
    es-aggs percentiles Policy premium --percent 50 --percent 99
"""

import logging
from datetime import datetime
from typing import Any, Optional, Tuple

import attr
import click
import orjson

from es_aggs import __version__
from es_aggs.aggregation import AggregationClient
from es_aggs.config import ElasticsearchSettings
from es_aggs.enums import MetricOperator
from es_aggs.exceptions import AggregationError
from es_aggs.models import Down, StatsRecord

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OPERATOR_CHOICE = click.Choice([op.value for op in MetricOperator], case_sensitive=False)


def _default(value: Any) -> Any:
    if isinstance(value, (Down, StatsRecord)):
        return attr.asdict(value)
    raise TypeError


def _echo(result: Any) -> None:
    if isinstance(result, dict):
        result = {
            k.isoformat() if isinstance(k, datetime) else str(k): v
            for k, v in result.items()
        }
    click.echo(
        orjson.dumps(result, default=_default, option=orjson.OPT_INDENT_2).decode()
    )


def _query(query: Optional[str]) -> Optional[dict]:
    if not query:
        return None
    try:
        return orjson.loads(query)
    except orjson.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON query: {e}", param_hint="--query")


def _client(ctx: click.Context, entity: str) -> AggregationClient:
    client = ctx.obj
    if client is None:
        client = ctx.obj = AggregationClient.create_from_settings(ElasticsearchSettings())
    if entity not in client.registry:
        raise click.UsageError(f"Entity '{entity}' is not configured in ES_AGGS_INDEX_METADATA")
    return client


def _run(fn, *args, **kwargs) -> None:
    try:
        _echo(fn(*args, **kwargs))
    except AggregationError as e:
        raise click.ClickException(str(e))


def query_option(fn):
    """Add the --query option."""
    return click.option(
        "--query", type=str, default=None, help="Query filter as Elasticsearch query JSON"
    )(fn)


def index_option(fn):
    """Add the repeatable --index option."""
    return click.option(
        "--index",
        "indices",
        multiple=True,
        help="Index to query instead of the entity's configured indices",
    )(fn)


@click.group()
@click.version_option(version=__version__, prog_name="es-aggs")
def cli():
    """es-aggs - Aggregations over Elasticsearch indices."""
    pass


@cli.command("metric")
@click.argument("entity")
@click.argument("field")
@click.option("--operator", type=OPERATOR_CHOICE, required=True, help="Metric operator")
@click.option("--bucket", "buckets", multiple=True, help="Bucket field, up to two")
@index_option
@query_option
@click.pass_context
def metric(ctx, entity: str, field: str, operator: str, buckets: Tuple[str, ...], indices, query):
    """Metric of FIELD, grouped by zero, one or two --bucket fields."""
    client = _client(ctx, entity)
    args = (field, operator, _query(query), entity)
    if not buckets:
        _run(client.metric, *args, indices=list(indices))
    elif len(buckets) == 1:
        _run(client.metric_by_bucket, *args, buckets[0], indices=list(indices))
    elif len(buckets) == 2:
        _run(client.drill_down, *args, list(buckets), indices=list(indices))
    else:
        raise click.BadParameter("At most two bucket fields", param_hint="--bucket")


@cli.command("stats")
@click.argument("entity")
@click.argument("field")
@click.option("--bucket", default=None, help="Bucket field")
@index_option
@query_option
@click.pass_context
def stats(ctx, entity: str, field: str, bucket: Optional[str], indices, query):
    """Stats of FIELD, optionally per --bucket term."""
    client = _client(ctx, entity)
    if bucket:
        _run(client.stats_by_bucket, field, _query(query), entity, bucket, indices=list(indices))
    else:
        _run(client.stats, field, _query(query), entity, indices=list(indices))


@cli.command("cardinality")
@click.argument("entity")
@click.argument("field")
@index_option
@query_option
@click.pass_context
def cardinality(ctx, entity: str, field: str, indices, query):
    """Approximate distinct count of FIELD."""
    client = _client(ctx, entity)
    _run(client.cardinality, field, _query(query), entity, indices=list(indices))


@cli.command("percentiles")
@click.argument("entity")
@click.argument("field")
@click.option("--percent", "percents", type=float, multiple=True, help="Percentile breakpoint")
@index_option
@query_option
@click.pass_context
def percentiles(ctx, entity: str, field: str, percents, indices, query):
    """Percentiles of FIELD."""
    client = _client(ctx, entity)
    _run(
        client.percentiles,
        field,
        _query(query),
        entity,
        percents=list(percents) or None,
        indices=list(indices),
    )


@cli.command("histogram")
@click.argument("entity")
@click.argument("field")
@click.option("--operator", type=OPERATOR_CHOICE, required=True, help="Metric operator")
@click.option("--bucket", required=True, help="Numeric bucket field")
@click.option("--interval", type=float, required=True, help="Bucket width")
@index_option
@query_option
@click.pass_context
def histogram(ctx, entity, field, operator, bucket, interval, indices, query):
    """Metric of FIELD per fixed-width interval of --bucket."""
    client = _client(ctx, entity)
    _run(
        client.histogram,
        field,
        operator,
        _query(query),
        entity,
        bucket,
        interval,
        indices=list(indices),
    )


@cli.command("date-histogram")
@click.argument("entity")
@click.argument("field")
@click.option("--operator", type=OPERATOR_CHOICE, required=True, help="Metric operator")
@click.option("--bucket", required=True, help="Date bucket field")
@click.option("--interval", required=True, help="Calendar unit (month) or duration (2h)")
@index_option
@query_option
@click.pass_context
def date_histogram(ctx, entity, field, operator, bucket, interval, indices, query):
    """Metric of FIELD per time interval of --bucket."""
    client = _client(ctx, entity)
    _run(
        client.temporal_histogram,
        field,
        operator,
        _query(query),
        entity,
        bucket,
        interval,
        indices=list(indices),
    )


if __name__ == "__main__":
    cli()
