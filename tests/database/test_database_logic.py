"""Tests for the Elasticsearch database logic."""

from unittest import mock

import pytest

from elasticsearch import exceptions  # type: ignore
from es_aggs.aggregation import AggregationTranslator
from es_aggs.config import ElasticsearchSettings
from es_aggs.database_logic import DatabaseLogic
from es_aggs.exceptions import EngineCommunicationError
from es_aggs.models import AggregationSpec


@pytest.fixture
def es_client():
    client = mock.Mock()
    client.search.return_value = {"aggregations": {"agg": {"value": 1.0}}}
    return client


@pytest.fixture
def search():
    return AggregationTranslator().translate(AggregationSpec("premium", "sum"))


def test_execute_aggregation(es_client, search):
    database = DatabaseLogic(settings=ElasticsearchSettings(), client=es_client)
    response = database.execute_aggregation(search, ["policy_a", "policy_b"])

    assert response == {"aggregations": {"agg": {"value": 1.0}}}
    es_client.search.assert_called_once_with(
        index="policy_a,policy_b",
        ignore_unavailable=True,
        body={"size": 0, "aggs": {"agg": {"sum": {"field": "premium"}}}},
    )


def test_ignore_unavailable_from_settings(monkeypatch, es_client, search):
    monkeypatch.setenv("ES_AGGS_IGNORE_UNAVAILABLE", "false")
    database = DatabaseLogic(settings=ElasticsearchSettings(), client=es_client)
    database.execute_aggregation(search, ["policy"])
    assert es_client.search.call_args.kwargs["ignore_unavailable"] is False


def test_response_body_unwrapped(es_client, search):
    es_client.search.return_value = mock.Mock(body={"aggregations": {}})
    database = DatabaseLogic(settings=ElasticsearchSettings(), client=es_client)
    assert database.execute_aggregation(search, ["policy"]) == {"aggregations": {}}


def test_transport_error_wrapped(es_client, search):
    error = exceptions.ConnectionError("connection refused")
    es_client.search.side_effect = error
    database = DatabaseLogic(settings=ElasticsearchSettings(), client=es_client)

    with pytest.raises(EngineCommunicationError) as exc_info:
        database.execute_aggregation(search, ["policy"])

    assert exc_info.value.cause is error
    assert exc_info.value.__cause__ is error
    assert "policy" in str(exc_info.value)


def test_other_errors_not_wrapped(es_client, search):
    es_client.search.side_effect = RuntimeError("bug")
    database = DatabaseLogic(settings=ElasticsearchSettings(), client=es_client)
    with pytest.raises(RuntimeError):
        database.execute_aggregation(search, ["policy"])


def test_client_created_from_settings():
    settings = mock.Mock(spec=ElasticsearchSettings)
    settings.create_client = mock.sentinel.client
    assert DatabaseLogic(settings=settings).client is mock.sentinel.client


def test_close(es_client):
    DatabaseLogic(settings=ElasticsearchSettings(), client=es_client).close()
    es_client.close.assert_called_once_with()
