"""Client and aggregation configuration."""

import os
import ssl
from typing import Any, Dict

import certifi
from elasticsearch import Elasticsearch  # type: ignore[attr-defined]
from pydantic_settings import BaseSettings, SettingsConfigDict

from es_aggs.base_settings import ApiBaseSettings
from es_aggs.models import IndexMetadata
from es_aggs.utilities import get_bool_env, get_json_env

INDEX_METADATA_ENV = "ES_AGGS_INDEX_METADATA"


def _es_config() -> Dict[str, Any]:
    # Determine the scheme (http or https)
    use_ssl = get_bool_env("ES_USE_SSL", default=True)
    scheme = "https" if use_ssl else "http"

    es_hosts = os.getenv("ES_HOST", "localhost").strip()
    es_port = os.getenv("ES_PORT", "9200")

    if not es_hosts:
        raise ValueError("ES_HOST environment variable is empty or invalid.")

    hosts = [f"{scheme}://{host.strip()}:{es_port}" for host in es_hosts.split(",")]

    headers = {"accept": "application/vnd.elasticsearch+json; compatible-with=8"}
    if api_key := os.getenv("ES_API_KEY"):
        headers["x-api-key"] = api_key

    config: Dict[str, Any] = {"hosts": hosts, "headers": headers}

    if get_bool_env("ES_HTTP_COMPRESS", default=True):
        config["http_compress"] = True

    if (u := os.getenv("ES_USER")) and (p := os.getenv("ES_PASS")):
        config["basic_auth"] = (u, p)

    if request_timeout := os.getenv("ES_TIMEOUT"):
        config["request_timeout"] = float(request_timeout)

    # Explicitly exclude SSL settings when not using SSL
    if not use_ssl:
        return config

    config["ssl_version"] = ssl.TLSVersion.TLSv1_3
    config["verify_certs"] = get_bool_env("ES_VERIFY_CERTS", default=True)

    # Include CA Certificates if verifying certs
    if config["verify_certs"]:
        config["ca_certs"] = os.getenv("CURL_CA_BUNDLE", certifi.where())

    return config


class ElasticsearchSettings(BaseSettings, ApiBaseSettings):
    """
    Aggregation settings.

    `bucket_size` is the terms aggregation size, large enough by default that grouped
    results cover every bucket. `ignore_unavailable` skips missing target indices.
    """

    model_config = SettingsConfigDict(env_prefix="ES_AGGS_", extra="ignore")

    bucket_size: int = 10000
    ignore_unavailable: bool = True

    @property
    def index_metadata(self) -> Dict[str, IndexMetadata]:
        """
        Entity registrations read from the ES_AGGS_INDEX_METADATA environment variable.

        Returns:
            Dict[str, IndexMetadata]: Metadata keyed by entity name.
        """
        return {
            name: IndexMetadata.from_dict(data)
            for name, data in get_json_env(INDEX_METADATA_ENV).items()
        }

    @property
    def create_client(self):
        """Create es client."""
        return Elasticsearch(**_es_config())
