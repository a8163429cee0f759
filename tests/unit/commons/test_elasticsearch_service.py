"""Unit tests for the Elasticsearch client factory."""

from unittest.mock import patch

from budinfra.shared import elasticsearch_service
from budinfra.shared.elasticsearch_service import create_elasticsearch_client


class TestCreateElasticsearchClient:
    """Test cases for create_elasticsearch_client."""

    def test_basic_auth(self):
        with patch.object(elasticsearch_service, "AsyncElasticsearch") as es_cls:
            create_elasticsearch_client(hosts=["http://es:9200"], username="elastic", password="secret", api_key="")

        kwargs = es_cls.call_args.kwargs
        assert kwargs["hosts"] == ["http://es:9200"]
        assert kwargs["basic_auth"] == ("elastic", "secret")
        assert "api_key" not in kwargs

    def test_api_key_wins(self):
        with patch.object(elasticsearch_service, "AsyncElasticsearch") as es_cls:
            create_elasticsearch_client(hosts=["http://es:9200"], username="elastic", password="secret", api_key="k")

        kwargs = es_cls.call_args.kwargs
        assert kwargs["api_key"] == "k"
        assert "basic_auth" not in kwargs

    def test_settings_fallback(self):
        with patch.object(elasticsearch_service, "AsyncElasticsearch") as es_cls, patch.object(
            elasticsearch_service, "secrets_settings"
        ) as secrets:
            secrets.elasticsearch_api_key = None
            secrets.elasticsearch_username = None
            create_elasticsearch_client()

        kwargs = es_cls.call_args.kwargs
        assert kwargs["hosts"] == elasticsearch_service.app_settings.elasticsearch_hosts
        assert kwargs["request_timeout"] == elasticsearch_service.app_settings.elasticsearch_request_timeout
        assert "basic_auth" not in kwargs
