"""Tests for configuration loading and binding."""

import pytest

from webhook_gateway.config import (
    AdapterSection,
    build_service,
    load_config,
    parse_adapter_config,
)
from webhook_gateway.destinations.webhook import WebhookConfig, WebhookDestination
from webhook_gateway.errors import ConfigurationError, UnknownTypeError
from webhook_gateway.registry import Registry
from webhook_gateway.server import HTTPServer
from webhook_gateway.sources.cloudflare import CloudflareSource
from webhook_gateway.sources.grafana import GrafanaSource


TOML_CONFIG = """
[http]
host = "127.0.0.1"
port = 9000
shutdown-timeout = 5

[[gateway]]
path = "POST /alerts"
secret = "1234"
source.type = "grafana"
source.grafana.template = "[$status] $title"
destination.type = "webhook"
destination.webhook.url = "https://chat.example.com/hooks/abc"

[[gateway]]
secret = "cf-secret"
source.type = "cloudflare-notifications"
destination.type = "webhook"
destination.webhook.url = "https://chat.example.com/hooks/def"
destination.webhook.field = "text"
"""

YAML_CONFIG = """
http:
  port: 9001
gateway:
  - path: /alerts
    source:
      type: grafana
    destination:
      type: webhook
      webhook:
        url: https://chat.example.com/hooks/abc
"""


@pytest.fixture
def registry():
    registry = Registry()
    registry.register_source("grafana", GrafanaSource)
    registry.register_source("cloudflare-notifications", CloudflareSource)
    registry.register_destination("webhook", WebhookDestination)
    return registry


class TestLoadConfig:

    def test_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(TOML_CONFIG)

        data = load_config(path)

        assert data["http"]["port"] == 9000
        assert data["gateway"][0]["source"] == {"type": "grafana", "grafana": {"template": "[$status] $title"}}

    @pytest.mark.parametrize("name", ["config.yaml", "config.yml"])
    def test_yaml(self, tmp_path, name):
        path = tmp_path / name
        path.write_text(YAML_CONFIG)

        data = load_config(str(path))

        assert data["http"] == {"port": 9001}
        assert data["gateway"][0]["destination"]["webhook"]["url"] == "https://chat.example.com/hooks/abc"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == {}

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{}")

        with pytest.raises(ConfigurationError, match="unsupported configuration format '.json'"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="failed reading configuration file"):
            load_config(tmp_path / "missing.toml")

    def test_malformed_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[http\nport = ")

        with pytest.raises(ConfigurationError, match="failed parsing configuration file"):
            load_config(path)

    def test_yaml_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigurationError, match="must contain a table"):
            load_config(path)


class TestAdapterSection:

    def test_options(self):
        section = AdapterSection.model_validate({"type": "webhook", "webhook": {"url": "https://x"}})

        assert section.options() == {"url": "https://x"}

    def test_options_missing(self):
        assert AdapterSection.model_validate({"type": "cloudflare-notifications"}).options() == {}

    def test_options_for_other_type_rejected(self):
        section = AdapterSection.model_validate({"type": "webhook", "slack": {"token": "x"}})

        with pytest.raises(ConfigurationError, match=r"unexpected keys \['slack'\]"):
            section.options()

    def test_options_must_be_table(self):
        section = AdapterSection.model_validate({"type": "grafana", "grafana": "oops"})

        with pytest.raises(ConfigurationError, match="must be a table"):
            section.options()


class TestParseAdapterConfig:

    def test_valid(self):
        conf = parse_adapter_config(WebhookConfig, {"url": "https://chat.example.com/x"}, "destination", "webhook")

        assert conf.field == "content"

    def test_none_data(self):
        with pytest.raises(ConfigurationError, match="url"):
            parse_adapter_config(WebhookConfig, None, "destination", "webhook")


class TestBuildService:

    def test_builds_gateways(self, registry, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(TOML_CONFIG)

        service = build_service(load_config(path), registry, log_level="debug")

        assert isinstance(service.handler, HTTPServer)
        assert service.handler.host == "127.0.0.1"
        assert service.handler.port == 9000
        assert service.handler.shutdown_timeout == 5
        assert service.handler.log_level == "debug"

        grafana, cloudflare = service.gateways
        assert grafana.path == "POST /alerts"
        assert grafana.secret == "1234"
        assert isinstance(grafana.source, GrafanaSource)
        assert grafana.source.template.template == "[$status] $title"
        assert grafana.destination.url == "https://chat.example.com/hooks/abc"

        assert cloudflare.path == ""
        assert isinstance(cloudflare.source, CloudflareSource)
        assert cloudflare.destination.field == "text"

    def test_http_defaults(self, registry):
        service = build_service({"gateway": []}, registry)

        assert service.handler.host == "0.0.0.0"
        assert service.handler.port == 8080
        assert service.gateways == []

    def test_port_as_string(self, registry):
        service = build_service({"http": {"port": "9090"}}, registry)

        assert service.handler.port == 9090

    @pytest.mark.parametrize("data,message", [
        ({"http": {"port": 70000}}, "http.port"),
        ({"http": {"listen": ":8080"}}, "http.listen"),
        ({"gateways": []}, "gateways"),
        ({"gateway": [{"path": "/a", "name": "a"}]}, "gateway.0.name"),
        ({"gateway": [{"path": "/a", "source": {}}]}, "gateway.0.source.type"),
    ])
    def test_invalid_tree(self, registry, data, message):
        with pytest.raises(ConfigurationError, match="invalid configuration") as exc_info:
            build_service(data, registry)

        assert message in str(exc_info.value)

    def test_unknown_source_type(self, registry):
        data = {"gateway": [{"path": "/a", "source": {"type": "unknown-vendor"}}]}

        with pytest.raises(UnknownTypeError) as exc_info:
            build_service(data, registry)

        assert exc_info.value.type_name == "unknown-vendor"

    def test_unknown_destination_type(self, registry):
        data = {"gateway": [{"path": "/a", "destination": {"type": "fax"}}]}

        with pytest.raises(UnknownTypeError, match="unknown destination type 'fax'"):
            build_service(data, registry)

    def test_adapter_configuration_error(self, registry):
        data = {"gateway": [{
            "path": "/a",
            "source": {"type": "grafana", "grafana": {"template": "$bogus"}},
        }]}

        with pytest.raises(ConfigurationError, match="unknown fields"):
            build_service(data, registry)

    def test_missing_adapters_left_for_init(self, registry):
        service = build_service({"gateway": [{"path": "/a"}]}, registry)

        assert service.gateways[0].source is None
        assert service.gateways[0].destination is None
