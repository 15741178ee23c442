"""Binding of configuration trees onto Service, Gateway and adapter instances.

The configuration tree has the shape:

    [http]
    host = "0.0.0.0"
    port = 8080

    [[gateway]]
    path = "POST /alerts"
    secret = "1234"
    source.type = "grafana"
    source.grafana.template = "Alert: $title"
    destination.type = "webhook"
    destination.webhook.url = "https://chat.example.com/hooks/abc"

Every section is validated with a pydantic model, and unknown keys are
rejected. Each adapter validates its own sub-tree in its configure() hook,
usually through parse_adapter_config().
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from webhook_gateway.errors import ConfigurationError
from webhook_gateway.gateway import Destination, Gateway, Source
from webhook_gateway.registry import Registry, default_registry
from webhook_gateway.server import HTTPServer
from webhook_gateway.service import Service

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class HTTPConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=0, le=65535)
    shutdown_timeout: Optional[float] = Field(default=None, alias="shutdown-timeout", ge=0)


class AdapterSection(BaseModel):
    """A source or destination section: a "type" discriminator plus that type's sub-tree."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)

    def options(self) -> Dict[str, Any]:
        extra = dict(self.model_extra or {})
        unexpected = sorted(key for key in extra if key != self.type)
        if unexpected:
            raise ConfigurationError(
                f"unexpected keys {unexpected} in '{self.type}' section, "
                f"adapter settings belong under '{self.type}'"
            )

        options = extra.get(self.type, {})
        if options is None:
            return {}
        if not isinstance(options, dict):
            raise ConfigurationError(f"configuration for '{self.type}' must be a table")
        return options


class GatewayConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = ""
    secret: str = ""
    source: Optional[AdapterSection] = None
    destination: Optional[AdapterSection] = None


class ServiceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    http: HTTPConfig = Field(default_factory=HTTPConfig)
    gateway: List[GatewayConfig] = Field(default_factory=list)


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_adapter_config(model: Type[ModelT], data: Optional[Dict[str, Any]], kind: str, name: str) -> ModelT:
    """
    Validate an adapter's configuration sub-tree against a pydantic model.

    Args:
        model: pydantic model describing the adapter's settings
        data: Raw configuration sub-tree (may be None or empty)
        kind: "source" or "destination", used in error messages
        name: Adapter type name, used in error messages

    Raises:
        ConfigurationError: if the sub-tree doesn't match the model
    """
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(f"failed parsing configuration for {kind} '{name}': {_describe(e)}") from e


def load_config(path) -> Dict[str, Any]:
    """
    Read a configuration file into a plain dict.

    TOML is used for ".toml" files, YAML for ".yaml" and ".yml".
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        if suffix == ".toml":
            with path.open("rb") as f:
                data = tomllib.load(f)
        elif suffix in (".yaml", ".yml"):
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            raise ConfigurationError(f"unsupported configuration format '{suffix}' for {path}")
    except OSError as e:
        raise ConfigurationError(f"failed reading configuration file {path}: {e}") from e
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed parsing configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"configuration file {path} must contain a table at the top level")

    log.debug(f"[Config] Loaded configuration from {path}")
    return data


def build_source(section: AdapterSection, registry: Registry = default_registry) -> Source:
    source = registry.new_source(section.type)
    source.configure(section.options())
    return source


def build_destination(section: AdapterSection, registry: Registry = default_registry) -> Destination:
    destination = registry.new_destination(section.type)
    destination.configure(section.options())
    return destination


def build_gateway(conf: GatewayConfig, registry: Registry = default_registry) -> Gateway:
    """Build a Gateway and its adapters from a validated gateway section."""
    source = build_source(conf.source, registry) if conf.source is not None else None
    destination = build_destination(conf.destination, registry) if conf.destination is not None else None
    return Gateway(path=conf.path, secret=conf.secret, source=source, destination=destination)


def build_service(
    data: Dict[str, Any],
    registry: Registry = default_registry,
    log_level: str = "info",
) -> Service:
    """
    Build a Service, its HTTP transport and all gateways from a configuration tree.

    Raises:
        ConfigurationError: if the tree is malformed
        UnknownTypeError: if a source or destination type isn't registered
    """
    try:
        conf = ServiceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {_describe(e)}") from e

    server = HTTPServer(
        host=conf.http.host,
        port=conf.http.port,
        shutdown_timeout=conf.http.shutdown_timeout,
        log_level=log_level,
    )

    service = Service(handler=server)
    for index, gateway_conf in enumerate(conf.gateway):
        try:
            service.add_gateway(build_gateway(gateway_conf, registry))
        except ConfigurationError as e:
            log.error(f"[Config] Invalid gateway #{index}: {e}")
            raise

    log.info(f"[Config] Configured {len(service.gateways)} gateway(s)")
    return service
