"""Name-to-factory registry for source and destination adapters.

Adapter modules register themselves when imported:

    register_source("grafana", GrafanaSource)

All registration happens at import time, before the HTTP server starts, so
lookups afterwards need no locking.
"""

import logging
from typing import Callable, Dict, List

from webhook_gateway.errors import UnknownTypeError
from webhook_gateway.gateway import Destination, Source

log = logging.getLogger(__name__)

SourceFactory = Callable[[], Source]
DestinationFactory = Callable[[], Destination]


class Registry:
    """Mapping of type names to source and destination factories."""

    def __init__(self):
        self.sources: Dict[str, SourceFactory] = {}
        self.destinations: Dict[str, DestinationFactory] = {}

    def register_source(self, name: str, factory: SourceFactory) -> None:
        """Register a source factory under the given name. A later registration wins."""
        if not name:
            raise ValueError("source name is required")
        if not callable(factory):
            raise ValueError("Source factory must be callable")
        if name in self.sources:
            log.warning(f"[Registry] Source type '{name}' registered twice, replacing previous factory")
        self.sources[name] = factory

    def register_destination(self, name: str, factory: DestinationFactory) -> None:
        """Register a destination factory under the given name. A later registration wins."""
        if not name:
            raise ValueError("destination name is required")
        if not callable(factory):
            raise ValueError("Destination factory must be callable")
        if name in self.destinations:
            log.warning(f"[Registry] Destination type '{name}' registered twice, replacing previous factory")
        self.destinations[name] = factory

    def new_source(self, name: str) -> Source:
        """Instantiate the source registered under the given name."""
        factory = self.sources.get(name)
        if factory is None:
            raise UnknownTypeError(name, "source")
        return factory()

    def new_destination(self, name: str) -> Destination:
        """Instantiate the destination registered under the given name."""
        factory = self.destinations.get(name)
        if factory is None:
            raise UnknownTypeError(name, "destination")
        return factory()

    def source_types(self) -> List[str]:
        return sorted(self.sources)

    def destination_types(self) -> List[str]:
        return sorted(self.destinations)


default_registry = Registry()

register_source = default_registry.register_source
register_destination = default_registry.register_destination
new_source = default_registry.new_source
new_destination = default_registry.new_destination
source_types = default_registry.source_types
destination_types = default_registry.destination_types
