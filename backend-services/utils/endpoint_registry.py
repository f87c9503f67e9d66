"""
Endpoint registry.

Maps a request path to its EndpointDefinition. Definitions are immutable; the
status map is a separate dict that is replaced wholesale on every write so
readers never observe a partially updated map.
"""

import logging
from collections.abc import Iterable

from models.endpoint_models import EndpointDefinition, EndpointStatus, base_path

logger = logging.getLogger('turnstile.gateway')


class EndpointRegistry:
    def __init__(self, definitions: Iterable[EndpointDefinition] = ()):
        self._definitions: dict[str, EndpointDefinition] = {}
        self._status: dict[str, EndpointStatus] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: EndpointDefinition) -> EndpointDefinition:
        """Add a definition. A duplicate path keeps the first registration."""
        existing = self._definitions.get(definition.path)
        if existing is not None:
            logger.warning(f'Duplicate endpoint path {definition.path} ignored; first definition wins')
            return existing
        self._definitions = {**self._definitions, definition.path: definition}
        self._status = {**self._status, definition.path: definition.status}
        return definition

    def resolve(self, path: str) -> EndpointDefinition | None:
        return self._definitions.get(base_path(path))

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self):
        return iter(tuple(self._definitions.values()))

    def status_of(self, path: str) -> EndpointStatus | None:
        return self._status.get(base_path(path))

    def status_map(self) -> dict[str, str]:
        return {path: status.value for path, status in self._status.items()}

    def set_status(self, path: str, status: EndpointStatus) -> bool:
        key = base_path(path)
        if key not in self._definitions:
            return False
        self._status = {**self._status, key: status}
        return True

    def mark_error(self, path: str) -> bool:
        marked = self.set_status(path, EndpointStatus.ERROR)
        if marked:
            logger.warning(f'Endpoint {base_path(path)} marked as {EndpointStatus.ERROR.value}')
        return marked
