"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

API_KEY_MARKER = 'apikey='


class EndpointStatus(str, Enum):
    """Operational status advertised for a registered endpoint"""

    ACTIVE = 'Active'
    MAINTENANCE = 'Maintenance'
    BETA = 'Beta'
    ERROR = 'Error'

    @classmethod
    def parse(cls, value: Any) -> 'EndpointStatus':
        """Exact-match a configured value; anything unknown becomes Active."""
        for member in cls:
            if value == member.value:
                return member
        return cls.ACTIVE


def base_path(path: str) -> str:
    return (path or '').split('?', 1)[0]


@dataclass(frozen=True)
class EndpointDefinition:
    path: str
    requires_key: bool
    status: EndpointStatus = EndpointStatus.ACTIVE
    category: str | None = None
    name: str | None = None

    @classmethod
    def from_template(
        cls,
        template: str,
        status: Any = None,
        category: str | None = None,
        name: str | None = None,
    ) -> 'EndpointDefinition':
        """Build a definition from a configured path template such as
        ``/api/search?q=&apikey=``. Gating is decided here, once.
        """
        return cls(
            path=base_path(template),
            requires_key=API_KEY_MARKER in (template or ''),
            status=EndpointStatus.parse(status),
            category=category,
            name=name,
        )


Handler = Callable[..., Awaitable[Any]]


@dataclass
class RouteEntry:
    """Explicit registration of a handler with the gateway.

    The entry both mounts ``handler`` on the application and adds an
    EndpointDefinition to the registry so the admission pipeline sees it.
    """

    path: str
    handler: Handler
    requires_key: bool = False
    status: EndpointStatus = EndpointStatus.ACTIVE
    methods: Sequence[str] = field(default_factory=lambda: ('GET',))
    category: str | None = None
    name: str | None = None

    def to_definition(self) -> EndpointDefinition:
        return EndpointDefinition(
            path=base_path(self.path),
            requires_key=self.requires_key,
            status=EndpointStatus.parse(getattr(self.status, 'value', self.status)),
            category=self.category,
            name=self.name,
        )
