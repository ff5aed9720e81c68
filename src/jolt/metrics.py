"""
Core data model for jolt.

A ServerDescriptor is one Jolokia agent parsed from a connection string,
a MetricDefinition is one configured read, and a FlattenedRecord is what
gets emitted for a metric on a server during a single collection cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class MetricDefinition:
    """A configured read against one MBean attribute."""

    name: str
    mbean: str
    attribute: str = ""
    path: str = ""

    # "HostName[@AppName]" entries, empty means every server
    server_scope: Tuple[str, ...] = ()

    # Applied on top of the server tags at emission time
    tags: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class ServerDescriptor:
    """One Jolokia agent. Only its metric list changes after parsing."""

    host_name: str
    app_name: str
    address: str
    user_name: str = ""
    password: str = ""

    # Routing table entry, filled in by the router
    metrics: List[MetricDefinition] = field(default_factory=list, compare=False, hash=False, repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.user_name or self.password)

    def tags(self) -> Dict[str, str]:
        return {
            "HostName": self.host_name,
            "AppName": self.app_name,
            "URI": self.address,
        }


@dataclass
class FlattenedRecord:
    """A single emitted measurement."""

    measurement: str
    fields: Dict[str, Any]
    tags: Dict[str, str]
    timestamp: Optional[datetime] = None

    def summary(self) -> dict:
        """Return a plain dict for display or JSON output."""
        return {
            "measurement": self.measurement,
            "fields": dict(self.fields),
            "tags": dict(self.tags),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
