"""
Base collector interface.

A collector runs one collection cycle at a time and pushes whatever it
gathered into an Accumulator. Output modes only talk to this interface,
so they don't care which agent protocol is behind it.
"""

from abc import ABC, abstractmethod

from jolt.accumulator import Accumulator


class MetricsCollector(ABC):
    """Interface for all metrics sources."""

    @abstractmethod
    def gather(self, acc: Accumulator) -> int:
        """Run one cycle. Returns how many records were emitted."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this source."""
        ...
