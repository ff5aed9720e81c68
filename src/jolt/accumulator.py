"""
Metrics-pipeline sink.

The collector never raises for a failed server or metric. It hands
records and errors to an Accumulator and keeps going.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from jolt.metrics import FlattenedRecord

log = logging.getLogger(__name__)


class Accumulator(ABC):
    """Interface for anything that receives emitted records."""

    @abstractmethod
    def add_fields(self, measurement: str, fields: Dict[str, Any], tags: Dict[str, str]) -> None:
        ...

    @abstractmethod
    def add_error(self, err: Exception) -> None:
        ...


class MemoryAccumulator(Accumulator):
    """Keeps records and errors in memory until drained. Append only."""

    def __init__(self):
        self._lock = threading.Lock()
        self.records: List[FlattenedRecord] = []
        self.errors: List[Exception] = []

    def add_fields(self, measurement: str, fields: Dict[str, Any], tags: Dict[str, str]) -> None:
        record = FlattenedRecord(
            measurement=measurement,
            fields=dict(fields),
            tags=dict(tags),
            timestamp=datetime.now(timezone.utc),
        )
        with self._lock:
            self.records.append(record)

    def add_error(self, err: Exception) -> None:
        log.warning("%s: %s", type(err).__name__, err)
        with self._lock:
            self.errors.append(err)

    def drain(self) -> Tuple[List[FlattenedRecord], List[Exception]]:
        """Hand over everything collected so far and start empty."""
        with self._lock:
            records, errors = self.records, self.errors
            self.records, self.errors = [], []
        return records, errors

    def find(self, measurement: str) -> List[FlattenedRecord]:
        with self._lock:
            return [r for r in self.records if r.measurement == measurement]
