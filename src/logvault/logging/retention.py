"""
TTL index provisioning for the log collection.

MongoDB treats `createIndex` with an identical key pattern and options as a
no-op, so provisioning on every start is safe. A changed retention period
conflicts with the existing index (IndexOptionsConflict); the index has to be
dropped out of band in that case.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pymongo import ASCENDING

SECONDS_PER_DAY = 86400
TIMESTAMP_FIELD = "timestamp"


@dataclass(frozen=True)
class RetentionIndexSpec:
    field: str
    expire_after_seconds: int

    @property
    def keys(self) -> list[tuple[str, int]]:
        return [(self.field, ASCENDING)]

    @property
    def name(self) -> str:
        return f"{self.field}_{ASCENDING}"


def retention_index_spec(retention_days: int) -> RetentionIndexSpec:
    if retention_days < 0:
        raise ValueError(f"retention_days must be >= 0, got {retention_days}")
    return RetentionIndexSpec(field=TIMESTAMP_FIELD, expire_after_seconds=retention_days * SECONDS_PER_DAY)


def ensure_retention_index(collection: Any, spec: RetentionIndexSpec) -> str:
    """Create the TTL index if missing. Returns the index name.

    Driver errors propagate; the caller decides how fatal they are.
    """
    return collection.create_index(
        spec.keys,
        name=spec.name,
        expireAfterSeconds=spec.expire_after_seconds,
    )
