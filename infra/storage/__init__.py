"""Storage subsystem: record schemas, RecordStore, JsonRecordStore, Library, MetricsManager"""

from infra.storage.metrics import MetricsManager
from infra.storage.record_store import RecordStore
from infra.storage.json_store import JsonRecordStore
from infra.storage.library import Library

__all__ = [
    "MetricsManager",
    "RecordStore",
    "JsonRecordStore",
    "Library",
]
