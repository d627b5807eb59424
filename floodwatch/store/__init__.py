"""Cloud store interface and backends."""

from .base import (
    CURRENT_STATE_PATH,
    HISTORY_PATH,
    MINUTE_DATA_PATH,
    SYSTEM_LOGS_PATH,
    CloudStore,
    history_path,
    minute_data_path,
    system_log_path,
)
from .config import StoreConfig, create_store
from .memory import MemoryStore

__all__ = [
    "CURRENT_STATE_PATH",
    "HISTORY_PATH",
    "MINUTE_DATA_PATH",
    "SYSTEM_LOGS_PATH",
    "CloudStore",
    "MemoryStore",
    "StoreConfig",
    "create_store",
    "history_path",
    "minute_data_path",
    "system_log_path",
]
