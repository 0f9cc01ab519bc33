"""
Key-value store interface.

Configuration, cached suggestions, activity and analytics all live in one
namespace of string keys with JSON values. Keys are colon-separated so that
history can be listed with a prefix query (e.g. ``activity:PROJ-1:``).
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

CONFIG_KEY = "app-configuration"
TRIAGE_COUNTERS_KEY = "triage-analytics-counters"


def suggestions_key(issue_key: str) -> str:
    return f"suggestions:{issue_key}"


def activity_key(issue_key: str, timestamp_ms: int) -> str:
    return f"activity:{issue_key}:{timestamp_ms}"


def triage_activity_key(issue_key: str, timestamp_ms: int) -> str:
    return f"triage-activity:{issue_key}:{timestamp_ms}"


def user_action_key(issue_key: str, action: str, timestamp_ms: int) -> str:
    return f"user_action:{issue_key}:{action}:{timestamp_ms}"


def feedback_key(issue_key: str, suggestion_type: str, timestamp_ms: int) -> str:
    return f"feedback:{issue_key}:{suggestion_type}:{timestamp_ms}"


class KeyValueStore(ABC):
    """Minimal persistent map used by every stateful component."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Create or overwrite a value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    @abstractmethod
    def query(self, prefix: str, limit: int = 100, offset: int = 0) -> List[Tuple[str, Any]]:
        """Return up to ``limit`` (key, value) pairs whose key starts with ``prefix``, newest key first, skipping ``offset``."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for local runs (KV_BACKEND=memory) and tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def query(self, prefix: str, limit: int = 100, offset: int = 0) -> List[Tuple[str, Any]]:
        with self._lock:
            keys = sorted((k for k in self._data if k.startswith(prefix)), reverse=True)
            return [(k, copy.deepcopy(self._data[k])) for k in keys[offset:offset + limit]]

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)
