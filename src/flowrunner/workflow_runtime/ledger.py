"""
Execution Ledger - Bounded per-workflow history of completed runs.

Each workflow gets a ring buffer of `capacity` runs; the oldest run is
dropped when a new one arrives. `count` keeps growing after the buffer
wraps. Reads return copies, newest first.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional


logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


class ExecutionLedger:
    """
    In-memory execution history.

    Usage:
        ledger = ExecutionLedger(capacity=50)
        ledger.append("wf1", run)
        ledger.recent("wf1", limit=5)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("Ledger capacity must be greater than 0")
        self.capacity = capacity
        self._runs: Dict[str, Deque[Any]] = {}
        self._counts: Dict[str, int] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, workflow_id: str) -> threading.Lock:
        with self._guard:
            if workflow_id not in self._locks:
                self._locks[workflow_id] = threading.Lock()
                self._runs[workflow_id] = deque(maxlen=self.capacity)
                self._counts[workflow_id] = 0
            return self._locks[workflow_id]

    def append(self, workflow_id: str, run: Any) -> None:
        """Record a completed run."""
        with self._lock_for(workflow_id):
            self._runs[workflow_id].append(run)
            self._counts[workflow_id] += 1

    def recent(self, workflow_id: str, limit: int = 5) -> List[Any]:
        """Up to `limit` most recent runs, newest first."""
        if limit <= 0 or workflow_id not in self._locks:
            return []
        with self._lock_for(workflow_id):
            runs = list(self._runs[workflow_id])
        return copy.deepcopy(runs[::-1][:limit])

    def latest(self, workflow_id: str) -> Optional[Any]:
        """Most recent run, or None."""
        runs = self.recent(workflow_id, limit=1)
        return runs[0] if runs else None

    def count(self, workflow_id: str) -> int:
        """Total runs ever appended for the workflow."""
        if workflow_id not in self._locks:
            return 0
        with self._lock_for(workflow_id):
            return self._counts[workflow_id]

    def clear(self, workflow_id: str) -> None:
        """Forget the workflow's history and count."""
        with self._guard:
            self._locks.pop(workflow_id, None)
            self._runs.pop(workflow_id, None)
            self._counts.pop(workflow_id, None)
        logger.debug(f"Cleared history for workflow {workflow_id}")


__all__ = [
    "DEFAULT_CAPACITY",
    "ExecutionLedger",
]
