import threading
from typing import Dict, Optional, Protocol
from .models import TaskState

class TaskStore(Protocol):
    def get(self, task_id: str) -> Optional[TaskState]:
        ...

    def set(self, task_id: str, state: TaskState) -> None:
        ...

    def delete(self, task_id: str) -> None:
        ...

class InMemoryTaskStore:
    """Process-lifetime task table. Last write wins; nothing survives a restart."""

    def __init__(self):
        self._states: Dict[str, TaskState] = {}
        self._lock = threading.Lock()

    def get(self, task_id: str) -> Optional[TaskState]:
        with self._lock:
            return self._states.get(task_id)

    def set(self, task_id: str, state: TaskState) -> None:
        with self._lock:
            self._states[task_id] = state

    def delete(self, task_id: str) -> None:
        with self._lock:
            self._states.pop(task_id, None)

    def __len__(self):
        with self._lock:
            return len(self._states)
