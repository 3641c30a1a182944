# src/flowdo/tasks/task_store.py

from __future__ import annotations

"""
Task list persisted in the local key-value store.

The full task-list UI lives elsewhere; this is the minimal collaborator the
reminder needs: read the list, plus add/complete so the console has data.
"""

import logging
import uuid
from dataclasses import replace

from ..core.ports import TaskSource
from ..reminders.models import TASKS_KEY, Task
from ..reminders.settings_store import LocalKeyValueStore

logger = logging.getLogger(__name__)


class TaskListStore(TaskSource):
    def __init__(self, kv: LocalKeyValueStore, key: str = TASKS_KEY) -> None:
        self._kv = kv
        self._key = key

    def list_tasks(self) -> list[Task]:
        try:
            raw = self._kv.get(self._key, [])
        except Exception:
            logger.exception("Task list read failed; using empty list.")
            return []
        if not isinstance(raw, list):
            return []
        return [Task.from_dict(r) for r in raw if isinstance(r, dict)]

    def add_task(self, title: str, *, due_date: str = "", important: bool = False) -> Task:
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")
        task = Task(id=uuid.uuid4().hex[:10], title=title, due_date=due_date, important=important)
        self._save([task, *self.list_tasks()])
        logger.debug("Task added id=%s due=%s important=%s", task.id, due_date, important)
        return task

    def complete_task(self, task_id: str) -> bool:
        tasks = self.list_tasks()
        found = False
        out: list[Task] = []
        for t in tasks:
            if t.id == task_id and not t.completed:
                t = replace(t, completed=True)
                found = True
            out.append(t)
        if found:
            self._save(out)
        return found

    def _save(self, tasks: list[Task]) -> None:
        self._kv.set(self._key, [t.to_dict() for t in tasks])
