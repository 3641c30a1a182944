# tests/test_task_store.py

from __future__ import annotations

import pytest

from flowdo.reminders.settings_store import LocalKeyValueStore
from flowdo.tasks.task_store import TaskListStore


def test_add_prepends_and_persists(kv: LocalKeyValueStore) -> None:
    store = TaskListStore(kv)
    first = store.add_task("Buy milk")
    second = store.add_task("  Pay rent  ", due_date="2026-10-16", important=True)

    assert [t.title for t in store.list_tasks()] == ["Pay rent", "Buy milk"]
    assert second.due_date == "2026-10-16" and second.important
    assert first.id != second.id

    # Same file, fresh store.
    assert TaskListStore(LocalKeyValueStore(kv.path)).list_tasks() == store.list_tasks()


def test_add_requires_title(kv: LocalKeyValueStore) -> None:
    with pytest.raises(ValueError):
        TaskListStore(kv).add_task("   ")


def test_complete_task_once(kv: LocalKeyValueStore) -> None:
    store = TaskListStore(kv)
    task = store.add_task("Stretch")

    assert store.complete_task(task.id) is True
    assert store.list_tasks()[0].completed
    assert store.complete_task(task.id) is False
    assert store.complete_task("missing") is False


def test_malformed_list_reads_empty(kv: LocalKeyValueStore) -> None:
    kv.set("flowdo-tasks", {"not": "a list"})
    assert TaskListStore(kv).list_tasks() == []
