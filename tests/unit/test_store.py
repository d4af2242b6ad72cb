"""Unit tests for the JSON task store."""

import json

import pytest

from taskforge.decomposition.fallback import FallbackSynthesizer
from taskforge.decomposition.models import Subtask, TaskStatus
from taskforge.decomposition.store import TaskStore, TaskStoreError


@pytest.fixture
def store(tmp_path) -> TaskStore:
    return TaskStore(tmp_path / "tasks" / "tasks.json")


@pytest.fixture
def saved_store(store) -> TaskStore:
    store.save_batch(FallbackSynthesizer().tasks(3, source_document="prd.txt"))
    return store


def subtasks(parent: int, ids: list[int]) -> list[Subtask]:
    return [Subtask(id=i, title=f"Step {i}", parent_task_id=parent) for i in ids]


class TestTaskStore:
    """Tests for TaskStore."""

    def test_save_batch_writes_json(self, saved_store):
        """Test the stored file shape."""
        raw = saved_store.path.read_text(encoding="utf-8")
        data = json.loads(raw)

        assert [t["id"] for t in data["tasks"]] == [1, 2, 3]
        assert data["metadata"]["totalTasks"] == 3
        assert data["metadata"]["sourceDocument"] == "prd.txt"
        assert raw.startswith('{\n  "tasks"')

    def test_no_temp_file_left(self, saved_store):
        """Test that the temporary file is replaced into place."""
        assert list(saved_store.path.parent.iterdir()) == [saved_store.path]

    def test_missing_file(self, store):
        """Test the error for a store that does not exist."""
        with pytest.raises(TaskStoreError, match="Run parse-prd first"):
            store.load()

    def test_invalid_json(self, store):
        """Test the error for a corrupt file."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")

        with pytest.raises(TaskStoreError, match="not valid JSON"):
            store.load()

    def test_get_task(self, saved_store):
        """Test lookup by id."""
        assert saved_store.get_task(2)["title"] == "Task 2"

        with pytest.raises(TaskStoreError, match="Task 9 not found"):
            saved_store.get_task(9)

    def test_get_parent_and_load_tasks(self, saved_store):
        """Test model views of stored tasks."""
        assert saved_store.get_parent(3).title == "Task 3"
        assert [t.dependencies for t in saved_store.load_tasks()] == [[], [1], [2]]

    def test_next_subtask_id(self, saved_store):
        """Test id allocation under a task."""
        assert saved_store.next_subtask_id(1) == 1

        saved_store.add_subtasks(1, subtasks(1, [1, 2]))

        assert saved_store.next_subtask_id(1) == 3
        assert saved_store.next_subtask_id(2) == 1

    def test_add_subtasks_appends(self, saved_store):
        """Test that later expansions extend the list."""
        saved_store.add_subtasks(2, subtasks(2, [1, 2]))
        saved_store.add_subtasks(2, subtasks(2, [3]))

        stored = saved_store.get_task(2)["subtasks"]
        assert [s["id"] for s in stored] == [1, 2, 3]
        assert stored[0]["parentTaskId"] == 2

    def test_add_subtasks_unknown_task(self, saved_store):
        """Test that subtasks need an existing parent."""
        with pytest.raises(TaskStoreError):
            saved_store.add_subtasks(7, subtasks(7, [1]))

    def test_update_status(self, saved_store):
        """Test status updates."""
        saved_store.update_status(1, TaskStatus.DONE)
        saved_store.update_status(2, "deferred")

        assert saved_store.get_task(1)["status"] == "done"
        assert saved_store.get_task(2)["status"] == "deferred"

    def test_update_status_rejects_unknown(self, saved_store):
        """Test that only known statuses are stored."""
        with pytest.raises(ValueError):
            saved_store.update_status(1, "in-progress")
