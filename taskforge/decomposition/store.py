"""JSON task store - the persistence collaborator of the pipeline.

The store file holds ``{"tasks": [...], "metadata": {...}}`` with camelCase
keys, subtasks nested under their parent task. Every write goes to a
temporary file first and then replaces the store, so a crash never leaves
a half-written file behind.
"""

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from loguru import logger

from taskforge.core.errors import TaskForgeError
from taskforge.decomposition.models import (
    GenerationBatch,
    ParentTask,
    Subtask,
    Task,
    TaskStatus,
)


class TaskStoreError(TaskForgeError):
    """The task store is missing, unreadable or lacks a requested task."""

    pass


class TaskStore:
    """
    Read and write the tasks file.

    Example:
        >>> store = TaskStore("tasks/tasks.json")
        >>> store.save_batch(batch)
        >>> store.next_subtask_id(3)
        1
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    # -------------------------------------------------------------------------
    # FILE ACCESS
    # -------------------------------------------------------------------------

    def load(self) -> dict[str, Any]:
        """Read the whole store.

        Raises:
            TaskStoreError: If the file is missing or not a tasks document.
        """
        if not self.exists:
            raise TaskStoreError(f"No tasks file at {self.path}. Run parse-prd first.")
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise TaskStoreError(f"Tasks file {self.path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
            raise TaskStoreError(f"Tasks file {self.path} has no tasks array")
        return data

    def write(self, data: dict[str, Any]) -> None:
        """Replace the store contents."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug(f"Wrote {len(data.get('tasks', []))} tasks to {self.path}")

    # -------------------------------------------------------------------------
    # OPERATIONS
    # -------------------------------------------------------------------------

    def save_batch(self, batch: GenerationBatch) -> None:
        """Replace the store with a freshly generated batch."""
        self.write(batch.to_dict())
        logger.info(f"Saved {len(batch.tasks)} tasks to {self.path}")

    def tasks(self) -> list[dict[str, Any]]:
        return self.load()["tasks"]

    def get_task(self, task_id: int) -> dict[str, Any]:
        """Return the stored dict of one task.

        Raises:
            TaskStoreError: If no task has this id.
        """
        for task in self.tasks():
            if task.get("id") == task_id:
                return task
        raise TaskStoreError(f"Task {task_id} not found")

    def get_parent(self, task_id: int) -> ParentTask:
        """Return the expansion input for one task."""
        return ParentTask.model_validate(self.get_task(task_id))

    def load_tasks(self) -> list[Task]:
        """Return every stored task as a model (subtasks are not included)."""
        return [Task.model_validate(task) for task in self.tasks()]

    def next_subtask_id(self, task_id: int) -> int:
        """First unused subtask id under a task."""
        subtasks = self.get_task(task_id).get("subtasks") or []
        return max((sub.get("id", 0) for sub in subtasks), default=0) + 1

    def add_subtasks(self, task_id: int, subtasks: Sequence[Subtask]) -> None:
        """Append subtasks to a task and write the store."""
        data = self.load()
        for task in data["tasks"]:
            if task.get("id") == task_id:
                task.setdefault("subtasks", [])
                task["subtasks"].extend(subtask.to_dict() for subtask in subtasks)
                break
        else:
            raise TaskStoreError(f"Task {task_id} not found")

        self.write(data)
        logger.info(f"Added {len(subtasks)} subtasks to task {task_id}")

    def update_status(self, task_id: int, status: TaskStatus | str) -> None:
        """Set the status of a task."""
        status = TaskStatus(status)
        data = self.load()
        for task in data["tasks"]:
            if task.get("id") == task_id:
                task["status"] = status.value
                break
        else:
            raise TaskStoreError(f"Task {task_id} not found")

        self.write(data)
        logger.info(f"Task {task_id} marked {status.value}")
