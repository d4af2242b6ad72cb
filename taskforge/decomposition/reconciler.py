"""ID reconciliation - the post-success normalization pass.

Every successful reply goes through here before it leaves the pipeline:
subtask IDs are renumbered to the expected contiguous range, dependency
references are coerced to integers, statuses and parent links are stamped,
missing bilingual twins are filled with empty placeholders, and batch
metadata is synthesized or corrected. Reconciliation never mutates its
input and is idempotent.
"""

import re
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from taskforge.core.errors import ValidationError
from taskforge.decomposition.models import (
    BILINGUAL_FIELDS,
    DEFAULT_PROJECT_NAME,
    BatchMetadata,
    ComplexityAssessment,
    GenerationBatch,
    ParentTask,
    Priority,
    Subtask,
    Task,
    TaskStatus,
)

_NUMERIC = re.compile(r"^\s*\d+\s*$")
_TEXT_FIELDS = ("title", "description", "details", "testStrategy")


class IdReconciler:
    """
    Normalize validated model output into immutable task models.

    Attributes:
        bilingual: Whether missing bilingual twins are repaired.

    Example:
        >>> reconciler = IdReconciler()
        >>> subtasks = reconciler.reconcile_subtasks(
        ...     [{"id": 9, "title": "Write schema", "dependencies": ["1", 2]}],
        ...     next_subtask_id=1,
        ...     parent_task_id=4,
        ... )
        >>> subtasks[0].id, subtasks[0].dependencies, subtasks[0].parent_task_id
        (1, [1, 2], 4)
    """

    def __init__(self, bilingual: bool = False) -> None:
        self.bilingual = bilingual

    # -------------------------------------------------------------------------
    # SUBTASKS
    # -------------------------------------------------------------------------

    def reconcile_subtasks(
        self,
        items: Sequence[dict[str, Any]],
        next_subtask_id: int,
        parent_task_id: int,
    ) -> list[Subtask]:
        """
        Renumber and normalize subtasks in reply order.

        Args:
            items: Validated subtask objects from the reply.
            next_subtask_id: First ID to assign.
            parent_task_id: ID of the owning task.

        Returns:
            Subtasks with IDs ``next_subtask_id .. next_subtask_id + len - 1``.

        Raises:
            ValidationError: If an item still cannot form a Subtask.
        """
        subtasks: list[Subtask] = []

        for index, item in enumerate(items):
            expected_id = next_subtask_id + index
            record = self._normalize_text(item)

            if record.get("id") != expected_id:
                logger.warning(
                    f"Correcting subtask ID from {record.get('id')} to {expected_id}"
                )
            record["id"] = expected_id
            record["dependencies"] = self.coerce_dependencies(
                item.get("dependencies"), f"subtask {expected_id}"
            )
            record["status"] = TaskStatus.PENDING.value
            record["parentTaskId"] = parent_task_id

            if self.bilingual:
                self._repair_bilingual(record, f"subtask {expected_id}")

            subtasks.append(self._build(Subtask, record, f"subtask {expected_id}"))

        return subtasks

    # -------------------------------------------------------------------------
    # DECOMPOSITION BATCH
    # -------------------------------------------------------------------------

    def reconcile_batch(
        self,
        value: dict[str, Any],
        source_document: str = "",
        project_name: str = DEFAULT_PROJECT_NAME,
    ) -> GenerationBatch:
        """
        Normalize a decomposition reply into a GenerationBatch.

        Args:
            value: Validated ``{"tasks": [...], "metadata": {...}}`` object.
            source_document: Name or path of the source document.
            project_name: Project name used when metadata is synthesized.

        Returns:
            GenerationBatch whose ``metadata.totalTasks`` equals its task count.

        Raises:
            ValidationError: If a task still cannot form a Task.
        """
        items = value.get("tasks") or []
        batch_ids = {self._coerce_id(item.get("id")) for item in items}
        tasks: list[Task] = []

        for item in items:
            record = self._normalize_text(item)
            task_id = self._coerce_id(item.get("id"))
            label = f"task {task_id}"
            record["id"] = task_id

            dependencies = self.coerce_dependencies(item.get("dependencies"), label)
            kept = [dep for dep in dependencies if dep < task_id and dep in batch_ids]
            if len(kept) != len(dependencies):
                dropped = [dep for dep in dependencies if dep not in kept]
                logger.warning(
                    f"Dropping dependencies {dropped} of {label}: "
                    "only earlier tasks in the batch may be referenced"
                )
            record["dependencies"] = kept

            record["status"] = self._enum_value(
                TaskStatus, item.get("status"), TaskStatus.PENDING, label
            )
            record["priority"] = self._enum_value(
                Priority, item.get("priority"), Priority.MEDIUM, label
            )

            if self.bilingual:
                self._repair_bilingual(record, label)

            tasks.append(self._build(Task, record, label))

        metadata = self._reconcile_metadata(
            value.get("metadata"), len(tasks), source_document, project_name
        )

        return GenerationBatch(tasks=tasks, metadata=metadata)

    def _reconcile_metadata(
        self,
        raw: Any,
        total: int,
        source_document: str,
        project_name: str,
    ) -> BatchMetadata:
        if not isinstance(raw, dict):
            logger.debug("Reply has no metadata, synthesizing it")
            return BatchMetadata(
                project_name=project_name,
                total_tasks=total,
                source_document=source_document,
                generated_at=date.today(),
            )

        if raw.get("totalTasks") != total:
            logger.warning(
                f"Metadata reports totalTasks={raw.get('totalTasks')}, "
                f"batch holds {total}; using {total}"
            )

        name = raw.get("projectName")
        source = raw.get("sourceDocument") or raw.get("sourceFile") or source_document
        return BatchMetadata(
            project_name=name if isinstance(name, str) and name.strip() else project_name,
            total_tasks=total,
            source_document=str(source),
            generated_at=self._parse_date(raw.get("generatedAt")),
        )

    # -------------------------------------------------------------------------
    # COMPLEXITY
    # -------------------------------------------------------------------------

    def reconcile_complexity(
        self,
        items: Sequence[dict[str, Any]],
        tasks: Iterable[Task | ParentTask],
        default_subtasks: int,
    ) -> list[ComplexityAssessment]:
        """
        Normalize a complexity-analysis reply.

        Entries for unknown task ids are dropped; scores are clamped to 1..10.
        """
        titles = {task.id: task.title for task in tasks}
        assessments: list[ComplexityAssessment] = []

        for item in items:
            task_id = self._coerce_id(item.get("taskId"))
            if task_id not in titles:
                logger.warning(f"Ignoring analysis for unknown task {item.get('taskId')}")
                continue

            score = self._as_number(item.get("complexityScore"), 5)
            recommended = self._as_number(item.get("recommendedSubtasks"), default_subtasks)
            record = {
                "taskId": task_id,
                "taskTitle": self._text(item.get("taskTitle")) or titles[task_id],
                "complexityScore": min(10, max(1, round(score))),
                "recommendedSubtasks": max(1, round(recommended)),
                "expansionPrompt": self._text(item.get("expansionPrompt")),
                "reasoning": self._text(item.get("reasoning")),
            }
            assessments.append(
                self._build(ComplexityAssessment, record, f"analysis of task {task_id}")
            )

        return assessments

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    @staticmethod
    def coerce_dependencies(raw: Any, owner: str = "item") -> list[int]:
        """Coerce dependency references to integers.

        Numeric-looking strings become ints. Anything else is dropped. A
        missing or non-list value becomes an empty list.

        Args:
            raw: The ``dependencies`` value from the reply.
            owner: Label used in log messages.

        Returns:
            New list of integer IDs, order preserved.
        """
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Malformed dependencies for {owner}: {raw!r}, using []")
            return []

        coerced: list[int] = []
        for dep in raw:
            if isinstance(dep, bool):
                value = None
            elif isinstance(dep, int):
                value = dep
            elif isinstance(dep, float) and dep.is_integer():
                value = int(dep)
            elif isinstance(dep, str) and _NUMERIC.match(dep):
                value = int(dep)
            else:
                value = None

            if value is None:
                logger.warning(f"Dropping non-numeric dependency {dep!r} of {owner}")
                continue
            coerced.append(value)
        return coerced

    def _repair_bilingual(self, record: dict[str, Any], label: str) -> None:
        for primary, twin in BILINGUAL_FIELDS.items():
            if record.get(primary) and not isinstance(record.get(twin), str):
                logger.warning(f"Missing {twin} for {label}, using empty value")
                record[twin] = ""

    def _normalize_text(self, item: dict[str, Any]) -> dict[str, Any]:
        """Shallow copy with text fields coerced to strings."""
        record = dict(item)
        for field in _TEXT_FIELDS:
            if field in record and record[field] is not None:
                record[field] = self._text(record[field])
        for twin in BILINGUAL_FIELDS.values():
            if twin in record and record[twin] is not None:
                record[twin] = self._text(record[twin])
        return record

    @staticmethod
    def _text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            return "\n".join(str(part) for part in value)
        return str(value)

    @staticmethod
    def _coerce_id(value: Any) -> int:
        if isinstance(value, str) and _NUMERIC.match(value):
            return int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value  # type: ignore[return-value]

    @staticmethod
    def _as_number(value: Any, default: float) -> float:
        if isinstance(value, bool):
            return default
        if isinstance(value, int | float):
            return value
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return default
        return default

    @staticmethod
    def _enum_value(enum: type, value: Any, default: Any, label: str) -> str:
        allowed = {member.value for member in enum}
        if isinstance(value, str) and value.lower() in allowed:
            return value.lower()
        if value is not None:
            logger.debug(f"Replacing {enum.__name__.lower()} {value!r} of {label} with {default.value}")
        return default.value

    @staticmethod
    def _parse_date(value: Any) -> date:
        if isinstance(value, str):
            try:
                return date.fromisoformat(value[:10])
            except ValueError:
                pass
        return date.today()

    @staticmethod
    def _build(model: type, record: dict[str, Any], label: str) -> Any:
        try:
            return model.model_validate(record)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Cannot build {label}: {e.error_count()} invalid field(s)",
                reasons=[f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
            ) from e
