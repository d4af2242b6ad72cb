"""Pydantic models for task decomposition.

This module defines the data structures produced by the generation
pipeline: top-level tasks, subtasks, the generation batch wrapping a
decomposition, and complexity assessments. Field aliases follow the
camelCase JSON contract the model is asked to produce and the task
store persists.
"""

from collections.abc import Iterator
from datetime import date
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS
# =============================================================================


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    PENDING = "pending"
    DONE = "done"
    DEFERRED = "deferred"


class Priority(str, Enum):
    """Task priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Primary text field -> bilingual twin, in JSON (alias) names.
BILINGUAL_FIELDS: dict[str, str] = {
    "title": "titleTrans",
    "description": "descriptionTrans",
    "details": "detailsTrans",
    "testStrategy": "testStrategyTrans",
}

DEFAULT_PROJECT_NAME = "PRD Implementation"
FALLBACK_NOTE = "Generated as fallback due to parsing error."


class _Record(BaseModel):
    """Common config: camelCase aliases, immutable, unknown keys ignored."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Dump to the JSON shape used on the wire and in the task store.

        Unset bilingual twins are omitted rather than written as null.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# TASKS
# =============================================================================


class _TaskFields(_Record):
    """Fields shared by tasks and subtasks."""

    id: int = Field(..., ge=1, description="Identifier, unique within the batch")
    title: str = Field(..., min_length=1, description="Short task title")
    description: str = Field(default="", description="What the task is about")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    dependencies: list[int] = Field(
        default_factory=list,
        description="IDs this task depends on",
    )
    details: str = Field(default="", description="Implementation guidance")
    test_strategy: str = Field(default="", description="Validation approach")

    title_trans: str | None = None
    description_trans: str | None = None
    details_trans: str | None = None
    test_strategy_trans: str | None = None


class Task(_TaskFields):
    """A top-level development task.

    Dependencies may only reference lower IDs, which keeps every batch
    acyclic by construction.

    Example:
        >>> task = Task(id=2, title="Create API", dependencies=[1], priority="high")
        >>> task.to_dict()["testStrategy"]
        ''
    """

    priority: Priority = Field(default=Priority.MEDIUM)

    @model_validator(mode="after")
    def check_backward_dependencies(self) -> "Task":
        """Reject dependencies on the task itself or on later tasks."""
        forward = [dep for dep in self.dependencies if dep >= self.id]
        if forward:
            raise ValueError(
                f"Task {self.id} depends on {forward}; dependencies must reference lower IDs"
            )
        return self


class Subtask(_TaskFields):
    """A step of a parent task, produced by expansion."""

    parent_task_id: int = Field(..., ge=1, description="Owning task id")


class ParentTask(_Record):
    """The slice of a task that expansion needs as input."""

    id: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    details: str = ""


# =============================================================================
# BATCHES AND RESULTS
# =============================================================================


class BatchMetadata(_Record):
    """Provenance of a generated batch."""

    project_name: str = Field(default=DEFAULT_PROJECT_NAME)
    total_tasks: int = Field(..., ge=0)
    source_document: str = Field(default="")
    generated_at: date = Field(default_factory=date.today)
    fallback: bool = Field(
        default=False,
        description="True when the batch is a placeholder built after parse failures",
    )
    note: str | None = None


class GenerationBatch(_Record):
    """The result of decomposing a source document.

    Example:
        >>> batch = GenerationBatch(
        ...     tasks=[Task(id=1, title="Setup")],
        ...     metadata=BatchMetadata(total_tasks=1),
        ... )
        >>> batch.is_fallback
        False
    """

    tasks: list[Task]
    metadata: BatchMetadata

    @model_validator(mode="after")
    def check_total(self) -> "GenerationBatch":
        """totalTasks always matches the task count."""
        if self.metadata.total_tasks != len(self.tasks):
            raise ValueError(
                f"metadata.totalTasks={self.metadata.total_tasks} "
                f"but batch holds {len(self.tasks)} tasks"
            )
        return self

    @property
    def is_fallback(self) -> bool:
        return self.metadata.fallback


class ExpansionResult(_Record):
    """Ordered subtasks for one parent task.

    Behaves like a read-only sequence of Subtask.
    """

    parent_task_id: int
    subtasks: list[Subtask] = Field(default_factory=list)
    fallback: bool = False
    research_used: bool = False
    note: str | None = None

    def __len__(self) -> int:
        return len(self.subtasks)

    def __iter__(self) -> Iterator[Subtask]:  # type: ignore[override]
        return iter(self.subtasks)

    def __getitem__(self, index: int) -> Subtask:
        return self.subtasks[index]

    @property
    def ids(self) -> list[int]:
        return [subtask.id for subtask in self.subtasks]


class ComplexityAssessment(_Record):
    """Model-estimated complexity for one task."""

    task_id: int = Field(..., ge=1)
    task_title: str = Field(default="")
    complexity_score: int = Field(..., ge=1, le=10)
    recommended_subtasks: int = Field(..., ge=1)
    expansion_prompt: str = Field(default="")
    reasoning: str = Field(default="")

    @field_validator("complexity_score", "recommended_subtasks", mode="before")
    @classmethod
    def round_numbers(cls, v: Any) -> Any:
        """Models often answer 7.5; keep the nearest whole number."""
        if isinstance(v, float):
            return int(round(v))
        return v


# =============================================================================
# HELPERS
# =============================================================================


def localize(record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a stored task preferring populated bilingual twins.

    Subtasks nested under ``subtasks`` are localized too. Empty twins keep the
    primary text.

    Args:
        record: Task dict as stored (camelCase keys).

    Returns:
        New dict with primary fields replaced by their translations.
    """
    localized = dict(record)
    for primary, twin in BILINGUAL_FIELDS.items():
        if localized.get(twin):
            localized[primary] = localized[twin]
    if isinstance(record.get("subtasks"), list):
        localized["subtasks"] = [
            localize(sub) if isinstance(sub, dict) else sub for sub in record["subtasks"]
        ]
    return localized
