"""Fallback synthesizer - placeholder results after parse retries run out.

A malformed reply must never block the caller, so once extraction and
validation have failed on every attempt the pipeline returns one of these
instead: structurally valid, clearly flagged, and content-poor.
"""

from collections.abc import Sequence
from datetime import date

from loguru import logger

from taskforge.decomposition.models import (
    DEFAULT_PROJECT_NAME,
    FALLBACK_NOTE,
    BatchMetadata,
    ComplexityAssessment,
    ExpansionResult,
    GenerationBatch,
    ParentTask,
    Priority,
    Subtask,
    Task,
    TaskStatus,
)

FALLBACK_SUBTASK_DESCRIPTION = "Auto-generated fallback subtask"


class FallbackSynthesizer:
    """
    Build placeholder batches, subtask lists and assessments.

    Example:
        >>> batch = FallbackSynthesizer().tasks(3, source_document="prd.txt")
        >>> [t.dependencies for t in batch.tasks]
        [[], [1], [2]]
        >>> batch.is_fallback
        True
    """

    def __init__(self, bilingual: bool = False) -> None:
        self.bilingual = bilingual

    def tasks(
        self,
        count: int,
        source_document: str = "",
        project_name: str = DEFAULT_PROJECT_NAME,
    ) -> GenerationBatch:
        """Build a linear chain of ``count`` placeholder tasks."""
        logger.warning("Failed to process after retries. Creating fallback task structure.")

        tasks = []
        for i in range(1, count + 1):
            fields = {
                "id": i,
                "title": f"Task {i}",
                "description": f"Task {i} generated as fallback due to parsing error.",
                "status": TaskStatus.PENDING,
                "dependencies": [i - 1] if i > 1 else [],
                "priority": Priority.MEDIUM,
                "details": "Please fill in the implementation details for this task.",
                "test_strategy": "Manual verification.",
            }
            if self.bilingual:
                fields.update(
                    title_trans=f"任务 {i}",
                    description_trans=f"因解析错误而生成的备用任务 {i}。",
                    details_trans="请为此任务填写实现细节。",
                    test_strategy_trans="",
                )
            tasks.append(Task(**fields))

        return GenerationBatch(
            tasks=tasks,
            metadata=BatchMetadata(
                project_name=project_name,
                total_tasks=count,
                source_document=source_document,
                generated_at=date.today(),
                fallback=True,
                note=FALLBACK_NOTE,
            ),
        )

    def subtasks(
        self,
        count: int,
        next_subtask_id: int,
        parent_task_id: int,
    ) -> ExpansionResult:
        """Build ``count`` independent placeholder subtasks."""
        logger.warning("Creating fallback subtasks")

        subtasks = []
        for i in range(count):
            fields = {
                "id": next_subtask_id + i,
                "title": f"Subtask {next_subtask_id + i}",
                "description": FALLBACK_SUBTASK_DESCRIPTION,
                "dependencies": [],
                "details": (
                    "This is a fallback subtask created because parsing failed. "
                    "Please update with real details."
                ),
                "status": TaskStatus.PENDING,
                "parent_task_id": parent_task_id,
            }
            if self.bilingual:
                fields.update(
                    title_trans="自动生成的子任务",
                    description_trans="自动生成的后备子任务",
                    details_trans="这是因为解析失败而创建的后备子任务。请使用真实细节进行更新。",
                    test_strategy_trans="",
                )
            subtasks.append(Subtask(**fields))

        return ExpansionResult(
            parent_task_id=parent_task_id,
            subtasks=subtasks,
            fallback=True,
            note=FALLBACK_NOTE,
        )

    def assessments(
        self,
        tasks: Sequence[Task | ParentTask],
        default_subtasks: int,
    ) -> list[ComplexityAssessment]:
        """One neutral assessment per task."""
        logger.warning("Creating fallback complexity assessments")
        return [
            ComplexityAssessment(
                task_id=task.id,
                task_title=task.title,
                complexity_score=5,
                recommended_subtasks=default_subtasks,
                expansion_prompt="",
                reasoning=FALLBACK_NOTE,
            )
            for task in tasks
        ]
