"""Task decomposition - turning model replies into tasks and subtasks.

This module provides the response-reliability stages of the pipeline:
- Extraction (reply text -> JSON value)
- Validation (JSON value -> schema check with reasons)
- Reconciliation (validated value -> normalized task models)
- Fallback (exhausted retries -> flagged placeholder results)
- Persistence (task models -> tasks file)
"""

from taskforge.decomposition.fallback import FallbackSynthesizer
from taskforge.decomposition.models import (
    BatchMetadata,
    ComplexityAssessment,
    ExpansionResult,
    GenerationBatch,
    ParentTask,
    Priority,
    Subtask,
    Task,
    TaskStatus,
    localize,
)
from taskforge.decomposition.parser import JsonShape, ResponseExtractor, extract_json
from taskforge.decomposition.reconciler import IdReconciler
from taskforge.decomposition.store import TaskStore, TaskStoreError
from taskforge.decomposition.validator import SchemaValidator, ValidationResult

__all__ = [
    # Models
    "BatchMetadata",
    "ComplexityAssessment",
    "ExpansionResult",
    "GenerationBatch",
    "ParentTask",
    "Priority",
    "Subtask",
    "Task",
    "TaskStatus",
    "localize",
    # Stages
    "FallbackSynthesizer",
    "IdReconciler",
    "JsonShape",
    "ResponseExtractor",
    "SchemaValidator",
    "ValidationResult",
    "extract_json",
    # Persistence
    "TaskStore",
    "TaskStoreError",
]
