"""Schema validation for extracted model replies.

Checks the parsed JSON against the shape each request kind expects. Hard
failures are reported as errors; a count mismatch against the requested
number of items is only a warning.
"""

import math
from datetime import datetime
from typing import Any

from loguru import logger

from taskforge.core.errors import CountMismatch, ValidationError

# =============================================================================
# VALIDATION RESULTS
# =============================================================================


class ValidationResult:
    """Result of a single schema check."""

    def __init__(
        self,
        check_name: str,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.check_name = check_name
        self.errors = errors or []
        self.warnings = warnings or []
        self.details = details or {}
        self.completed_at = datetime.now().isoformat()

    @property
    def success(self) -> bool:
        """True when no hard error was recorded."""
        return not self.errors

    @property
    def count_mismatch(self) -> CountMismatch | None:
        return self.details.get("count_mismatch")

    def raise_for_errors(self) -> None:
        """Raise ``ValidationError`` carrying every recorded reason."""
        if self.errors:
            raise ValidationError(
                f"{self.check_name} failed: {'; '.join(self.errors)}",
                reasons=list(self.errors),
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "check_name": self.check_name,
            "success": self.success,
            "errors": self.errors,
            "warnings": self.warnings,
            "completed_at": self.completed_at,
        }


# =============================================================================
# SCHEMA VALIDATOR
# =============================================================================


class SchemaValidator:
    """
    Validate parsed replies for decomposition, expansion and complexity requests.

    Example:
        >>> validator = SchemaValidator()
        >>> result = validator.validate_subtasks([{"title": "a"}], requested_count=2)
        >>> result.success, result.warnings
        (True, ['Expected 2 subtasks, but received 1'])
    """

    def validate_decomposition(self, value: Any, requested_count: int) -> ValidationResult:
        """Check a ``{"tasks": [...], "metadata": {...}}`` reply.

        Args:
            value: Parsed JSON.
            requested_count: Number of tasks asked for.

        Returns:
            ValidationResult for the reply.
        """
        result = ValidationResult("decomposition")

        if not isinstance(value, dict):
            result.errors.append(f"Expected a JSON object, got {type(value).__name__}")
            return result

        tasks = value.get("tasks")
        if not isinstance(tasks, list):
            result.errors.append("Response does not contain a valid tasks array")
            return result

        seen: set[int] = set()
        for index, item in enumerate(tasks):
            if not self._check_item(item, index, "task", result):
                continue
            task_id = self._as_positive_int(item.get("id"))
            if task_id is None:
                result.errors.append(f"task[{index}] has no positive integer id")
            elif task_id in seen:
                result.errors.append(f"task[{index}] repeats id {task_id}")
            else:
                seen.add(task_id)

        metadata = value.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            result.warnings.append("metadata is not an object and will be regenerated")

        self._check_count(len(tasks), requested_count, "tasks", result)
        return result

    def validate_subtasks(self, value: Any, requested_count: int) -> ValidationResult:
        """Check a bare ``[...]`` subtask reply.

        Model-supplied ids are not checked; reconciliation renumbers them.
        """
        result = ValidationResult("subtasks")

        if not isinstance(value, list):
            result.errors.append("Parsed content is not an array")
            return result

        for index, item in enumerate(value):
            self._check_item(item, index, "subtask", result)

        self._check_count(len(value), requested_count, "subtasks", result)
        return result

    def validate_complexity(self, value: Any, task_ids: list[int]) -> ValidationResult:
        """Check a complexity-analysis reply against the analysed task ids."""
        result = ValidationResult("complexity")

        if not isinstance(value, list):
            result.errors.append("Parsed content is not an array")
            return result

        returned: set[int] = set()
        for index, item in enumerate(value):
            if not isinstance(item, dict):
                result.errors.append(f"analysis[{index}] is not an object")
                continue
            task_id = self._as_positive_int(item.get("taskId"))
            if task_id is None:
                result.errors.append(f"analysis[{index}] has no taskId")
                continue
            if self._as_number(item.get("complexityScore")) is None:
                result.errors.append(f"analysis[{index}] has no usable complexityScore")
            returned.add(task_id)

        missing = sorted(set(task_ids) - returned)
        if missing:
            result.warnings.append(f"No analysis returned for tasks {missing}")
        self._check_count(len(value), len(task_ids), "analyses", result)
        return result

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    def _check_item(
        self,
        item: Any,
        index: int,
        label: str,
        result: ValidationResult,
    ) -> bool:
        if not isinstance(item, dict):
            result.errors.append(f"{label}[{index}] is not an object")
            return False
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            result.errors.append(f"{label}[{index}] has no title")
            return False
        return True

    def _check_count(
        self,
        received: int,
        expected: int,
        item: str,
        result: ValidationResult,
    ) -> None:
        if received != expected:
            mismatch = CountMismatch(expected, received, item)
            result.warnings.append(str(mismatch))
            result.details["count_mismatch"] = mismatch
            logger.warning(str(mismatch))

    @staticmethod
    def _as_positive_int(value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value > 0 else None
        if isinstance(value, float) and value.is_integer() and value > 0:
            return int(value)
        if isinstance(value, str) and value.strip().isdecimal():
            try:
                number = int(value.strip())
            except ValueError:
                return None
            return number if number > 0 else None
        return None

    @staticmethod
    def _as_number(value: Any) -> float | None:
        """Any finite number or numeric string; range is left to reconciliation."""
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        if isinstance(value, int | float) and math.isfinite(value):
            return value
        return None
