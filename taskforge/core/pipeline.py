"""
Generation pipeline - the retry and fallback state machine.

Composes PromptBuilder -> ProviderGateway -> ResponseExtractor ->
SchemaValidator -> (IdReconciler | FallbackSynthesizer) for the three
generation requests: PRD decomposition, task expansion (optionally backed
by a research call) and complexity analysis.

Two retry budgets apply per request:

- Provider failures that are worth repeating (quota, timeout, network) are
  re-sent up to ``max_provider_retries`` times with linear backoff. Every
  other provider failure reaches the caller on the first occurrence.
- Parse failures (extraction or validation) are retried up to
  ``max_parse_retries`` times: the first retry re-parses the same text, the
  next ones ask the provider for a fresh reply. When the budget runs out the
  pipeline returns a flagged fallback result instead of raising.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from loguru import logger

from taskforge.core.config import Settings, get_settings
from taskforge.core.errors import ProviderError, ProviderErrorKind, ResponseError
from taskforge.decomposition.fallback import FallbackSynthesizer
from taskforge.decomposition.models import (
    ComplexityAssessment,
    ExpansionResult,
    GenerationBatch,
    ParentTask,
    Task,
)
from taskforge.decomposition.parser import JsonShape, ResponseExtractor
from taskforge.decomposition.reconciler import IdReconciler
from taskforge.decomposition.validator import SchemaValidator
from taskforge.prompts.builder import PromptBuilder
from taskforge.providers.gateway import RESEARCH_PROVIDER, ProviderGateway

T = TypeVar("T")

MAX_PROVIDER_RETRIES = 2
MAX_PARSE_RETRIES = 2


class GenerationPipeline:
    """
    Turn documents into tasks and tasks into subtasks.

    Each call runs its own state machine with its own counters; a single
    pipeline instance can serve concurrent calls.

    Attributes:
        gateway: Provider gateway used for every model call.
        bilingual: Whether bilingual twins are requested and repaired.
        retry_delay: Base delay in seconds of the linear provider backoff.

    Example:
        >>> pipeline = GenerationPipeline(ProviderGateway())
        >>> batch = await pipeline.generate_tasks(prd_text, num_tasks=10)
        >>> batch.metadata.total_tasks
        10
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        settings: Settings | None = None,
        builder: PromptBuilder | None = None,
        extractor: ResponseExtractor | None = None,
        validator: SchemaValidator | None = None,
        reconciler: IdReconciler | None = None,
        fallback: FallbackSynthesizer | None = None,
        retry_delay: float | None = None,
        bilingual: bool | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            gateway: Provider gateway (created once per process).
            settings: Settings override. Uses the cached settings if omitted.
            builder: Prompt builder override.
            extractor: Response extractor override, e.g. a stricter scanner.
            validator: Schema validator override.
            reconciler: Reconciler override.
            fallback: Fallback synthesizer override.
            retry_delay: Backoff base in seconds (settings value if omitted).
            bilingual: Bilingual mode (settings value if omitted).
        """
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.bilingual = self.settings.taskforge_bilingual if bilingual is None else bilingual
        self.retry_delay = (
            self.settings.taskforge_retry_delay if retry_delay is None else retry_delay
        )
        self.max_provider_retries = MAX_PROVIDER_RETRIES
        self.max_parse_retries = MAX_PARSE_RETRIES

        self.builder = builder or PromptBuilder(bilingual=self.bilingual)
        self.extractor = extractor or ResponseExtractor()
        self.validator = validator or SchemaValidator()
        self.reconciler = reconciler or IdReconciler(bilingual=self.bilingual)
        self.fallback = fallback or FallbackSynthesizer(bilingual=self.bilingual)

    # =========================================================================
    # DECOMPOSITION
    # =========================================================================

    async def generate_tasks(
        self,
        source_text: str,
        num_tasks: int,
        source_document: str = "",
        domain_knowledge: str | None = None,
    ) -> GenerationBatch:
        """
        Decompose a PRD into ``num_tasks`` top-level tasks.

        Args:
            source_text: PRD content.
            num_tasks: Number of tasks to request.
            source_document: PRD name or path, recorded in the metadata.
            domain_knowledge: Optional authoritative business context.

        Returns:
            Reconciled GenerationBatch, or a fallback batch of ``num_tasks``
            placeholder tasks if no reply could be parsed.

        Raises:
            ConfigurationError: If the primary credential is missing.
            ProviderError: On a terminal or retry-exhausted provider failure.
        """
        self._check_count(num_tasks, "num_tasks")
        project_name = self.settings.taskforge_project_name

        prompt = self.builder.build_decomposition_prompt(
            source_text,
            num_tasks,
            source_document=source_document,
            domain_knowledge=domain_knowledge,
            bilingual=self.bilingual,
            project_name=project_name,
        )

        def parse(text: str) -> GenerationBatch:
            value = self.extractor.extract(text, JsonShape.OBJECT)
            self.validator.validate_decomposition(value, num_tasks).raise_for_errors()
            return self.reconciler.reconcile_batch(
                value, source_document=source_document, project_name=project_name
            )

        logger.info(f"Generating {num_tasks} tasks from {source_document or 'document'}")
        batch = await self._run(
            "decompose",
            lambda: self.gateway.send_primary(
                prompt, stage="decompose", message="Generating tasks from PRD..."
            ),
            parse,
        )
        if batch is None:
            return self.fallback.tasks(num_tasks, source_document, project_name)

        logger.info(f"Generated {len(batch.tasks)} tasks")
        return batch

    # =========================================================================
    # EXPANSION
    # =========================================================================

    async def expand_task(
        self,
        task: Task | ParentTask | dict[str, Any],
        num_subtasks: int | None = None,
        next_subtask_id: int = 1,
        domain_knowledge: str | None = None,
        additional_context: str = "",
        research: bool = False,
    ) -> ExpansionResult:
        """
        Expand one task into ordered subtasks.

        With ``research=True`` a single research call runs first and its
        findings are folded into the expansion prompt. That call is not
        retried and its failure is not absorbed.

        Args:
            task: Parent task (model or camelCase dict).
            num_subtasks: Number of subtasks (settings default if omitted).
            next_subtask_id: ID of the first subtask.
            domain_knowledge: Optional authoritative business context.
            additional_context: Free-text guidance from the user.
            research: Run the research stage first.

        Returns:
            ExpansionResult with ids ``next_subtask_id ..`` in reply order,
            or a fallback result of ``num_subtasks`` placeholders.

        Raises:
            ConfigurationError: If a required credential is missing.
            ProviderError: On a terminal or retry-exhausted provider failure,
                or any research failure.
        """
        if isinstance(task, dict):
            task = ParentTask.model_validate(task)
        if num_subtasks is None:
            num_subtasks = self.settings.taskforge_default_subtasks
        self._check_count(num_subtasks, "num_subtasks")
        self._check_count(next_subtask_id, "next_subtask_id")

        findings = None
        if research:
            findings = await self._research(task, domain_knowledge)

        prompt = self.builder.build_expansion_prompt(
            task,
            num_subtasks,
            next_subtask_id=next_subtask_id,
            domain_knowledge=domain_knowledge,
            additional_context=additional_context,
            research_findings=findings,
            bilingual=self.bilingual,
        )

        def parse(text: str) -> ExpansionResult:
            value = self.extractor.extract(text, JsonShape.ARRAY)
            self.validator.validate_subtasks(value, num_subtasks).raise_for_errors()
            subtasks = self.reconciler.reconcile_subtasks(value, next_subtask_id, task.id)
            return ExpansionResult(
                parent_task_id=task.id,
                subtasks=subtasks,
                research_used=findings is not None,
            )

        stage = "expand+research" if findings else "expand"
        message = (
            f"Generating research-backed subtasks for task {task.id}..."
            if findings
            else f"Generating subtasks for task {task.id}..."
        )
        logger.info(f"Expanding task {task.id} into {num_subtasks} subtasks")
        result = await self._run(
            stage,
            lambda: self.gateway.send_primary(prompt, stage=stage, message=message),
            parse,
        )
        if result is None:
            return self.fallback.subtasks(num_subtasks, next_subtask_id, task.id)

        logger.info(f"Generated {len(result)} subtasks for task {task.id}")
        return result

    async def _research(
        self,
        task: Task | ParentTask,
        domain_knowledge: str | None,
    ) -> str:
        query = self.builder.build_research_query(task, domain_knowledge)
        findings = await self.gateway.send_research(
            query,
            stage="research",
            message=f"Researching best practices for task {task.id}...",
        )
        if not findings.strip():
            raise ProviderError(
                ProviderErrorKind.UNKNOWN,
                RESEARCH_PROVIDER,
                "research response was empty",
            )
        logger.debug(f"Research findings for task {task.id}: {len(findings)} chars")
        return findings

    # =========================================================================
    # COMPLEXITY ANALYSIS
    # =========================================================================

    async def analyze_complexity(
        self,
        tasks: Sequence[Task | ParentTask],
    ) -> list[ComplexityAssessment]:
        """
        Estimate complexity and a subtask count for each task.

        Args:
            tasks: Tasks to analyse.

        Returns:
            One assessment per task the reply covered, or neutral fallback
            assessments for every task if no reply could be parsed.
        """
        if not tasks:
            return []

        default_subtasks = self.settings.taskforge_default_subtasks
        prompt = self.builder.build_complexity_prompt(tasks, default_subtasks)
        task_ids = [task.id for task in tasks]

        def parse(text: str) -> list[ComplexityAssessment]:
            value = self.extractor.extract(text, JsonShape.ARRAY)
            self.validator.validate_complexity(value, task_ids).raise_for_errors()
            return self.reconciler.reconcile_complexity(value, tasks, default_subtasks)

        assessments = await self._run(
            "complexity",
            lambda: self.gateway.send_primary(
                prompt, stage="complexity", message="Analyzing task complexity..."
            ),
            parse,
        )
        if assessments is None:
            return self.fallback.assessments(tasks, default_subtasks)
        return assessments

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    async def _run(
        self,
        stage: str,
        send: Callable[[], Awaitable[str]],
        parse: Callable[[str], T],
    ) -> T | None:
        """
        Send, then parse with bounded retries.

        Returns:
            The parsed value, or None when every parse attempt failed.
        """
        text = await self._send_with_retry(stage, send)

        for attempt in range(self.max_parse_retries + 1):
            if attempt >= 2:
                logger.info(f"[{stage}] Requesting a fresh response (attempt {attempt + 1})")
                text = await self._send_with_retry(stage, send)
            elif attempt == 1:
                logger.info(f"[{stage}] Re-parsing the same response (attempt {attempt + 1})")

            try:
                return parse(text)
            except ResponseError as e:
                logger.warning(
                    f"[{stage}] {type(e).__name__} on attempt {attempt + 1}/"
                    f"{self.max_parse_retries + 1}: {e} (response length {len(text or '')})"
                )

        logger.error(f"[{stage}] Could not parse a response after {self.max_parse_retries + 1} attempts")
        return None

    async def _send_with_retry(
        self,
        stage: str,
        send: Callable[[], Awaitable[str]],
    ) -> str:
        """Call the provider, retrying retryable failures with linear backoff."""
        retry_count = 0
        while True:
            try:
                return await send()
            except ProviderError as e:
                if not e.retryable:
                    logger.error(f"[{stage}] {e.kind.value} error is not retryable: {e}")
                    raise
                if retry_count >= self.max_provider_retries:
                    logger.error(f"[{stage}] Giving up after {retry_count + 1} attempts: {e}")
                    raise

                retry_count += 1
                delay = self.retry_delay * retry_count
                logger.warning(
                    f"[{stage}] {e.kind.value} error, retrying in {delay:g}s "
                    f"(attempt {retry_count + 1}/{self.max_provider_retries + 1})"
                )
                await asyncio.sleep(delay)

    @staticmethod
    def _check_count(value: int, name: str) -> None:
        if value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value}")
