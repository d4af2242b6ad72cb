"""
Prompt builder for TaskForge requests.

Assembles the system and user prompts for the three request kinds
(decomposition, expansion, research-backed expansion) plus the research
query and complexity-analysis prompts. Pure string assembly: no network
or file access.
"""

import json
from collections.abc import Sequence
from enum import Enum

from loguru import logger
from pydantic import BaseModel, ConfigDict

from taskforge.decomposition.models import DEFAULT_PROJECT_NAME, ParentTask, Task
from taskforge.prompts.templates import (
    ALL_TEMPLATES,
    BATCH_EXAMPLE,
    COMPLEXITY_EXAMPLE,
    DECOMPOSE_GUIDELINES,
    EXPAND_GUIDELINES,
    EXPAND_TRANSLATION_INSTRUCTION,
    KNOWLEDGE_GUIDELINES,
    RESEARCH_INTRO,
    SUBTASK_EXAMPLE,
    SUBTASK_EXAMPLE_BILINGUAL,
    TASK_STRUCTURE,
    TASK_STRUCTURE_BILINGUAL,
    TRANSLATION_GUIDELINES,
    PromptTemplate,
)


class PromptMode(str, Enum):
    """Kind of generation request."""

    DECOMPOSE = "decompose"
    EXPAND = "expand"
    EXPAND_RESEARCH = "expand+research"


class PromptPair(BaseModel):
    """System and user prompt for one provider call."""

    model_config = ConfigDict(frozen=True)

    system: str
    user: str

    @property
    def combined(self) -> str:
        """Single-string form for providers without a system role."""
        return f"{self.system}\n\n{self.user}"


# =============================================================================
# PROMPT BUILDER
# =============================================================================


class PromptBuilder:
    """
    Build prompts from templates and request parameters.

    Attributes:
        bilingual: Default for the bilingual-output instructions.
        language: Name of the secondary language.

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.build_decomposition_prompt("# PRD ...", num_tasks=5)
        >>> "exactly 5 tasks" in prompt.system
        True
    """

    def __init__(self, bilingual: bool = False, language: str = "Chinese") -> None:
        """
        Initialize the prompt builder.

        Args:
            bilingual: Ask for translated twins of every text field by default.
            language: Secondary language named in the instructions.
        """
        self.bilingual = bilingual
        self.language = language
        self._templates: dict[str, PromptTemplate] = dict(ALL_TEMPLATES)

    # -------------------------------------------------------------------------
    # DISPATCH
    # -------------------------------------------------------------------------

    def build(
        self,
        mode: PromptMode | str,
        source: str | ParentTask,
        requested_count: int,
        domain_knowledge: str | None = None,
        bilingual: bool | None = None,
        **kwargs,
    ) -> PromptPair:
        """
        Build the prompt pair for any request kind.

        Args:
            mode: Request kind.
            source: PRD text for decomposition, parent task for expansion.
            requested_count: Exact number of tasks/subtasks to ask for.
            domain_knowledge: Optional authoritative context, injected verbatim.
            bilingual: Override the builder's bilingual default.
            **kwargs: Mode-specific options (``source_document``,
                ``next_subtask_id``, ``additional_context``,
                ``research_findings``).

        Returns:
            PromptPair for the provider call.
        """
        mode = PromptMode(mode)
        if mode == PromptMode.DECOMPOSE:
            if not isinstance(source, str):
                raise TypeError("Decomposition needs the source document text")
            return self.build_decomposition_prompt(
                source,
                requested_count,
                source_document=kwargs.get("source_document", ""),
                domain_knowledge=domain_knowledge,
                bilingual=bilingual,
            )

        if isinstance(source, dict):
            source = ParentTask.model_validate(source)
        if mode == PromptMode.EXPAND_RESEARCH and not kwargs.get("research_findings"):
            raise ValueError("Research-backed expansion needs research findings")

        return self.build_expansion_prompt(
            source,
            requested_count,
            next_subtask_id=kwargs.get("next_subtask_id", 1),
            domain_knowledge=domain_knowledge,
            additional_context=kwargs.get("additional_context", ""),
            research_findings=(
                kwargs.get("research_findings") if mode == PromptMode.EXPAND_RESEARCH else None
            ),
            bilingual=bilingual,
        )

    # -------------------------------------------------------------------------
    # DECOMPOSITION
    # -------------------------------------------------------------------------

    def build_decomposition_prompt(
        self,
        source_text: str,
        num_tasks: int,
        source_document: str = "",
        domain_knowledge: str | None = None,
        bilingual: bool | None = None,
        project_name: str = DEFAULT_PROJECT_NAME,
    ) -> PromptPair:
        """
        Build the PRD decomposition prompt.

        Args:
            source_text: PRD content.
            num_tasks: Number of tasks to ask for.
            source_document: PRD name or path, echoed in the metadata example.
            domain_knowledge: Optional business knowledge.
            bilingual: Override the builder's bilingual default.
            project_name: Project name echoed in the metadata example.

        Returns:
            PromptPair with the JSON contract in the system prompt and the
            PRD in the user prompt.
        """
        bilingual = self.bilingual if bilingual is None else bilingual

        guidelines = [g.format(num_tasks=num_tasks) for g in DECOMPOSE_GUIDELINES]
        if domain_knowledge:
            guidelines += [g.format(items="tasks") for g in KNOWLEDGE_GUIDELINES]
        if bilingual:
            guidelines += [
                g.format(language=self.language, item="task") for g in TRANSLATION_GUIDELINES
            ]

        structure = (
            TASK_STRUCTURE_BILINGUAL.replace("{language}", self.language)
            if bilingual
            else TASK_STRUCTURE
        )
        batch_example = BATCH_EXAMPLE % {
            "project_name": project_name,
            "num_tasks": num_tasks,
            "source_document": json.dumps(source_document)[1:-1],
        }

        system = self._templates["decompose_system"].format(
            num_tasks=num_tasks,
            task_structure=structure,
            guidelines=self._numbered(guidelines),
            batch_example=batch_example,
        )
        user = self._templates["decompose_user"].format(
            knowledge_section=self._knowledge_block(domain_knowledge),
            num_tasks=num_tasks,
            source_text=source_text,
        )

        logger.debug(
            f"Built decomposition prompt ({len(system) + len(user)} chars, "
            f"knowledge={'yes' if domain_knowledge else 'no'}, bilingual={bilingual})"
        )
        return PromptPair(system=system, user=user)

    # -------------------------------------------------------------------------
    # EXPANSION
    # -------------------------------------------------------------------------

    def build_expansion_prompt(
        self,
        task: ParentTask | Task,
        num_subtasks: int,
        next_subtask_id: int = 1,
        domain_knowledge: str | None = None,
        additional_context: str = "",
        research_findings: str | None = None,
        bilingual: bool | None = None,
    ) -> PromptPair:
        """
        Build the subtask expansion prompt.

        With ``research_findings`` the prompt is the research-backed variant:
        the findings block sits between the domain knowledge and the task
        description.

        Args:
            task: Parent task (id, title, description, details).
            num_subtasks: Number of subtasks to ask for.
            next_subtask_id: ID the first subtask should carry.
            domain_knowledge: Optional business knowledge.
            additional_context: Free-text context from the user.
            research_findings: Output of the research provider.
            bilingual: Override the builder's bilingual default.

        Returns:
            PromptPair for the expansion call.
        """
        bilingual = self.bilingual if bilingual is None else bilingual
        research = bool(research_findings)

        guidelines = list(EXPAND_GUIDELINES)
        if domain_knowledge:
            guidelines += [g.format(items="subtasks") for g in KNOWLEDGE_GUIDELINES]

        system = self._templates["expand_system"].format(
            num_subtasks=num_subtasks,
            research_intro=RESEARCH_INTRO if research else "",
            guidelines=self._numbered(guidelines),
            steps_suffix=" that incorporate best practices from the research" if research else "",
        )

        context_blocks = self._knowledge_block(domain_knowledge)
        if research:
            context_blocks += f"RESEARCH FINDINGS:\n{research_findings.strip()}\n\n"

        if research:
            extra = additional_context or "No additional context provided."
            additional = f"\nADDITIONAL CONTEXT PROVIDED BY USER:\n{extra}\n"
        elif additional_context:
            additional = f"\nAdditional context to consider: {additional_context}\n"
        else:
            additional = ""

        example = SUBTASK_EXAMPLE_BILINGUAL if bilingual else SUBTASK_EXAMPLE
        json_structure = example % {
            "next_id": next_subtask_id,
            "description": (
                "Detailed description incorporating research" if research else "Detailed description"
            ),
            "details": (
                "Implementation details with best practices" if research else "Implementation details"
            ),
        }

        user = self._templates["expand_user"].format(
            context_blocks=context_blocks,
            num_subtasks=num_subtasks,
            qualifier="well-researched, " if research else "",
            task_id=task.id,
            title=task.title,
            description=task.description,
            details=task.details or "None provided",
            additional_context=additional,
            translation_instruction=(
                EXPAND_TRANSLATION_INSTRUCTION.format(language=self.language) if bilingual else ""
            ),
            json_structure=json_structure,
        )

        logger.debug(
            f"Built {'research-backed ' if research else ''}expansion prompt for task {task.id}"
        )
        return PromptPair(system=system, user=user)

    # -------------------------------------------------------------------------
    # RESEARCH AND ANALYSIS
    # -------------------------------------------------------------------------

    def build_research_query(
        self,
        task: ParentTask | Task,
        domain_knowledge: str | None = None,
    ) -> str:
        """Build the single-message query for the research provider."""
        knowledge_section = ""
        if domain_knowledge:
            knowledge_section = (
                "\n\nBUSINESS KNOWLEDGE CONTEXT:\n"
                "The task should be implemented in accordance with the following "
                "business knowledge and domain-specific information:\n"
                f"{domain_knowledge}\n"
            )
        return self._templates["research_query"].format(
            title=task.title,
            description=task.description,
            knowledge_section=knowledge_section,
        )

    def build_complexity_prompt(
        self,
        tasks: Sequence[Task | ParentTask],
        default_subtasks: int = 3,
    ) -> PromptPair:
        """
        Build the complexity-analysis prompt.

        The recommended subtask range is ``max(3, default - 1)`` to
        ``min(8, default + 2)``.
        """
        blocks = []
        for task in tasks:
            dependencies = getattr(task, "dependencies", [])
            priority = getattr(task, "priority", None)
            blocks.append(
                "\n".join([
                    f"Task ID: {task.id}",
                    f"Title: {task.title}",
                    f"Description: {task.description}",
                    f"Details: {task.details}",
                    f"Dependencies: {json.dumps(list(dependencies))}",
                    f"Priority: {priority.value if priority else 'medium'}",
                ])
            )

        json_structure = COMPLEXITY_EXAMPLE % {
            "min": max(3, default_subtasks - 1),
            "max": min(8, default_subtasks + 2),
        }
        user = self._templates["complexity"].format(
            tasks_block="\n---\n".join(blocks),
            json_structure=json_structure,
        )
        system = (
            "You are an expert software architect who estimates implementation "
            "complexity. Respond with valid JSON only."
        )
        return PromptPair(system=system, user=user)

    # -------------------------------------------------------------------------
    # TEMPLATE MANAGEMENT
    # -------------------------------------------------------------------------

    def register_template(self, template: PromptTemplate) -> None:
        """
        Replace a template by name, e.g. to localize the instructions.

        Args:
            template: PromptTemplate to register.
        """
        expected = ALL_TEMPLATES.get(template.name)
        if expected is not None:
            missing = set(expected.variables) - set(template.variables)
            if missing:
                raise ValueError(f"Template {template.name} lacks variables: {sorted(missing)}")
        self._templates[template.name] = template
        logger.debug(f"Registered template: {template.name}")

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    @staticmethod
    def _numbered(lines: list[str]) -> str:
        return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, start=1))

    @staticmethod
    def _knowledge_block(domain_knowledge: str | None) -> str:
        if not domain_knowledge:
            return ""
        return f"BUSINESS KNOWLEDGE CONTEXT:\n{domain_knowledge}\n\n"
