"""
Prompt templates for TaskForge requests.

This module holds the prompt texts for PRD decomposition, subtask
expansion (plain and research-backed), the research query itself, and
complexity analysis. JSON examples that appear inside templates are
passed in as values so their braces need no escaping.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# TEMPLATE MODEL
# =============================================================================


class PromptTemplate(BaseModel):
    """A reusable prompt template."""

    model_config = ConfigDict(frozen=True)

    name: str
    template: str
    description: str = ""
    variables: list[str] = Field(default_factory=list)

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Args:
            **kwargs: Template variable values.

        Returns:
            Formatted prompt string.
        """
        return self.template.format(**kwargs)

    def get_missing_variables(self, **kwargs: Any) -> list[str]:
        """Get list of variables not provided.

        Args:
            **kwargs: Provided variables.

        Returns:
            List of missing variable names.
        """
        return [v for v in self.variables if v not in kwargs]


# =============================================================================
# JSON CONTRACTS
# =============================================================================


TASK_STRUCTURE = """{
  "id": number,
  "title": string,
  "description": string,
  "status": "pending",
  "dependencies": number[] (IDs of tasks this depends on),
  "priority": "high" | "medium" | "low",
  "details": string (implementation details),
  "testStrategy": string (validation approach)
}"""

TASK_STRUCTURE_BILINGUAL = """{
  "id": number,
  "title": string,
  "titleTrans": string ({language} translation of title),
  "description": string,
  "descriptionTrans": string ({language} translation of description),
  "status": "pending",
  "dependencies": number[] (IDs of tasks this depends on),
  "priority": "high" | "medium" | "low",
  "details": string (implementation details),
  "detailsTrans": string ({language} translation of details),
  "testStrategy": string (validation approach),
  "testStrategyTrans": string ({language} translation of test strategy)
}"""

BATCH_EXAMPLE = """{
  "tasks": [
    {
      "id": 1,
      "title": "Setup Project Repository",
      "description": "...",
      ...
    },
    ...
  ],
  "metadata": {
    "projectName": "%(project_name)s",
    "totalTasks": %(num_tasks)d,
    "sourceDocument": "%(source_document)s",
    "generatedAt": "YYYY-MM-DD"
  }
}"""

SUBTASK_EXAMPLE = """[
  {
    "id": %(next_id)d,
    "title": "First subtask title",
    "description": "%(description)s",
    "dependencies": [],
    "details": "%(details)s",
    "testStrategy": "Verification approach"
  },
  ...more subtasks...
]"""

SUBTASK_EXAMPLE_BILINGUAL = """[
  {
    "id": %(next_id)d,
    "title": "First subtask title",
    "titleTrans": "第一个子任务标题",
    "description": "%(description)s",
    "descriptionTrans": "描述的中文翻译",
    "dependencies": [],
    "details": "%(details)s",
    "detailsTrans": "实现细节的中文翻译",
    "testStrategy": "Verification approach",
    "testStrategyTrans": "验证方法的中文翻译"
  },
  ...more subtasks...
]"""

COMPLEXITY_EXAMPLE = """[
  {
    "taskId": number,
    "taskTitle": string,
    "complexityScore": number (1-10),
    "recommendedSubtasks": number (%(min)d-%(max)d),
    "expansionPrompt": string (a specific prompt for generating good subtasks),
    "reasoning": string (brief explanation of your assessment)
  },
  ...
]"""


# =============================================================================
# DECOMPOSITION PROMPTS
# =============================================================================


DECOMPOSE_SYSTEM_PROMPT = PromptTemplate(
    name="decompose_system",
    description="System prompt for breaking a PRD into top-level tasks",
    template="""You are an AI assistant helping to break down a Product Requirements Document (PRD) into a set of sequential development tasks.
Your goal is to create {num_tasks} well-structured, actionable development tasks based on the PRD provided.

Each task should follow this JSON structure:
{task_structure}

Guidelines:
{guidelines}

Expected output format:
{batch_example}

Important: Your response must be valid JSON only, with no additional explanation or comments.""",
    variables=["num_tasks", "task_structure", "guidelines", "batch_example"],
)


DECOMPOSE_USER_PROMPT = PromptTemplate(
    name="decompose_user",
    description="User prompt carrying the PRD text",
    template="""{knowledge_section}Here's the Product Requirements Document (PRD) to break down into {num_tasks} tasks:

{source_text}""",
    variables=["knowledge_section", "num_tasks", "source_text"],
)


DECOMPOSE_GUIDELINES = [
    "Create exactly {num_tasks} tasks, numbered from 1 to {num_tasks}",
    "Each task should be atomic and focused on a single responsibility",
    "Order tasks logically - consider dependencies and implementation sequence",
    "Early tasks should focus on setup, core functionality first, then advanced features",
    "Include clear validation/testing approach for each task",
    "Set appropriate dependency IDs (a task can only depend on tasks with lower IDs)",
    "Assign priority (high/medium/low) based on criticality and dependency order",
    'Include detailed implementation guidance in the "details" field',
]

KNOWLEDGE_GUIDELINES = [
    "USE THE PROVIDED BUSINESS KNOWLEDGE AS A CRITICAL REFERENCE for terminology, "
    "domain concepts, and implementation requirements",
    "Treat the business knowledge as authoritative wherever it conflicts with general assumptions",
    "Ensure all {items} align with the business knowledge context and follow domain-specific patterns",
]

TRANSLATION_GUIDELINES = [
    "Provide {language} translations for each {item}'s title, description, details, and test strategy fields",
    'The "titleTrans" field should contain a natural, fluent {language} translation of the English title',
    'The "descriptionTrans" field should contain a natural, fluent {language} translation of the English description',
    'The "detailsTrans" field should contain a natural, fluent {language} translation of the English details',
    'The "testStrategyTrans" field should contain a natural, fluent {language} translation of the English test strategy',
    "Keep all original English content intact in the primary fields (title, description, details, testStrategy)",
    "Ensure all technical terms are correctly translated",
]


# =============================================================================
# EXPANSION PROMPTS
# =============================================================================


EXPAND_SYSTEM_PROMPT = PromptTemplate(
    name="expand_system",
    description="System prompt for breaking one task into subtasks",
    template="""You are an AI assistant helping with task breakdown for software development.
You need to break down a high-level task into {num_subtasks} specific subtasks that can be implemented one by one.
{research_intro}
Subtasks should:
{guidelines}

For each subtask, provide:
- A clear, specific title
- Detailed implementation steps{steps_suffix}
- Dependencies on previous subtasks
- Testing approach

Each subtask should be implementable in a focused coding session.""",
    variables=["num_subtasks", "research_intro", "guidelines", "steps_suffix"],
)


EXPAND_GUIDELINES = [
    "Be specific and actionable implementation steps",
    "Follow a logical sequence",
    "Each handle a distinct part of the parent task",
    "Include clear guidance on implementation approach",
    "Have appropriate dependency chains between subtasks",
    "Collectively cover all aspects of the parent task",
]

RESEARCH_INTRO = """
You have been provided with research on current best practices and implementation approaches.
Use this research to inform and enhance your subtask breakdown.
"""


EXPAND_USER_PROMPT = PromptTemplate(
    name="expand_user",
    description="User prompt describing the parent task",
    template="""{context_blocks}Please break down this task into {num_subtasks} specific, {qualifier}actionable subtasks:

Task ID: {task_id}
Title: {title}
Description: {description}
Current details: {details}
{additional_context}{translation_instruction}

Return exactly {num_subtasks} subtasks with the following JSON structure:
{json_structure}

Note on dependencies: Subtasks can depend on other subtasks with lower IDs. Use an empty array if there are no dependencies.""",
    variables=[
        "context_blocks",
        "num_subtasks",
        "qualifier",
        "task_id",
        "title",
        "description",
        "details",
        "additional_context",
        "translation_instruction",
        "json_structure",
    ],
)


EXPAND_TRANSLATION_INSTRUCTION = """
IMPORTANT: For each subtask, also provide {language} translations for the title, description, details, and test strategy fields.
These translations should be natural and fluent {language} that accurately conveys the original English content.
Include these translations in the "titleTrans", "descriptionTrans", "detailsTrans", and "testStrategyTrans" fields in the JSON response."""


# =============================================================================
# RESEARCH AND ANALYSIS PROMPTS
# =============================================================================


RESEARCH_QUERY_PROMPT = PromptTemplate(
    name="research_query",
    description="Query sent to the research provider before expansion",
    template="""I need to implement "{title}" which involves: "{description}".
What are current best practices, libraries, design patterns, and implementation approaches?
Include concrete code examples and technical considerations where relevant.{knowledge_section}""",
    variables=["title", "description", "knowledge_section"],
)


COMPLEXITY_PROMPT = PromptTemplate(
    name="complexity",
    description="Ask for a complexity score and subtask recommendation per task",
    template="""Analyze the complexity of the following tasks and provide recommendations for subtask breakdown:

{tasks_block}

Analyze each task and return a JSON array with the following structure for each task:
{json_structure}

IMPORTANT: Make sure to include an analysis for EVERY task listed above, with the correct taskId matching each task's ID.
""",
    variables=["tasks_block", "json_structure"],
)


# =============================================================================
# REGISTRY
# =============================================================================


ALL_TEMPLATES: dict[str, PromptTemplate] = {
    # Decomposition
    "decompose_system": DECOMPOSE_SYSTEM_PROMPT,
    "decompose_user": DECOMPOSE_USER_PROMPT,
    # Expansion
    "expand_system": EXPAND_SYSTEM_PROMPT,
    "expand_user": EXPAND_USER_PROMPT,
    # Research and analysis
    "research_query": RESEARCH_QUERY_PROMPT,
    "complexity": COMPLEXITY_PROMPT,
}


def get_template(name: str) -> PromptTemplate | None:
    """Get a template by name.

    Args:
        name: Template name.

    Returns:
        PromptTemplate if found, None otherwise.
    """
    return ALL_TEMPLATES.get(name)
