"""Unit tests for the prompt builder."""

import pytest

from taskforge.decomposition.models import ParentTask, Task
from taskforge.prompts.builder import PromptBuilder, PromptMode, PromptPair
from taskforge.prompts.templates import PromptTemplate, get_template


@pytest.fixture
def builder() -> PromptBuilder:
    return PromptBuilder()


@pytest.fixture
def parent_task() -> ParentTask:
    return ParentTask(
        id=4,
        title="Implement user authentication",
        description="Register, login and logout endpoints",
        details="Use JWT",
    )


class TestDecompositionPrompt:
    """Tests for build_decomposition_prompt."""

    def test_states_count_and_contract(self, builder, sample_prd):
        """Test the exact count and the JSON field names."""
        prompt = builder.build_decomposition_prompt(sample_prd, 5, source_document="prd.txt")

        assert "Create exactly 5 tasks, numbered from 1 to 5" in prompt.system
        for field in ('"id"', '"title"', '"dependencies"', '"priority"', '"testStrategy"'):
            assert field in prompt.system
        assert '"totalTasks": 5' in prompt.system
        assert '"sourceDocument": "prd.txt"' in prompt.system
        assert prompt.user.endswith(sample_prd)
        assert "into 5 tasks" in prompt.user

    def test_no_bilingual_fields_by_default(self, builder, sample_prd):
        """Test that translation instructions are opt-in."""
        prompt = builder.build_decomposition_prompt(sample_prd, 3)

        assert "titleTrans" not in prompt.system

    def test_bilingual_instructions(self, builder, sample_prd):
        """Test that bilingual mode names every twin field."""
        prompt = builder.build_decomposition_prompt(sample_prd, 3, bilingual=True)

        for twin in ("titleTrans", "descriptionTrans", "detailsTrans", "testStrategyTrans"):
            assert twin in prompt.system
        assert "Chinese translation of title" in prompt.system

    def test_domain_knowledge_is_injected_verbatim(self, builder, sample_prd):
        """Test knowledge placement and the authority instruction."""
        knowledge = "A 'ledger' is an append-only list of todo events."

        prompt = builder.build_decomposition_prompt(sample_prd, 3, domain_knowledge=knowledge)

        assert prompt.user.startswith(f"BUSINESS KNOWLEDGE CONTEXT:\n{knowledge}\n\n")
        assert prompt.user.index(knowledge) < prompt.user.index(sample_prd)
        assert "USE THE PROVIDED BUSINESS KNOWLEDGE AS A CRITICAL REFERENCE" in prompt.system

    def test_source_document_is_escaped(self, builder):
        """Test that quotes in the document name keep the example valid."""
        prompt = builder.build_decomposition_prompt("prd", 1, source_document='my "prd".txt')

        assert '"sourceDocument": "my \\"prd\\".txt"' in prompt.system


class TestExpansionPrompt:
    """Tests for build_expansion_prompt."""

    def test_plain_expansion(self, builder, parent_task):
        """Test count, task fields and the first subtask id."""
        prompt = builder.build_expansion_prompt(parent_task, 3, next_subtask_id=6)

        assert "into 3 specific subtasks" in prompt.system
        assert "Task ID: 4" in prompt.user
        assert "Title: Implement user authentication" in prompt.user
        assert "Current details: Use JWT" in prompt.user
        assert "Return exactly 3 subtasks" in prompt.user
        assert '"id": 6' in prompt.user
        assert "RESEARCH FINDINGS" not in prompt.user

    def test_missing_details_placeholder(self, builder):
        """Test the placeholder for empty details."""
        prompt = builder.build_expansion_prompt(ParentTask(id=1, title="a"), 2)

        assert "Current details: None provided" in prompt.user

    def test_additional_context(self, builder, parent_task):
        """Test free-text context in plain mode."""
        prompt = builder.build_expansion_prompt(parent_task, 3, additional_context="Use FastAPI")

        assert "Additional context to consider: Use FastAPI" in prompt.user

    def test_research_block_sits_between_knowledge_and_task(self, builder, parent_task):
        """Test the ordering of the research-backed prompt."""
        prompt = builder.build_expansion_prompt(
            parent_task,
            3,
            domain_knowledge="Accounts are called members.",
            research_findings="Use argon2 for password hashing.",
        )

        knowledge_at = prompt.user.index("Accounts are called members.")
        findings_at = prompt.user.index("RESEARCH FINDINGS:\nUse argon2 for password hashing.")
        task_at = prompt.user.index("Task ID: 4")
        assert knowledge_at < findings_at < task_at
        assert "current best practices" in prompt.system
        assert "ADDITIONAL CONTEXT PROVIDED BY USER:\nNo additional context provided." in prompt.user

    def test_bilingual_expansion(self, builder, parent_task):
        """Test translation instructions for subtasks."""
        prompt = builder.build_expansion_prompt(parent_task, 2, bilingual=True)

        assert '"titleTrans"' in prompt.user
        assert "provide Chinese translations" in prompt.user

    def test_accepts_full_task(self, builder):
        """Test that a full Task works as the parent."""
        task = Task(id=2, title="API", dependencies=[1])

        prompt = builder.build_expansion_prompt(task, 2)

        assert "Task ID: 2" in prompt.user


class TestDispatch:
    """Tests for PromptBuilder.build."""

    def test_decompose_mode(self, builder, sample_prd):
        """Test decomposition through the dispatcher."""
        prompt = builder.build(PromptMode.DECOMPOSE, sample_prd, 4)

        assert isinstance(prompt, PromptPair)
        assert "Create exactly 4 tasks" in prompt.system

    def test_decompose_needs_text(self, builder, parent_task):
        """Test that decomposition rejects a task source."""
        with pytest.raises(TypeError):
            builder.build("decompose", parent_task, 4)

    def test_expand_mode_accepts_dict(self, builder):
        """Test that a camelCase dict is accepted as the parent."""
        prompt = builder.build("expand", {"id": 3, "title": "Login"}, 2, next_subtask_id=2)

        assert "Task ID: 3" in prompt.user
        assert '"id": 2' in prompt.user

    def test_research_mode_requires_findings(self, builder, parent_task):
        """Test that research-backed expansion needs findings."""
        with pytest.raises(ValueError, match="research findings"):
            builder.build(PromptMode.EXPAND_RESEARCH, parent_task, 2)

    def test_research_mode(self, builder, parent_task):
        """Test research-backed expansion through the dispatcher."""
        prompt = builder.build(
            "expand+research", parent_task, 2, research_findings="Prefer short-lived tokens."
        )

        assert "RESEARCH FINDINGS:\nPrefer short-lived tokens." in prompt.user

    def test_combined(self):
        """Test the single-string form."""
        assert PromptPair(system="s", user="u").combined == "s\n\nu"


class TestResearchAndComplexityPrompts:
    """Tests for the research query and complexity prompts."""

    def test_research_query(self, builder, parent_task):
        """Test that the query names the task and appends knowledge."""
        query = builder.build_research_query(parent_task, domain_knowledge="Members, not users.")

        assert 'implement "Implement user authentication"' in query
        assert "best practices" in query
        assert query.rstrip().endswith("Members, not users.")

    @pytest.mark.parametrize(
        ("default", "expected"),
        [(3, "(3-5)"), (7, "(6-8)"), (1, "(3-3)")],
    )
    def test_complexity_range(self, builder, default, expected):
        """Test the recommended subtask range."""
        prompt = builder.build_complexity_prompt([ParentTask(id=1, title="a")], default)

        assert f"recommendedSubtasks\": number {expected}" in prompt.user

    def test_complexity_lists_every_task(self, builder, sample_task_items):
        """Test that each task appears with its id and priority."""
        tasks = [Task.model_validate(item) for item in sample_task_items]

        prompt = builder.build_complexity_prompt(tasks)

        assert prompt.user.count("Task ID:") == 3
        assert "Dependencies: [1, 2]" in prompt.user
        assert "Priority: high" in prompt.user


class TestTemplateRegistration:
    """Tests for template management."""

    def test_register_replacement(self, builder, sample_prd):
        """Test replacing a template with one using the same variables."""
        original = get_template("decompose_user")
        builder.register_template(
            PromptTemplate(
                name="decompose_user",
                template="{knowledge_section}PRD ({num_tasks} tasks):\n{source_text}",
                variables=original.variables,
            )
        )

        prompt = builder.build_decomposition_prompt(sample_prd, 2)

        assert prompt.user.startswith("PRD (2 tasks):")

    def test_register_rejects_missing_variables(self, builder):
        """Test that a replacement must accept every variable."""
        with pytest.raises(ValueError, match="lacks variables"):
            builder.register_template(
                PromptTemplate(name="decompose_user", template="{source_text}", variables=["source_text"])
            )

    def test_missing_variables(self):
        """Test PromptTemplate.get_missing_variables."""
        template = get_template("research_query")

        assert template.get_missing_variables(title="a") == ["description", "knowledge_section"]
