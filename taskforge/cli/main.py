"""Main CLI entry point using Typer."""

from collections.abc import Awaitable, Callable
from pathlib import Path

import anyio
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from taskforge import __version__
from taskforge.core.config import configure_logging, get_settings
from taskforge.core.errors import ConfigurationError, ProviderError
from taskforge.core.pipeline import GenerationPipeline
from taskforge.decomposition.models import FALLBACK_NOTE, TaskStatus, localize
from taskforge.decomposition.store import TaskStore, TaskStoreError
from taskforge.providers.gateway import ProviderGateway

app = typer.Typer(
    name="taskforge",
    help="TaskForge - turn requirement documents into dependency-ordered tasks",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]TaskForge[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    TaskForge - break a PRD into tasks and tasks into subtasks.

    Uses Anthropic for generation and, optionally, Perplexity for
    research-backed expansion.
    """
    configure_logging()


# =============================================================================
# HELPERS
# =============================================================================


def create_pipeline(bilingual: bool | None = None) -> GenerationPipeline:
    """Build the pipeline used by every command."""
    return GenerationPipeline(ProviderGateway(console=console), bilingual=bilingual)


def _store(tasks_file: Path | None) -> TaskStore:
    return TaskStore(tasks_file or get_settings().taskforge_tasks_file)


def _read_knowledge(knowledge: Path | None) -> str | None:
    if knowledge is None:
        return None
    if not knowledge.is_file():
        console.print(f"[bold red]Knowledge file not found: {knowledge}[/bold red]")
        raise typer.Exit(1)
    console.print(f"[dim]Loaded business knowledge from {knowledge}[/dim]")
    return knowledge.read_text(encoding="utf-8")


def _execute(func: Callable[[], Awaitable[None]]) -> None:
    """Run an async command body, turning user-facing errors into exit code 1."""
    try:
        anyio.run(func)
    except (ConfigurationError, ProviderError, TaskStoreError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e


def _tasks_file_option() -> Path | None:
    return typer.Option(None, "--file", "-f", help="Tasks file (defaults to TASKFORGE_TASKS_FILE)")


# =============================================================================
# COMMANDS
# =============================================================================


@app.command("parse-prd")
def parse_prd(
    prd: Path = typer.Argument(..., help="Path to the PRD file"),
    num_tasks: int | None = typer.Option(
        None,
        "--num-tasks",
        "-n",
        min=1,
        help="Number of tasks to generate",
    ),
    knowledge: Path | None = typer.Option(
        None,
        "--knowledge",
        "-k",
        help="Business knowledge file used as authoritative context",
    ),
    bilingual: bool = typer.Option(
        False,
        "--bilingual",
        "-b",
        help="Also generate Chinese translations of every text field",
    ),
    tasks_file: Path | None = _tasks_file_option(),
) -> None:
    """
    Generate tasks from a PRD and write them to the tasks file.

    Example:
        taskforge parse-prd docs/prd.txt -n 8 --knowledge docs/domain.md
    """
    if not prd.is_file():
        console.print(f"[bold red]PRD file not found: {prd}[/bold red]")
        raise typer.Exit(1)

    source_text = prd.read_text(encoding="utf-8")
    domain_knowledge = _read_knowledge(knowledge)
    count = num_tasks or get_settings().taskforge_default_tasks
    store = _store(tasks_file)

    async def execute() -> None:
        pipeline = create_pipeline(bilingual or None)
        batch = await pipeline.generate_tasks(
            source_text,
            count,
            source_document=str(prd),
            domain_knowledge=domain_knowledge,
        )
        store.save_batch(batch)

        if batch.is_fallback:
            console.print(f"[yellow]{FALLBACK_NOTE} Review the placeholder tasks.[/yellow]")
        console.print(
            f"[green]Generated {len(batch.tasks)} tasks and saved them to {store.path}[/green]"
        )

    _execute(execute)


@app.command()
def expand(
    task_id: int = typer.Option(..., "--id", "-i", help="ID of the task to expand"),
    num: int | None = typer.Option(
        None,
        "--num",
        "-n",
        min=1,
        help="Number of subtasks to generate",
    ),
    research: bool = typer.Option(
        False,
        "--research",
        "-r",
        help="Research best practices with Perplexity first",
    ),
    prompt: str = typer.Option("", "--prompt", "-p", help="Additional context for the model"),
    knowledge: Path | None = typer.Option(
        None,
        "--knowledge",
        "-k",
        help="Business knowledge file used as authoritative context",
    ),
    bilingual: bool = typer.Option(
        False,
        "--bilingual",
        "-b",
        help="Also generate Chinese translations of every text field",
    ),
    tasks_file: Path | None = _tasks_file_option(),
) -> None:
    """
    Break one task into subtasks and append them to the task.

    Example:
        taskforge expand --id 3 --num 5 --research
    """
    domain_knowledge = _read_knowledge(knowledge)
    store = _store(tasks_file)

    async def execute() -> None:
        parent = store.get_parent(task_id)
        next_id = store.next_subtask_id(task_id)

        pipeline = create_pipeline(bilingual or None)
        result = await pipeline.expand_task(
            parent,
            num,
            next_subtask_id=next_id,
            domain_knowledge=domain_knowledge,
            additional_context=prompt,
            research=research,
        )
        store.add_subtasks(task_id, result.subtasks)

        if result.fallback:
            console.print(f"[yellow]{FALLBACK_NOTE} Review the placeholder subtasks.[/yellow]")
        table = Table(title=f"Subtasks of task {task_id}")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="bold")
        table.add_column("Dependencies")
        for subtask in result:
            deps = ", ".join(str(dep) for dep in subtask.dependencies) or "-"
            table.add_row(f"{task_id}.{subtask.id}", subtask.title, deps)
        console.print(table)

    _execute(execute)


@app.command("analyze-complexity")
def analyze_complexity(
    tasks_file: Path | None = _tasks_file_option(),
) -> None:
    """
    Score every task's complexity and recommend a subtask count.
    """
    store = _store(tasks_file)

    async def execute() -> None:
        tasks = store.load_tasks()
        pipeline = create_pipeline()
        assessments = await pipeline.analyze_complexity(tasks)

        table = Table(title="Complexity Analysis")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="bold")
        table.add_column("Score")
        table.add_column("Subtasks")
        table.add_column("Reasoning")

        for assessment in sorted(assessments, key=lambda a: a.complexity_score, reverse=True):
            color = (
                "red" if assessment.complexity_score >= 8
                else "yellow" if assessment.complexity_score >= 5
                else "green"
            )
            reasoning = assessment.reasoning
            table.add_row(
                str(assessment.task_id),
                assessment.task_title,
                f"[{color}]{assessment.complexity_score}[/{color}]",
                str(assessment.recommended_subtasks),
                reasoning[:60] + "..." if len(reasoning) > 60 else reasoning,
            )

        console.print(table)

    _execute(execute)


@app.command("list")
def list_tasks(
    localized: bool = typer.Option(
        False,
        "--localized",
        "-l",
        help="Show translated fields where available",
    ),
    tasks_file: Path | None = _tasks_file_option(),
) -> None:
    """
    Show the tasks in the tasks file.
    """
    store = _store(tasks_file)
    try:
        data = store.load()
    except TaskStoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    metadata = data.get("metadata") or {}
    console.print(
        Panel(
            f"Source: {metadata.get('sourceDocument') or '-'}\n"
            f"Generated: {metadata.get('generatedAt') or '-'}",
            title=f"[bold blue]{metadata.get('projectName', 'Tasks')}[/bold blue]",
            border_style="blue",
        )
    )

    status_colors = {
        TaskStatus.PENDING.value: "yellow",
        TaskStatus.DONE.value: "green",
        TaskStatus.DEFERRED.value: "dim",
    }

    table = Table(title="Tasks")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Dependencies")

    for task in data["tasks"]:
        if localized:
            task = localize(task)
        status = task.get("status", TaskStatus.PENDING.value)
        color = status_colors.get(status, "white")
        deps = ", ".join(str(dep) for dep in task.get("dependencies", [])) or "-"
        table.add_row(
            str(task.get("id")),
            task.get("title", ""),
            f"[{color}]{status}[/{color}]",
            task.get("priority", "-"),
            deps,
        )
        for subtask in task.get("subtasks", []):
            table.add_row(
                f"  {task.get('id')}.{subtask.get('id')}",
                f"[dim]{subtask.get('title', '')}[/dim]",
                subtask.get("status", TaskStatus.PENDING.value),
                "",
                ", ".join(str(dep) for dep in subtask.get("dependencies", [])) or "-",
            )

    console.print(table)


@app.command("set-status")
def set_status(
    task_id: int = typer.Option(..., "--id", "-i", help="ID of the task"),
    status: TaskStatus = typer.Option(..., "--status", "-s", help="New status"),
    tasks_file: Path | None = _tasks_file_option(),
) -> None:
    """
    Update the status of a task.
    """
    store = _store(tasks_file)
    try:
        store.update_status(task_id, status)
    except TaskStoreError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1) from e

    console.print(f"[green]Task {task_id} marked {status.value}[/green]")


if __name__ == "__main__":
    app()
