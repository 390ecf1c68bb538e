import json
from datetime import date
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
load_dotenv()

from selffin.config import get_settings
from selffin.database import init_db
from selffin.exceptions import DomainError
from selffin.ingestion import export_schedule, import_tasks
from selffin.llm_agent import run_llm_agent
from selffin.logging_config import setup_logging
from selffin.models import ProjectRequest
from selffin.progress import ProgressAgent
from selffin.project import create_project, get_project, list_projects, require_schedule
from selffin.project_management import (
    project_scenarios,
    run_what_if,
    schedule_project,
    set_project_start_date,
    simulate_stored_project,
    update_task_progress,
)
from selffin.scheduler import generate_project_schedule
from selffin.weeks import weekly_plan

app = typer.Typer()


def _dump(model):
    typer.echo(json.dumps(model.model_dump(mode="json"), indent=2, ensure_ascii=False))


def _fail(exc: DomainError):
    typer.echo(f"Error [{exc.code}]: {exc.message}", err=True)
    raise typer.Exit(code=1)


def _parse_deadline(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"Error [INVALID_DATE]: could not parse deadline {value}", err=True)
        raise typer.Exit(code=1)


def _load_request(project_file: str) -> ProjectRequest:
    with open(project_file, "r", encoding="utf-8") as f:
        try:
            return ProjectRequest.model_validate(json.load(f))
        except json.JSONDecodeError as exc:
            typer.echo(f"Error [INVALID_JSON]: {project_file}: {exc}", err=True)
        except PydanticValidationError as exc:
            typer.echo(f"Error [INVALID_PROJECT]: {project_file}\n{exc}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def configure():
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)


@app.command("create-project")
def create_project_cli(project_file: str):
    """Create a project from a JSON file holding basic info, spaces and schedule info."""
    request = _load_request(project_file)
    engine = init_db()
    project = create_project(engine, request)
    typer.echo(f"Project created: {project.id} ({project.name})")
    typer.echo(f"DB initialized at: {engine.url}")


@app.command("list-projects")
def list_projects_cli():
    engine = init_db()
    projects = list_projects(engine)
    if not projects:
        typer.echo("No projects found.")
    for p in projects:
        typer.echo(f"{p['id']}  {p['name']}  {p['status']}  start {p['start_date']}")


@app.command("plan")
def plan_cli(project_file: str):
    """Schedule a project file without storing anything."""
    request = _load_request(project_file)
    try:
        schedule = generate_project_schedule(request)
    except DomainError as exc:
        _fail(exc)
    _dump(schedule)


@app.command("generate-schedule")
def generate_schedule_cli(
    project_id: str,
    deadline: Optional[str] = typer.Option(None, help="Deadline date (YYYY-MM-DD)"),
):
    engine = init_db()
    try:
        schedule = schedule_project(engine, project_id, deadline=_parse_deadline(deadline))
    except DomainError as exc:
        _fail(exc)
    typer.echo(
        f"Schedule for {project_id}: {schedule.start_date} -> {schedule.end_date}, "
        f"{schedule.total_duration:g} working days, {len(schedule.tasks)} tasks"
    )
    typer.echo(f"Critical path: {' -> '.join(schedule.critical_path)}")
    for w in schedule.warnings:
        typer.echo(f"warning: {w}")


@app.command("simulate")
def simulate_cli(
    project_id: str,
    iterations: Optional[int] = typer.Option(None, help="Number of Monte Carlo runs"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducible runs"),
    distribution: str = typer.Option("pert", help="pert, triangular or normal"),
    deadline: Optional[str] = typer.Option(None, help="Deadline date (YYYY-MM-DD)"),
):
    engine = init_db()
    try:
        result = simulate_stored_project(
            engine,
            project_id,
            iterations=iterations,
            seed=seed,
            distribution=distribution,
            deadline=_parse_deadline(deadline),
        )
    except DomainError as exc:
        _fail(exc)
    _dump(result)


@app.command("what-if")
def what_if_cli(
    project_id: str,
    scenario_id: str,
    iterations: Optional[int] = typer.Option(None),
    seed: Optional[int] = typer.Option(None),
):
    engine = init_db()
    try:
        analysis = run_what_if(engine, project_id, scenario_id, iterations=iterations, seed=seed)
    except DomainError as exc:
        _fail(exc)
    _dump(analysis)


@app.command("scenarios")
def scenarios_cli(
    project_id: str,
    iterations: Optional[int] = typer.Option(None),
    seed: Optional[int] = typer.Option(None),
):
    engine = init_db()
    try:
        scenarios = project_scenarios(engine, project_id, iterations=iterations, seed=seed)
    except DomainError as exc:
        _fail(exc)
    for s in scenarios:
        typer.echo(
            f"{s.type}: {s.duration:g} days, ends {s.end_date}, cost {s.cost:,.0f}, "
            f"reliability {s.reliability}%, risk {s.risk_level}"
        )


@app.command("weekly-plan")
def weekly_plan_cli(project_id: str):
    engine = init_db()
    try:
        project = get_project(engine, project_id)
        plan = weekly_plan(require_schedule(engine, project_id), project.basic_info)
    except DomainError as exc:
        _fail(exc)
    typer.echo(plan.summary)
    for week in plan.schedule:
        typer.echo(f"week {week.week} ({week.start_date} - {week.end_date}): {week.title}")
        for name in week.tasks:
            typer.echo(f"  - {name}")


@app.command("update-task")
def update_task_cli(project_id: str, task_id: str, percent_done: float):
    engine = init_db()
    try:
        update_task_progress(engine, project_id, task_id, percent_done)
    except DomainError as exc:
        _fail(exc)
    typer.echo(f"Updated task {task_id} for project {project_id} to {percent_done}%.")


@app.command("set-start-date")
def set_start_date_cli(project_id: str, user_date_str: str):
    engine = init_db()
    try:
        start = set_project_start_date(engine, project_id, user_date_str)
    except DomainError as exc:
        _fail(exc)
    typer.echo(f"Set start date for {project_id} to {start}.")


@app.command("progress")
def progress_cli(
    project_id: str,
    as_of: Optional[str] = typer.Option(None, help="Status date (YYYY-MM-DD), defaults to today"),
):
    engine = init_db()
    agent = ProgressAgent(engine)
    result = agent.analyze_progress(project_id, as_of=_parse_deadline(as_of))
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command("import-tasks")
def import_tasks_cli(project_id: str, file_path: str):
    engine = init_db()
    try:
        tasks = import_tasks(engine, project_id, file_path)
    except DomainError as exc:
        _fail(exc)
    typer.echo(f"Imported {len(tasks)} tasks into project {project_id}.")


@app.command("export-schedule")
def export_schedule_cli(project_id: str, output_path: str):
    engine = init_db()
    try:
        export_schedule(require_schedule(engine, project_id), output_path)
    except DomainError as exc:
        _fail(exc)
    typer.echo(f"Schedule for {project_id} written to {output_path}.")


@app.command("agent-analyze")
def agent_analyze_cli(project_id: str, prompt: str):
    try:
        result = run_llm_agent(project_id, prompt)
    except DomainError as exc:
        _fail(exc)
    typer.echo("\nLLM Analysis:\n" + result)


@app.command("run-api")
def run_api_cli(host: str = "127.0.0.1", port: int = 8000):
    import uvicorn

    uvicorn.run("selffin.api:app", host=host, port=port)


def main():
    app()


if __name__ == "__main__":
    main()
