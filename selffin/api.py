# selffin/api.py
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from selffin.config import get_settings
from selffin.database import init_db
from selffin.exceptions import BusinessRuleError, DomainError, NotFoundError, ValidationError
from selffin.ingestion import import_tasks
from selffin.llm_agent import run_llm_agent
from selffin.logging_config import setup_logging
from selffin.models import Project, ProjectRequest, ScheduleData, SimulationResult
from selffin.progress import ProgressAgent
from selffin.project import (
    create_project,
    delete_project,
    get_project,
    list_projects,
    require_schedule,
)
from selffin.project_management import (
    project_scenarios,
    run_what_if,
    schedule_project,
    set_project_start_date,
    simulate_stored_project,
    update_task_progress,
)
from selffin.scheduler import generate_project_schedule, recommend
from selffin.weeks import weekly_plan
from selffin.whatif import SCENARIOS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    yield


app = FastAPI(title="SELFFIN renovation scheduler", lifespan=lifespan)

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    BusinessRuleError: 409,
}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, status, exc.code, exc.message)
    return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.code})


class SimulationRequest(BaseModel):
    iterations: Optional[int] = None
    seed: Optional[int] = None
    distribution: str = "pert"
    deadline: Optional[date] = None


class WhatIfRequest(BaseModel):
    scenario_id: str
    iterations: Optional[int] = None
    seed: Optional[int] = None


class ProgressUpdate(BaseModel):
    percent_done: float


class StartDateRequest(BaseModel):
    start_date: str


class AdviseRequest(BaseModel):
    prompt: str = "Summarise the schedule risks and what to watch next."


@app.get("/")
def root():
    return {"message": "Welcome to the SELFFIN renovation scheduling API"}


@app.post("/generate-schedule")
def generate_schedule_endpoint(request: ProjectRequest):
    schedule = generate_project_schedule(request)
    return {
        "schedule": schedule,
        "weekly_plan": weekly_plan(schedule, request.basic_info),
        "recommendations": recommend(schedule, request.basic_info),
    }


@app.post("/projects", status_code=201, response_model=Project)
def create_project_endpoint(request: ProjectRequest):
    engine = init_db()
    return create_project(engine, request)


@app.get("/projects")
def list_projects_endpoint():
    engine = init_db()
    return {"projects": list_projects(engine)}


@app.get("/projects/{project_id}", response_model=Project)
def get_project_endpoint(project_id: str):
    engine = init_db()
    return get_project(engine, project_id)


@app.delete("/projects/{project_id}")
def delete_project_endpoint(project_id: str):
    engine = init_db()
    delete_project(engine, project_id)
    return {"status": "deleted", "project_id": project_id}


@app.post("/projects/{project_id}/schedule", response_model=ScheduleData)
def create_schedule_endpoint(project_id: str, deadline: Optional[date] = None):
    engine = init_db()
    return schedule_project(engine, project_id, deadline=deadline)


@app.get("/projects/{project_id}/schedule", response_model=ScheduleData)
def get_schedule_endpoint(project_id: str):
    engine = init_db()
    get_project(engine, project_id)
    return require_schedule(engine, project_id)


@app.post("/projects/{project_id}/simulate", response_model=SimulationResult)
def simulate_endpoint(project_id: str, request: Optional[SimulationRequest] = None):
    request = request or SimulationRequest()
    engine = init_db()
    return simulate_stored_project(
        engine,
        project_id,
        iterations=request.iterations,
        seed=request.seed,
        distribution=request.distribution,
        deadline=request.deadline,
    )


@app.get("/scenarios")
def list_scenarios_endpoint():
    return {"scenarios": list(SCENARIOS.values())}


@app.post("/projects/{project_id}/what-if")
def what_if_endpoint(project_id: str, request: WhatIfRequest):
    engine = init_db()
    return run_what_if(engine, project_id, request.scenario_id, iterations=request.iterations, seed=request.seed)


@app.get("/projects/{project_id}/scenarios")
def project_scenarios_endpoint(project_id: str, iterations: Optional[int] = None, seed: Optional[int] = None):
    engine = init_db()
    return {"scenarios": project_scenarios(engine, project_id, iterations=iterations, seed=seed)}


@app.get("/projects/{project_id}/weekly-plan")
def weekly_plan_endpoint(project_id: str):
    engine = init_db()
    project = get_project(engine, project_id)
    return weekly_plan(require_schedule(engine, project_id), project.basic_info)


@app.post("/projects/{project_id}/tasks/{task_id}/progress")
def update_progress_endpoint(project_id: str, task_id: str, update: ProgressUpdate):
    engine = init_db()
    get_project(engine, project_id)
    status = update_task_progress(engine, project_id, task_id, update.percent_done)
    return {"project_id": project_id, "task_id": task_id, "percent_done": update.percent_done, "status": status}


@app.post("/projects/{project_id}/start-date")
def set_start_date_endpoint(project_id: str, request: StartDateRequest):
    engine = init_db()
    start = set_project_start_date(engine, project_id, request.start_date)
    return {"project_id": project_id, "start_date": start}


@app.get("/projects/{project_id}/progress")
def progress_endpoint(project_id: str, as_of: Optional[date] = None):
    engine = init_db()
    get_project(engine, project_id)
    result = ProgressAgent(engine).analyze_progress(project_id, as_of=as_of)
    if "error" in result:
        raise HTTPException(status_code=404, detail=result["error"])
    return result


@app.post("/projects/{project_id}/import-tasks")
def import_tasks_endpoint(project_id: str, file_path: str):
    engine = init_db()
    tasks = import_tasks(engine, project_id, file_path)
    return {"status": "success", "project_id": project_id, "tasks": len(tasks)}


@app.post("/projects/{project_id}/advise")
def advise_endpoint(project_id: str, request: Optional[AdviseRequest] = None):
    request = request or AdviseRequest()
    engine = init_db()
    get_project(engine, project_id)
    analysis = run_llm_agent(project_id, request.prompt, engine=engine)
    return {"project_id": project_id, "analysis": analysis}
