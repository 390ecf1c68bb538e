# selffin/database.py
import logging
import os

from sqlalchemy import (
    Boolean, Column, Float, ForeignKey, Integer, MetaData, String, Table, Text, create_engine
)
from sqlalchemy.engine import make_url

from selffin.config import get_settings

logger = logging.getLogger(__name__)

metadata = MetaData()

projects_table = Table(
    "projects",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("status", String, nullable=False),
    Column("created_at", String),
    Column("updated_at", String),
    Column("start_date", String),
    Column("total_area", Float),
    Column("budget", Float, nullable=True),
    Column("residence_status", String),
    Column("payload", Text),  # ProjectRequest JSON
    Column("custom_tasks", Text, nullable=True),  # imported Task list JSON
)

tasks_table = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", String, ForeignKey("projects.id")),
    Column("task_id", String),
    Column("task_name", String),
    Column("category", String),
    Column("space", String),
    Column("duration", Float),
    Column("planned_start", String),
    Column("planned_finish", String),
    Column("is_critical", Boolean),
    Column("percent_done", Float),
    Column("status", String),
    Column("updated_at", String),
)

schedules_table = Table(
    "schedules",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", String, ForeignKey("projects.id")),
    Column("created_at", String),
    Column("total_duration", Float),
    Column("start_date", String),
    Column("end_date", String),
    Column("payload", Text),  # ScheduleData JSON
)

simulations_table = Table(
    "simulations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", String, ForeignKey("projects.id")),
    Column("created_at", String),
    Column("iterations", Integer),
    Column("seed", Integer, nullable=True),
    Column("distribution", String),
    Column("mean", Float),
    Column("p50", Float),
    Column("p90", Float),
    Column("payload", Text),  # SimulationResult JSON
)

events_table = Table(
    "events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", String, ForeignKey("projects.id")),
    Column("event_type", String),
    Column("event_details", Text),
    Column("timestamp", String),
)

analysis_table = Table(
    "analysis_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", String, ForeignKey("projects.id")),
    Column("prompt", Text),
    Column("analysis_text", Text),
    Column("timestamp", String),
)


def _ensure_sqlite_dir(db_url: str):
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        folder = os.path.dirname(os.path.abspath(url.database))
        os.makedirs(folder, exist_ok=True)


def init_db(db_url: str = None):
    settings = get_settings()
    db_url = db_url or settings.db_url
    _ensure_sqlite_dir(db_url)
    logger.debug("initializing db at %s", db_url)
    engine = create_engine(db_url, echo=settings.db_echo)
    metadata.create_all(engine)
    return engine
