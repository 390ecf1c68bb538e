# selffin/ingestion.py
import logging
import os
import re
from typing import List, Optional

import numpy as np
import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from selffin.cpm import build_dependency_graph
from selffin.exceptions import NotFoundError, ValidationError
from selffin.models import Dependency, DependencyType, ScheduleData, Task
from selffin.project import get_project, set_custom_tasks
from selffin.utils import compute_duration

logger = logging.getLogger(__name__)

TYPE_AND_LAG = re.compile(r"^(FS|SS|FF|SF)\s*([+-]\s*\d+(?:\.\d+)?)?$", re.IGNORECASE)
TRUE_VALUES = {"1", "true", "yes", "y", "x", "o"}


def _detect_format(source, fmt: Optional[str]) -> str:
    if fmt:
        fmt = fmt.lower().lstrip(".")
    elif isinstance(source, (str, os.PathLike)):
        fmt = os.path.splitext(str(source))[1].lower().lstrip(".")
    else:
        fmt = "xlsx"
    if fmt in ("xlsx", "xls"):
        return "xlsx"
    if fmt == "csv":
        return "csv"
    raise ValidationError(f"Unsupported task file format: {fmt}", code="UNSUPPORTED_FORMAT")


def _as_id(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _as_bool(value) -> bool:
    if value is None:
        return False
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in TRUE_VALUES


def parse_dependency(token: str) -> Dependency:
    """
    Parse "ID", "ID:SS" or "ID:FS+2" into a Dependency.
    The id itself may contain anything but a colon.
    """
    token = token.strip()
    if not token:
        raise ValidationError("Empty dependency token", code="INVALID_DEPENDENCY")
    if ":" not in token:
        return Dependency(task_id=token)

    task_id, spec = token.split(":", 1)
    match = TYPE_AND_LAG.match(spec.strip())
    if not task_id.strip() or not match:
        raise ValidationError(f"Invalid dependency token: {token}", code="INVALID_DEPENDENCY")
    lag = float(match.group(2).replace(" ", "")) if match.group(2) else 0.0
    return Dependency(task_id=task_id.strip(), type=DependencyType(match.group(1).upper()), lag_days=lag)


def parse_dependencies(value) -> List[Dependency]:
    if value is None:
        return []
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    tokens = re.split(r"[,;]", str(value))
    return [parse_dependency(t) for t in tokens if t.strip()]


def format_dependency(dep: Dependency) -> str:
    if dep.type == DependencyType.FS and not dep.lag_days:
        return dep.task_id
    lag = f"{dep.lag_days:+g}" if dep.lag_days else ""
    return f"{dep.task_id}:{dep.type.value}{lag}"


def load_tasks(source, fmt: Optional[str] = None) -> List[Task]:
    """Read a custom task list from an xlsx or csv file (path or file object)."""
    if isinstance(source, (str, os.PathLike)) and not os.path.exists(source):
        raise NotFoundError(f"Task file not found: {source}", code="FILE_NOT_FOUND")

    kind = _detect_format(source, fmt)
    df = pd.read_excel(source) if kind == "xlsx" else pd.read_csv(source)
    df.columns = [str(c).strip().lower() for c in df.columns]
    if "task_id" not in df.columns:
        raise ValidationError("Task file is missing the task_id column", code="MISSING_COLUMN")

    for c in ("start_date", "end_date"):
        if c in df.columns:
            df[c] = pd.to_datetime(df[c], errors="coerce").dt.strftime("%Y-%m-%d")
    df = df.replace({np.nan: None})

    tasks = []
    for _, row in df.iterrows():
        task_id = _as_id(row.get("task_id"))
        if not task_id:
            continue

        duration = row.get("duration")
        if duration is None:
            if row.get("start_date") and row.get("end_date"):
                duration = compute_duration(row.get("start_date"), row.get("end_date"))
            else:
                raise ValidationError(
                    f"Task {task_id} has neither a duration nor start/end dates",
                    code="MISSING_DURATION",
                )

        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Task {task_id} has a non-numeric duration: {duration}", code="INVALID_DURATION"
            ) from None
        if not duration >= 0:
            raise ValidationError(
                f"Task {task_id} has a negative duration: {duration:g}", code="INVALID_DURATION"
            )

        dependencies = parse_dependencies(row.get("dependencies"))
        try:
            task = Task(
                id=task_id,
                name=row.get("task_name") or task_id,
                category=row.get("category") or "general",
                space=_as_id(row.get("space")),
                duration=duration,
                dependencies=dependencies,
                weather_dependent=_as_bool(row.get("weather_dependent")),
                diy_possible=_as_bool(row.get("diy_possible")),
                estimated_cost=float(row.get("estimated_cost") or 0),
                is_milestone=_as_bool(row.get("is_milestone")),
            )
        except (PydanticValidationError, TypeError, ValueError) as exc:
            raise ValidationError(f"Task {task_id} is invalid: {exc}", code="INVALID_TASK") from exc
        tasks.append(task)

    logger.info("loaded %d tasks from %s file", len(tasks), kind)
    return tasks


def import_tasks(engine, project_id: str, source, fmt: Optional[str] = None) -> List[Task]:
    """Load, validate and attach a custom task list to a project."""
    get_project(engine, project_id)
    tasks = load_tasks(source, fmt)
    if not tasks:
        raise ValidationError("Task file contains no tasks", code="EMPTY_TASK_FILE")
    build_dependency_graph(tasks)
    set_custom_tasks(engine, project_id, tasks)
    return tasks


def schedule_to_frame(schedule: ScheduleData) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "task_id": t.id,
            "task_name": t.name,
            "category": t.category,
            "space": t.space,
            "duration": t.duration,
            "start_date": t.start_date.isoformat() if t.start_date else None,
            "end_date": t.end_date.isoformat() if t.end_date else None,
            "early_start": t.early_start,
            "early_finish": t.early_finish,
            "slack": round(t.slack, 3),
            "is_critical": t.is_critical,
            "dependencies": ", ".join(format_dependency(d) for d in t.dependencies),
            "estimated_cost": t.estimated_cost,
            "diy_possible": t.diy_possible,
        }
        for t in schedule.tasks
    ])


def export_schedule(schedule: ScheduleData, path: str, fmt: Optional[str] = None) -> str:
    kind = _detect_format(path, fmt)
    df = schedule_to_frame(schedule)
    if kind == "csv":
        df.to_csv(path, index=False)
    else:
        summary = pd.DataFrame([
            {"key": "start_date", "value": schedule.start_date.isoformat()},
            {"key": "end_date", "value": schedule.end_date.isoformat()},
            {"key": "total_duration", "value": schedule.total_duration},
            {"key": "total_calendar_days", "value": schedule.total_calendar_days},
            {"key": "total_cost", "value": schedule.total_cost},
            {"key": "critical_path", "value": " -> ".join(schedule.critical_path)},
        ])
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Tasks", index=False)
            summary.to_excel(writer, sheet_name="Summary", index=False)
    logger.info("exported %d tasks to %s", len(schedule.tasks), path)
    return path
