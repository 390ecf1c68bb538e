# selffin/progress.py

import logging
from datetime import date
from typing import Optional

from selffin.project import fetch_task_rows, get_latest_schedule
from selffin.utils import parse_user_date

logger = logging.getLogger(__name__)


class ProgressAgent:
    def __init__(self, engine):
        self.engine = engine

    def compute_expected_percent_done(self, planned_start, planned_finish, current_day: date) -> float:
        """
        piecewise approach:
        - 0% if current_day is before the planned start
        - partial fraction of elapsed days in between
        - 100% on or after the planned finish
        """
        start = parse_user_date(planned_start)
        finish = parse_user_date(planned_finish)
        if not start or not finish:
            return 0.0

        if current_day < start:
            return 0.0
        if current_day >= finish:
            return 100.0
        total_days = (finish - start).days
        if total_days <= 0:
            return 100.0
        fraction = (current_day - start).days / total_days
        return min(100.0, max(0.0, fraction * 100.0))

    def analyze_progress(self, project_id: str, as_of: Optional[date] = None):
        schedule = get_latest_schedule(self.engine, project_id)
        if schedule is None:
            return {"error": f"No schedule generated for project {project_id}"}

        current_day = as_of or date.today()
        rows = {r["task_id"]: r for r in fetch_task_rows(self.engine, project_id)}

        insights = []
        details = []
        completed = 0
        delayed = []
        weighted_actual = 0.0
        weighted_expected = 0.0
        total_weight = 0.0

        for task in schedule.tasks:
            row = rows.get(task.id)
            if row is None:
                # not synced yet
                continue
            actual = row.get("percent_done") or 0.0
            expected = round(self.compute_expected_percent_done(task.start_date, task.end_date, current_day), 1)

            if actual >= 100:
                completed += 1
            elif expected >= 100 or row.get("status") == "delayed":
                delayed.append(task.id)

            if actual < expected:
                insights.append(
                    f"Task '{task.name}' is behind schedule (progress: {actual:g}%, expected: {expected:.1f}%)."
                )
            elif actual > expected:
                insights.append(
                    f"Task '{task.name}' is ahead of schedule (progress: {actual:g}%, expected: {expected:.1f}%)."
                )

            # zero-length milestones still count
            weight = task.duration or 1.0
            weighted_actual += actual * weight
            weighted_expected += expected * weight
            total_weight += weight
            details.append({
                "task_id": task.id,
                "task_name": task.name,
                "planned_start": task.start_date.isoformat() if task.start_date else None,
                "planned_finish": task.end_date.isoformat() if task.end_date else None,
                "percent_done": actual,
                "expected_percent": expected,
                "status": row.get("status"),
                "is_critical": task.is_critical,
            })

        overall = round(weighted_actual / total_weight, 1) if total_weight else 0.0
        expected_overall = round(weighted_expected / total_weight, 1) if total_weight else 0.0
        logger.info(
            "progress for %s as of %s: %.1f%% (expected %.1f%%)",
            project_id, current_day, overall, expected_overall,
        )
        return {
            "project_id": project_id,
            "as_of": current_day.isoformat(),
            "overall_progress": overall,
            "expected_progress": expected_overall,
            "completed_tasks": completed,
            "delayed_tasks": delayed,
            "tasks": details,
            "insights": insights if insights else ["no major schedule deviations detected."],
        }
