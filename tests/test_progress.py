# tests/test_progress.py
from datetime import date

import pytest

from selffin.progress import ProgressAgent
from selffin.project import create_project
from selffin.project_management import schedule_project, update_task_progress


@pytest.fixture
def scheduled_project(engine, project_request):
    project = create_project(engine, project_request)
    schedule_project(engine, project.id)
    return project


@pytest.mark.parametrize("today, expected", [
    (date(2025, 3, 2), 0.0),
    (date(2025, 3, 3), 0.0),
    (date(2025, 3, 5), 50.0),
    (date(2025, 3, 7), 100.0),
    (date(2025, 3, 9), 100.0),
])
def test_expected_percent_is_piecewise(engine, today, expected):
    agent = ProgressAgent(engine)
    assert agent.compute_expected_percent_done("2025-03-03", "2025-03-07", today) == expected


def test_expected_percent_without_dates(engine):
    assert ProgressAgent(engine).compute_expected_percent_done(None, "2025-03-07", date(2025, 3, 5)) == 0.0


def test_no_schedule_gives_error(engine, project_request):
    project = create_project(engine, project_request)
    result = ProgressAgent(engine).analyze_progress(project.id)
    assert "error" in result


def test_on_track_before_start(engine, scheduled_project):
    result = ProgressAgent(engine).analyze_progress(scheduled_project.id, as_of=date(2025, 3, 1))
    assert result["overall_progress"] == 0.0
    assert result["expected_progress"] == 0.0
    assert result["delayed_tasks"] == []
    assert result["insights"] == ["no major schedule deviations detected."]


def test_behind_and_ahead(engine, scheduled_project):
    pid = scheduled_project.id
    update_task_progress(engine, pid, "kitchen_demolition", 100)
    update_task_progress(engine, pid, "kitchen_plumbing_rough", 10)
    update_task_progress(engine, pid, "bathroom_tiling", 20)

    # Friday 7 March: kitchen demolition (3-4 March) and rough-in (5-6 March) are due
    result = ProgressAgent(engine).analyze_progress(pid, as_of=date(2025, 3, 7))

    assert result["completed_tasks"] == 1
    assert "kitchen_plumbing_rough" in result["delayed_tasks"]
    assert "kitchen_electrical_rough" in result["delayed_tasks"]
    assert "kitchen_demolition" not in result["delayed_tasks"]
    assert any("Kitchen - Rough plumbing" in i and "behind" in i for i in result["insights"])
    assert any("Bathroom - Tiling" in i and "ahead" in i for i in result["insights"])
    assert 0 < result["overall_progress"] < result["expected_progress"]

    demolition = next(t for t in result["tasks"] if t["task_id"] == "kitchen_demolition")
    assert demolition["planned_start"] == "2025-03-03"
    assert demolition["planned_finish"] == "2025-03-04"
    assert demolition["expected_percent"] == 100.0
