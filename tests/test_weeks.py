# tests/test_weeks.py
from datetime import date

from selffin.models import ScheduledTask, ScheduleData
from selffin.scheduler import generate_project_schedule
from selffin.weeks import assign_weeks, weekly_plan


def test_weekly_plan_for_project(project_request):
    schedule = generate_project_schedule(project_request)
    plan = weekly_plan(schedule, project_request.basic_info)

    # 3 March to 24 March spans four calendar weeks
    assert plan.total_weeks == 4
    assert [w.week for w in plan.schedule] == [1, 2, 3, 4]
    assert plan.schedule[0].start_date == date(2025, 3, 3)
    assert plan.schedule[0].end_date == date(2025, 3, 9)
    assert plan.schedule[0].title == "Demolition and strip-out"
    assert plan.total_budget == schedule.total_cost
    assert sum(w.cost for w in plan.schedule) == schedule.total_cost
    assert sum(len(w.tasks) for w in plan.schedule) == len(schedule.tasks)
    assert "24 pyeong" in plan.summary


def test_tasks_go_to_the_week_of_their_midpoint():
    start = date(2025, 3, 3)

    def task(task_id, first, last, category="painting", diy=False):
        return ScheduledTask(
            id=task_id, name=task_id, category=category, duration=1,
            start_date=first, end_date=last, diy_possible=diy, estimated_cost=100,
        )

    schedule = ScheduleData(
        start_date=start,
        end_date=date(2025, 3, 28),
        total_cost=300,
        tasks=[
            task("a", date(2025, 3, 3), date(2025, 3, 4), category="demolition"),
            # 7 to 11 March has its midpoint on the 9th, still week 1
            task("b", date(2025, 3, 7), date(2025, 3, 11), diy=True),
            task("c", date(2025, 3, 26), date(2025, 3, 28), diy=True),
        ],
    )
    assert assign_weeks(schedule) == {"a": 1, "b": 1, "c": 4}

    plan = weekly_plan(schedule)
    assert plan.total_weeks == 4
    # weeks without work still appear
    assert plan.schedule[1].tasks == [] and plan.schedule[2].tasks == []
    assert plan.schedule[1].title == "General works"
    assert plan.schedule[0].contractor is True
    assert plan.schedule[3].contractor is False
    assert plan.schedule[3].title == "Painting and finishes"
    assert plan.summary.startswith("3 tasks over 4 week(s)")
