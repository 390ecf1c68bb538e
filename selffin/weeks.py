# selffin/weeks.py
import logging
from collections import Counter
from datetime import date, timedelta
from typing import Dict, List, Optional

from selffin.models import ProjectBasicInfo, ScheduleData, WeekPlan, WeeklyPlan

logger = logging.getLogger(__name__)

WEEK_LENGTH_DAYS = 7

PHASE_TITLES = {
    "demolition": "Demolition and strip-out",
    "plumbing": "Rough-in services",
    "electrical": "Rough-in services",
    "waterproofing": "Waterproofing and tiling",
    "tiling": "Waterproofing and tiling",
    "carpentry": "Carpentry and surfaces",
    "painting": "Painting and finishes",
    "installation": "Fixtures and installation",
    "cleaning": "Finishing and cleanup",
}


def assign_weeks(schedule: ScheduleData, week_length_days: int = WEEK_LENGTH_DAYS) -> Dict[str, int]:
    """
    Map each scheduled task to a 1-based week number.

    Weeks are consecutive calendar blocks from the schedule start and a task
    belongs to the week containing the midpoint of its planned dates.
    """
    weeks = {}
    for t in schedule.tasks:
        start = t.start_date or schedule.start_date
        end = t.end_date or start
        mid = start + (end - start) / 2
        weeks[t.id] = (mid - schedule.start_date).days // week_length_days + 1
    return weeks


def _title(categories: List[str]) -> str:
    if not categories:
        return "General works"
    # ties go to the category that appears first in the week
    counts = Counter(categories)
    top = max(counts.values())
    dominant = next(c for c in categories if counts[c] == top)
    return PHASE_TITLES.get(dominant, "General works")


def weekly_plan(schedule: ScheduleData, basic_info: Optional[ProjectBasicInfo] = None) -> WeeklyPlan:
    week_of = assign_weeks(schedule)
    total_weeks = max(week_of.values(), default=0)

    plans: List[WeekPlan] = []
    for week in range(1, total_weeks + 1):
        tasks = [t for t in schedule.tasks if week_of[t.id] == week]
        tasks.sort(key=lambda t: (t.early_start, t.id))
        start: date = schedule.start_date + timedelta(days=(week - 1) * WEEK_LENGTH_DAYS)

        specialists: List[str] = []
        tips: List[str] = []
        for t in tasks:
            for s in t.specialists:
                if s not in specialists:
                    specialists.append(s)
            if t.tips and t.tips[0] not in tips:
                tips.append(t.tips[0])

        plans.append(
            WeekPlan(
                week=week,
                title=_title([t.category for t in tasks]),
                start_date=start,
                end_date=start + timedelta(days=WEEK_LENGTH_DAYS - 1),
                tasks=[t.name for t in tasks],
                cost=float(sum(t.estimated_cost for t in tasks)),
                contractor=any(not t.diy_possible for t in tasks),
                specialists=specialists,
                tips=tips[:3],
            )
        )

    if basic_info is not None:
        summary = (
            f"{basic_info.total_area:g} pyeong {basic_info.preferred_style} renovation over "
            f"{total_weeks} week(s), estimated at {schedule.total_cost:,.0f} KRW."
        )
    else:
        summary = f"{len(schedule.tasks)} tasks over {total_weeks} week(s), estimated at {schedule.total_cost:,.0f} KRW."

    logger.debug("weekly plan: %d weeks", total_weeks)
    return WeeklyPlan(
        total_weeks=total_weeks,
        total_budget=schedule.total_cost,
        schedule=plans,
        summary=summary,
    )
