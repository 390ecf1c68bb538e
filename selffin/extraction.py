# selffin/extraction.py
import logging
from typing import Dict, List

from selffin.catalog import (
    SPACE_NAMES,
    SPACE_TASK_TEMPLATES,
    TASK_COST_ESTIMATES,
    TaskTemplate,
    adjust_duration_by_area,
)
from selffin.exceptions import ValidationError
from selffin.models import Dependency, ProjectBasicInfo, ResidenceStatus, SpaceSelection, Task

logger = logging.getLogger(__name__)


def _space_area(space: SpaceSelection, basic_info: ProjectBasicInfo, space_count: int) -> float:
    if space.actual_area:
        return space.actual_area
    return basic_info.total_area / max(space_count, 1)


def _kept_templates(templates: List[TaskTemplate], scope: str) -> Dict[str, List[str]]:
    """
    Map each kept template id to its predecessor ids.

    Partial scope drops optional templates; their successors inherit the
    dropped template's predecessors so the chain stays connected.
    """
    by_id = {t.id: t for t in templates}
    dropped = {t.id for t in templates if scope == "partial" and t.optional}

    def resolve(dep_id: str, seen: set) -> List[str]:
        if dep_id not in by_id:
            return []
        if dep_id not in dropped:
            return [dep_id]
        if dep_id in seen:
            return []
        seen.add(dep_id)
        out = []
        for upstream in by_id[dep_id].dependencies:
            out.extend(resolve(upstream, seen))
        return out

    kept = {}
    for t in templates:
        if t.id in dropped:
            continue
        preds = []
        for dep_id in t.dependencies:
            for p in resolve(dep_id, set()):
                if p not in preds:
                    preds.append(p)
        kept[t.id] = preds
    return kept


def _occupied_warnings(template: TaskTemplate) -> List[str]:
    warnings = []
    if template.noise_level == "high":
        warnings.append("Occupied home: keep noisy work to daytime hours and notify neighbours")
    if template.dust_level == "high":
        warnings.append("Occupied home: seal living areas off from dust")
    return warnings


def extract_tasks(spaces: List[SpaceSelection], basic_info: ProjectBasicInfo) -> List[Task]:
    """
    Build the task list for the selected spaces from the catalogue.

    Task ids are "{space}_{template}". A space type selected more than once
    gets a numeric suffix from the second selection on ("bedroom_2_painting").
    """
    tasks: List[Task] = []
    seen_spaces: Dict[str, int] = {}
    occupied = basic_info.residence_status == ResidenceStatus.OCCUPIED

    for space in spaces:
        if space.id not in SPACE_TASK_TEMPLATES:
            raise ValidationError(f"Unknown space: {space.id}", code="UNKNOWN_SPACE")

        seen_spaces[space.id] = seen_spaces.get(space.id, 0) + 1
        prefix = space.id if seen_spaces[space.id] == 1 else f"{space.id}_{seen_spaces[space.id]}"
        space_name = space.name or SPACE_NAMES[space.id]
        area = _space_area(space, basic_info, len(spaces))

        templates = SPACE_TASK_TEMPLATES[space.id]
        kept = _kept_templates(templates, space.scope)
        for template in templates:
            if template.id not in kept:
                continue
            lag = template.dependency_delay_hours / 24.0
            warnings = list(template.warnings)
            if occupied:
                warnings.extend(_occupied_warnings(template))
            tasks.append(
                Task(
                    id=f"{prefix}_{template.id}",
                    name=f"{space_name} - {template.name}",
                    category=template.category,
                    space=prefix,
                    space_type=space.id,
                    duration=adjust_duration_by_area(template.base_duration, area),
                    dependencies=[
                        Dependency(task_id=f"{prefix}_{p}", lag_days=lag)
                        for p in kept[template.id]
                    ],
                    weather_dependent=template.weather_sensitive,
                    diy_possible=template.diy_possible,
                    estimated_cost=round(TASK_COST_ESTIMATES.get(template.category, 0) * area),
                    noise_level=template.noise_level,
                    dust_level=template.dust_level,
                    specialists=list(template.specialists),
                    tips=list(template.tips),
                    warnings=warnings,
                )
            )

    # drop links to anything that did not make it into the set
    known = {t.id for t in tasks}
    for t in tasks:
        t.dependencies = [d for d in t.dependencies if d.task_id in known]

    logger.info("extracted %d tasks from %d spaces", len(tasks), len(spaces))
    return tasks
