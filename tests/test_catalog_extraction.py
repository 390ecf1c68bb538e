# tests/test_catalog_extraction.py
import pytest

from selffin.catalog import SPACE_TASK_TEMPLATES, adjust_duration_by_area, can_work_concurrently, category_color
from selffin.exceptions import ValidationError
from selffin.extraction import extract_tasks
from selffin.models import ProjectBasicInfo, SpaceSelection


def basic(**kwargs):
    data = {"total_area": 20}
    data.update(kwargs)
    return ProjectBasicInfo(**data)


def by_id(tasks):
    return {t.id: t for t in tasks}


@pytest.mark.parametrize("area, expected", [(10, 2), (8, 2), (11, 2.5), (15, 2.5), (20, 3), (32, 4.5)])
def test_adjust_duration_by_area(area, expected):
    assert adjust_duration_by_area(2, area) == expected


def test_catalogue_dependencies_are_internal():
    for space_id, templates in SPACE_TASK_TEMPLATES.items():
        ids = {t.id for t in templates}
        for t in templates:
            assert set(t.dependencies) <= ids, f"{space_id}.{t.id} points outside its space"


def test_concurrency_rules_and_colours():
    assert can_work_concurrently("plumbing", "electrical")
    assert not can_work_concurrently("demolition", "painting")
    assert category_color("plumbing") == "#3b82f6"
    assert category_color("unknown") == "#6b7280"


def test_kitchen_tasks():
    tasks = extract_tasks([SpaceSelection(id="kitchen", actual_area=10)], basic())
    assert len(tasks) == 12
    tasks = by_id(tasks)

    demolition = tasks["kitchen_demolition"]
    assert demolition.name == "Kitchen - Demolition"
    assert demolition.duration == 2
    assert demolition.space == "kitchen"
    assert demolition.estimated_cost == 1500000

    # curing delays turn into finish-to-start lags in days
    waterproofing = tasks["kitchen_waterproofing"]
    assert [(d.task_id, d.lag_days) for d in waterproofing.dependencies] == [("kitchen_wall", 1.0)]
    assert tasks["kitchen_tiling"].dependencies[0].lag_days == 2.0


def test_missing_area_is_shared_between_spaces():
    spaces = [SpaceSelection(id="kitchen"), SpaceSelection(id="bathroom")]
    tasks = by_id(extract_tasks(spaces, basic(total_area=40)))
    # 20 pyeong each: +1 working day
    assert tasks["kitchen_demolition"].duration == 3
    assert tasks["bathroom_demolition"].duration == 2


def test_partial_scope_drops_optional_tasks_and_keeps_chain():
    tasks = by_id(extract_tasks([SpaceSelection(id="kitchen", actual_area=10, scope="partial")], basic()))
    assert "kitchen_ceiling" not in tasks
    assert "kitchen_appliances" not in tasks
    assert tasks["kitchen_finishing"].predecessor_ids == ["kitchen_sink"]


def test_repeated_space_gets_suffix():
    spaces = [SpaceSelection(id="bedroom"), SpaceSelection(id="bedroom", name="Kids room")]
    tasks = by_id(extract_tasks(spaces, basic()))
    assert "bedroom_painting" in tasks
    second = tasks["bedroom_2_painting"]
    assert second.name == "Kids room - Painting and wallpaper"
    assert second.predecessor_ids == ["bedroom_2_flooring"]


def test_occupied_home_adds_warnings():
    tasks = by_id(extract_tasks(
        [SpaceSelection(id="bathroom")],
        basic(residence_status="occupied"),
    ))
    assert any("Occupied home" in w for w in tasks["bathroom_demolition"].warnings)
    assert not any("Occupied home" in w for w in tasks["bathroom_finishing"].warnings)


def test_unknown_space():
    with pytest.raises(ValidationError) as exc:
        extract_tasks([SpaceSelection(id="garage")], basic())
    assert exc.value.code == "UNKNOWN_SPACE"
