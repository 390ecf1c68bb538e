# tests/test_cpm.py
import numpy as np
import pytest

from selffin.cpm import build_dependency_graph, compute_cpm, compute_cpm_batch
from selffin.exceptions import BusinessRuleError, ValidationError
from selffin.models import Dependency, DependencyType, Task


def make_task(task_id, duration, deps=None):
    return Task(id=task_id, name=task_id, duration=duration, dependencies=deps or [])


def test_chain_and_branch():
    tasks = [
        make_task("A", 2),
        make_task("B", 3, ["A"]),
        make_task("C", 1, ["A"]),
    ]
    result = compute_cpm(tasks)

    assert result.total_duration == 5
    assert result.early_start == {"A": 0, "B": 2, "C": 2}
    assert result.early_finish["C"] == 3
    assert result.late_finish["C"] == 5
    assert result.slack["C"] == pytest.approx(2)
    assert result.critical == {"A": True, "B": True, "C": False}
    assert result.critical_path == ["A", "B"]


def test_fractional_durations_chain_without_rounding():
    tasks = [make_task("A", 1.5), make_task("B", 0.5, ["A"])]
    result = compute_cpm(tasks)
    assert result.early_start["B"] == 1.5
    assert result.total_duration == 2.0


def test_start_to_start_with_lag():
    tasks = [
        make_task("A", 4),
        make_task("B", 2, [Dependency(task_id="A", type=DependencyType.SS, lag_days=1)]),
    ]
    result = compute_cpm(tasks)
    assert result.early_start["B"] == 1
    assert result.early_finish["B"] == 3
    assert result.slack["B"] == pytest.approx(1)


def test_finish_to_finish():
    tasks = [
        make_task("A", 3),
        make_task("B", 1, [Dependency(task_id="A", type=DependencyType.FF)]),
    ]
    result = compute_cpm(tasks)
    assert result.early_start["B"] == 2
    assert result.early_finish["B"] == 3


def test_start_to_finish_never_starts_before_zero():
    tasks = [
        make_task("A", 2),
        make_task("B", 3, [Dependency(task_id="A", type=DependencyType.SF)]),
    ]
    result = compute_cpm(tasks)
    assert result.early_start["B"] == 0
    assert result.total_duration == 3


def test_lag_on_finish_to_start():
    tasks = [
        make_task("wall", 1),
        make_task("waterproofing", 1, [Dependency(task_id="wall", lag_days=1)]),
    ]
    result = compute_cpm(tasks)
    assert result.early_start["waterproofing"] == 2
    assert result.critical["wall"] and result.critical["waterproofing"]


def test_deadline_earlier_than_finish_gives_negative_slack():
    tasks = [make_task("A", 5)]
    result = compute_cpm(tasks, deadline=3)
    assert result.slack["A"] == pytest.approx(-2)
    assert result.critical["A"]
    # the natural finish is still reported
    assert result.total_duration == 5


def test_topological_order_follows_input_on_ties():
    tasks = [make_task("B", 1), make_task("A", 1), make_task("C", 1, ["A", "B"])]
    graph = build_dependency_graph(tasks)
    assert graph.order == ["B", "A", "C"]


def test_cycle_is_rejected():
    tasks = [make_task("A", 1, ["C"]), make_task("B", 1, ["A"]), make_task("C", 1, ["B"])]
    with pytest.raises(BusinessRuleError) as exc:
        compute_cpm(tasks)
    assert exc.value.code == "SCHEDULE_CYCLE"
    assert "circular dependency" in exc.value.message


def test_unknown_dependency_is_rejected():
    with pytest.raises(ValidationError) as exc:
        compute_cpm([make_task("A", 1, ["ghost"])])
    assert exc.value.code == "UNKNOWN_DEPENDENCY"


def test_duplicate_ids_are_rejected():
    with pytest.raises(ValidationError) as exc:
        compute_cpm([make_task("A", 1), make_task("A", 2)])
    assert exc.value.code == "DUPLICATE_TASK"


def test_empty_task_list():
    result = compute_cpm([])
    assert result.total_duration == 0
    assert result.critical_path == []


def test_batch_matches_single_pass():
    tasks = [
        make_task("A", 2),
        make_task("B", 3, ["A"]),
        make_task("C", 1, ["A"]),
    ]
    durations = np.array([[2.0, 3.0, 1.0], [2.0, 1.0, 4.0]])
    finish, critical = compute_cpm_batch(tasks, durations)

    assert finish.tolist() == [5.0, 6.0]
    assert critical[0].tolist() == [True, True, False]
    assert critical[1].tolist() == [True, False, True]
