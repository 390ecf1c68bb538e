# selffin/cpm.py
"""
Critical Path Method over working-day offsets.

Offsets are continuous: a task with ES=0 and duration 1.5 finishes at 1.5 and
an FS successor may start at 1.5. Converting offsets into calendar dates is
left to the scheduler.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from selffin.exceptions import BusinessRuleError, ValidationError
from selffin.models import Dependency, DependencyType, Task

logger = logging.getLogger(__name__)

EPSILON = 1e-6


@dataclass
class DependencyGraph:
    order: List[str]
    incoming: Dict[str, List[Dependency]]
    outgoing: Dict[str, List[Tuple[str, Dependency]]]
    index: Dict[str, int]  # position in the input list


@dataclass
class CPMResult:
    order: List[str] = field(default_factory=list)
    early_start: Dict[str, float] = field(default_factory=dict)
    early_finish: Dict[str, float] = field(default_factory=dict)
    late_start: Dict[str, float] = field(default_factory=dict)
    late_finish: Dict[str, float] = field(default_factory=dict)
    slack: Dict[str, float] = field(default_factory=dict)
    critical: Dict[str, bool] = field(default_factory=dict)
    critical_path: List[str] = field(default_factory=list)
    total_duration: float = 0.0


def build_dependency_graph(tasks: List[Task]) -> DependencyGraph:
    index: Dict[str, int] = {}
    for i, t in enumerate(tasks):
        if t.id in index:
            raise ValidationError(f"Duplicate task id: {t.id}", code="DUPLICATE_TASK")
        index[t.id] = i

    incoming: Dict[str, List[Dependency]] = {t.id: [] for t in tasks}
    outgoing: Dict[str, List[Tuple[str, Dependency]]] = {t.id: [] for t in tasks}
    indegree: Dict[str, int] = {t.id: 0 for t in tasks}

    for t in tasks:
        for dep in t.dependencies:
            if dep.task_id not in index:
                raise ValidationError(
                    f"Task {t.id} depends on unknown task {dep.task_id}",
                    code="UNKNOWN_DEPENDENCY",
                )
            incoming[t.id].append(dep)
            outgoing[dep.task_id].append((t.id, dep))
            indegree[t.id] += 1

    # Kahn's algorithm, ties broken by input position
    heap = [(index[tid], tid) for tid, deg in indegree.items() if deg == 0]
    heapq.heapify(heap)
    order: List[str] = []
    while heap:
        _, tid = heapq.heappop(heap)
        order.append(tid)
        for succ_id, _dep in outgoing[tid]:
            indegree[succ_id] -= 1
            if indegree[succ_id] == 0:
                heapq.heappush(heap, (index[succ_id], succ_id))

    if len(order) != len(tasks):
        stuck = sorted(tid for tid, deg in indegree.items() if deg > 0)
        raise BusinessRuleError(
            f"Cannot schedule project: circular dependency detected ({', '.join(stuck)}).",
            code="SCHEDULE_CYCLE",
        )

    return DependencyGraph(order=order, incoming=incoming, outgoing=outgoing, index=index)


def _forward_bound(dep: Dependency, es_p, ef_p, duration):
    """Earliest start a successor of `duration` may take given one predecessor."""
    lag = dep.lag_days
    if dep.type == DependencyType.SS:
        return es_p + lag
    if dep.type == DependencyType.FF:
        return ef_p + lag - duration
    if dep.type == DependencyType.SF:
        return es_p + lag - duration
    return ef_p + lag


def _backward_bound(dep: Dependency, ls_s, lf_s, duration):
    """Latest finish a predecessor of `duration` may take given one successor."""
    lag = dep.lag_days
    if dep.type == DependencyType.SS:
        return ls_s - lag + duration
    if dep.type == DependencyType.FF:
        return lf_s - lag
    if dep.type == DependencyType.SF:
        return lf_s - lag + duration
    return ls_s - lag


def compute_cpm(tasks: List[Task], deadline: Optional[float] = None) -> CPMResult:
    """
    Forward and backward pass.

    `deadline` is a working-day offset. When it is earlier than the natural
    finish the backward pass yields negative slack on the driving chain.
    """
    if not tasks:
        return CPMResult()

    graph = build_dependency_graph(tasks)
    by_id = {t.id: t for t in tasks}
    es: Dict[str, float] = {}
    ef: Dict[str, float] = {}

    for tid in graph.order:
        d = by_id[tid].duration
        start = 0.0
        for dep in graph.incoming[tid]:
            start = max(start, _forward_bound(dep, es[dep.task_id], ef[dep.task_id], d))
        es[tid] = start
        ef[tid] = start + d

    natural_finish = max(ef.values())
    finish = natural_finish if deadline is None else float(deadline)

    ls: Dict[str, float] = {}
    lf: Dict[str, float] = {}
    for tid in reversed(graph.order):
        d = by_id[tid].duration
        late = finish
        for succ_id, dep in graph.outgoing[tid]:
            late = min(late, _backward_bound(dep, ls[succ_id], lf[succ_id], d))
        lf[tid] = late
        ls[tid] = late - d

    slack = {tid: ls[tid] - es[tid] for tid in graph.order}
    critical = {tid: slack[tid] <= EPSILON for tid in graph.order}
    topo_pos = {tid: i for i, tid in enumerate(graph.order)}
    critical_path = sorted(
        (tid for tid in graph.order if critical[tid]),
        key=lambda tid: (es[tid], topo_pos[tid]),
    )

    logger.debug("cpm: %d tasks, finish=%.2f, %d critical", len(tasks), natural_finish, len(critical_path))
    return CPMResult(
        order=graph.order,
        early_start=es,
        early_finish=ef,
        late_start=ls,
        late_finish=lf,
        slack=slack,
        critical=critical,
        critical_path=critical_path,
        total_duration=natural_finish,
    )


def compute_cpm_batch(tasks: List[Task], durations: np.ndarray, graph: Optional[DependencyGraph] = None):
    """
    Vectorised CPM for a (runs, len(tasks)) matrix of durations.

    Returns (project_durations, critical_mask) where critical_mask has the
    same shape as `durations`.
    """
    runs = durations.shape[0]
    if not tasks:
        return np.zeros(runs), np.zeros((runs, 0), dtype=bool)

    graph = graph or build_dependency_graph(tasks)
    idx = graph.index
    es = np.zeros_like(durations, dtype=float)
    ef = np.zeros_like(durations, dtype=float)

    for tid in graph.order:
        i = idx[tid]
        d = durations[:, i]
        start = np.zeros(runs)
        for dep in graph.incoming[tid]:
            p = idx[dep.task_id]
            start = np.maximum(start, _forward_bound(dep, es[:, p], ef[:, p], d))
        es[:, i] = start
        ef[:, i] = start + d

    finish = ef.max(axis=1)
    ls = np.zeros_like(es)
    lf = np.zeros_like(ef)
    for tid in reversed(graph.order):
        i = idx[tid]
        d = durations[:, i]
        late = finish.copy()
        for succ_id, dep in graph.outgoing[tid]:
            s = idx[succ_id]
            late = np.minimum(late, _backward_bound(dep, ls[:, s], lf[:, s], d))
        lf[:, i] = late
        ls[:, i] = late - d

    critical = (ls - es) <= EPSILON
    return finish, critical
