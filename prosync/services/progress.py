"""
Progress Calculator — weighted project completion.

Each stage contributes ``completed / total * weight`` when it has tasks and
nothing when it has none. Weights are never renormalized over the stages in
use, so a project whose tasks all sit in FINALIZATION tops out at 50 until
earlier stages get tasks of their own.

Progress is derived on every read; it is never stored.
"""

from __future__ import annotations

import math
from typing import Iterable

from prosync.core.entities import Task, TaskStage
from prosync.services.stages import DEFAULT_STAGES, StageDefinition


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


def _stage_of(task: Task) -> TaskStage | None:
    try:
        return TaskStage(task.stage)
    except ValueError:
        return None


def stage_breakdown(
    tasks: Iterable[Task],
    stages: tuple[StageDefinition, ...] = DEFAULT_STAGES,
) -> list[dict]:
    """Per-stage counts and contribution (as a fraction of 1.0)."""
    tasks = list(tasks)
    rows = []
    for row in stages:
        in_stage = [t for t in tasks if _stage_of(t) == row.identifier]
        done = sum(1 for t in in_stage if t.completed)
        ratio = done / len(in_stage) if in_stage else 0.0
        rows.append({
            "stage": row.identifier.value,
            "label": row.label,
            "weight": row.weight,
            "total": len(in_stage),
            "completed": done,
            "ratio": ratio,
            "contribution": ratio * row.weight,
        })
    return rows


def weighted_progress(
    tasks: Iterable[Task],
    stages: tuple[StageDefinition, ...] = DEFAULT_STAGES,
) -> int:
    """Return the weighted completion percentage of ``tasks`` in [0, 100]."""
    tasks = list(tasks)
    if not tasks:
        return 0
    total = math.fsum(r["contribution"] for r in stage_breakdown(tasks, stages))
    return max(0, min(100, round_half_up(total * 100)))
