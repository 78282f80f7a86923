"""
Stage Model — ordered task stages and their weight toward project completion.

The table is data, not code: ``DEFAULT_STAGES`` holds one row per stage and
``build_stage_table()`` can produce an alternative table from configuration
(``STAGE_WEIGHTS``) without touching the progress calculator.

Usage:
    from prosync.services.stages import ordered_stages, weight
    for stage in ordered_stages():
        print(stage, weight(stage))
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping

from prosync.core.entities import TaskStage
from prosync.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class StageDefinition:
    """One row of the stage table."""
    identifier: TaskStage
    label: str
    weight: float


DEFAULT_STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(TaskStage.SURVEY, "Survey", 0.10),
    StageDefinition(TaskStage.PLANNING, "Planning", 0.15),
    StageDefinition(TaskStage.EXECUTION, "Execution", 0.25),
    StageDefinition(TaskStage.FINALIZATION, "Finalization", 0.50),
)


def _parse_stage(value) -> TaskStage | None:
    try:
        return TaskStage(value)
    except ValueError:
        return None


def validate_weights(stages: tuple[StageDefinition, ...]) -> None:
    """Raise ValidationError unless the table covers every stage once and sums to 1.0."""
    identifiers = [s.identifier for s in stages]
    if len(set(identifiers)) != len(identifiers) or set(identifiers) != set(TaskStage):
        raise ValidationError(
            "Stage table must list every stage exactly once",
            details={"stages": [s.value for s in identifiers]},
        )
    negative = [s.identifier.value for s in stages if s.weight < 0]
    if negative:
        raise ValidationError("Stage weights cannot be negative", details={"stages": negative})
    total = math.fsum(s.weight for s in stages)
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ValidationError(
            f"Stage weights must sum to 1.0 (got {total})",
            details={"total": total},
        )


def build_stage_table(weights: Mapping[str, float] | None = None) -> tuple[StageDefinition, ...]:
    """Return the stage table, optionally overriding weights by stage identifier.

    Order and labels always come from ``DEFAULT_STAGES``.
    """
    if not weights:
        return DEFAULT_STAGES
    unknown = [key for key in weights if _parse_stage(key) is None]
    if unknown:
        raise ValidationError("Unknown stage in weight overrides", details={"stages": unknown})
    overrides = {TaskStage(key): float(value) for key, value in weights.items()}
    table = tuple(
        StageDefinition(row.identifier, row.label, overrides.get(row.identifier, row.weight))
        for row in DEFAULT_STAGES
    )
    validate_weights(table)
    logger.info("Stage weights overridden: %s", {s.identifier.value: s.weight for s in table})
    return table


validate_weights(DEFAULT_STAGES)


def ordered_stages(stages: tuple[StageDefinition, ...] = DEFAULT_STAGES) -> list[TaskStage]:
    return [s.identifier for s in stages]


def get_stage(stage, stages: tuple[StageDefinition, ...] = DEFAULT_STAGES) -> StageDefinition:
    """Look up a stage row by member, identifier or legacy label."""
    identifier = _parse_stage(stage)
    for row in stages:
        if row.identifier == identifier:
            return row
    raise ValidationError(f"Unknown stage: {stage!r}")


def weight(stage, stages: tuple[StageDefinition, ...] = DEFAULT_STAGES) -> float:
    return get_stage(stage, stages).weight
