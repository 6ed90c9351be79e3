"""Cycle-time based pace estimate for a shift.

Expected output is projected from the elapsed part of the shift window and the
plan's cycle time.  Comparing it with the actual OK count gives an efficiency
percentage and a time variance in minutes (positive means ahead of pace).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Mapping

from config.production import (
    CYCLE_TIME_POLICIES,
    CYCLE_TIME_POLICY,
    FAST_THRESHOLD_MINUTES,
    SLOW_THRESHOLD_MINUTES,
)

from .errors import ValidationError
from .shifts import ShiftWindow

STATUS_FAST = "fast"
STATUS_SLOW = "slow"
STATUS_ON_TRACK = "on_track"


@dataclass(frozen=True)
class EfficiencyEstimate:
    expected: int = 0
    efficiency_pct: float = 0.0
    time_variance_minutes: int = 0
    status: str = STATUS_ON_TRACK
    cycle_time: float = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def select_cycle_time(
    plans: Iterable[Mapping], policy: str = CYCLE_TIME_POLICY
) -> float:
    """Pick the cycle time (seconds) that drives the projection.

    ``last`` keeps the last plan with a nonzero cycle time.  ``weighted``
    averages the nonzero cycle times weighted by each plan's target quantity,
    falling back to a plain mean when every target is zero.
    """

    if policy not in CYCLE_TIME_POLICIES:
        raise ValidationError(f"Unknown cycle time policy: {policy!r}")

    timed = [
        (_as_int(plan.get("cycle_time_seconds")), _as_int(plan.get("target_quantity")))
        for plan in plans or []
    ]
    timed = [(cycle, target) for cycle, target in timed if cycle > 0]
    if not timed:
        return 0

    if policy == "last":
        return timed[-1][0]

    total_target = sum(max(target, 0) for _, target in timed)
    if total_target <= 0:
        return sum(cycle for cycle, _ in timed) / len(timed)
    return sum(cycle * max(target, 0) for cycle, target in timed) / total_target


def elapsed_seconds(window: ShiftWindow, now: datetime) -> float:
    """Seconds of ``window`` that have passed at ``now``, clipped to the window."""

    effective_end = min(now, window.end)
    elapsed = (effective_end - window.start).total_seconds()
    return min(max(elapsed, 0.0), window.length_seconds)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def classify_variance(minutes: float) -> str:
    if minutes > FAST_THRESHOLD_MINUTES:
        return STATUS_FAST
    if minutes < SLOW_THRESHOLD_MINUTES:
        return STATUS_SLOW
    return STATUS_ON_TRACK


def estimate_efficiency(
    total_ok: int,
    plans: Iterable[Mapping],
    window: ShiftWindow,
    now: datetime,
    *,
    policy: str = CYCLE_TIME_POLICY,
) -> EfficiencyEstimate:
    """Compare ``total_ok`` with the output expected by ``now``."""

    cycle_time = select_cycle_time(plans, policy)
    if cycle_time <= 0:
        return EfficiencyEstimate()

    expected = int(elapsed_seconds(window, now) // cycle_time)
    efficiency = 0.0
    if expected > 0:
        efficiency = round(total_ok / expected * 100, 2)
    variance = round_half_up((total_ok - expected) * cycle_time / 60)
    return EfficiencyEstimate(
        expected=expected,
        efficiency_pct=efficiency,
        time_variance_minutes=variance,
        status=classify_variance(variance),
        cycle_time=cycle_time,
    )


__all__ = [
    "EfficiencyEstimate",
    "classify_variance",
    "elapsed_seconds",
    "estimate_efficiency",
    "round_half_up",
    "select_cycle_time",
]
