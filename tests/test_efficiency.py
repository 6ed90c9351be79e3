from datetime import timedelta

import pytest

from assembly_qc.efficiency import (
    EfficiencyEstimate,
    elapsed_seconds,
    estimate_efficiency,
    round_half_up,
    select_cycle_time,
)
from assembly_qc.errors import ValidationError
from assembly_qc.shifts import resolve_shift_window

WINDOW = resolve_shift_window("2024-05-01", "day")


def _plan(cycle, target=100):
    return {"cycle_time_seconds": cycle, "target_quantity": target}


def test_no_cycle_time_means_no_signal():
    estimate = estimate_efficiency(50, [_plan(0), _plan(None)], WINDOW, WINDOW.end)

    assert estimate == EfficiencyEstimate()
    assert estimate.efficiency_pct == 0
    assert estimate.status == "on_track"


def test_ten_minutes_at_thirty_second_cycle():
    now = WINDOW.start + timedelta(seconds=600)

    estimate = estimate_efficiency(18, [_plan(30)], WINDOW, now)

    assert estimate.expected == 20
    assert estimate.time_variance_minutes == -1
    assert estimate.status == "on_track"
    assert estimate.efficiency_pct == 90.0


def test_before_shift_start_nothing_is_expected():
    now = WINDOW.start - timedelta(hours=1)

    estimate = estimate_efficiency(0, [_plan(30)], WINDOW, now)

    assert elapsed_seconds(WINDOW, now) == 0
    assert estimate.expected == 0
    assert estimate.efficiency_pct == 0
    assert estimate.time_variance_minutes == 0


def test_after_shift_end_the_full_window_counts():
    now = WINDOW.end + timedelta(hours=3)

    estimate = estimate_efficiency(720, [_plan(60)], WINDOW, now)

    assert elapsed_seconds(WINDOW, now) == 12 * 3600
    assert estimate.expected == 720
    assert estimate.efficiency_pct == 100.0
    assert estimate.time_variance_minutes == 0


@pytest.mark.parametrize(
    "total_ok, status",
    [(40, "fast"), (31, "fast"), (30, "on_track"), (10, "on_track"), (8, "slow"), (0, "slow")],
)
def test_variance_classification(total_ok, status):
    now = WINDOW.start + timedelta(seconds=600)

    estimate = estimate_efficiency(total_ok, [_plan(30)], WINDOW, now)

    assert estimate.status == status


def test_last_nonzero_cycle_time_wins_by_default():
    plans = [_plan(30), _plan(0), _plan(45), _plan(0)]

    assert select_cycle_time(plans) == 45


def test_weighted_policy_blends_by_target_quantity():
    plans = [_plan(30, 100), _plan(60, 300), _plan(0, 500)]

    assert select_cycle_time(plans, "weighted") == pytest.approx(52.5)
    assert select_cycle_time([_plan(30, 0), _plan(60, 0)], "weighted") == 45


def test_unknown_policy_is_rejected():
    with pytest.raises(ValidationError):
        select_cycle_time([_plan(30)], "median")


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(-0.5) == 0
    assert round_half_up(-114.5) == -114
    assert round_half_up(-1.0) == -1
