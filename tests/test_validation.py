from __future__ import annotations

import numpy as np
import pytest

from cpxsim.models import DiffusionResult, SolverSettings
from cpxsim.validation import (
    check_interface_continuity,
    check_zero_flux_boundaries,
    max_gradient,
    run_fast_validation_suite,
    total_variation,
)


def test_total_variation_and_max_gradient() -> None:
    values = np.array([1.0, 0.5, 0.75, 0.0])
    assert total_variation(values) == pytest.approx(1.5)
    assert max_gradient(np.array([0.0, 0.5, 1.0, 2.0]), values) == pytest.approx(1.0)


def test_checks_flag_broken_profiles() -> None:
    broken = DiffusionResult(
        radii=np.arange(5, dtype=float),
        concentrations=np.array([0.9, 0.8, 0.1, 0.5, 0.6]),
        n_core=3,
        n_steps=1,
        dt_seconds=1.0,
        final_temperature=950.0,
    )
    assert check_interface_continuity(broken)["passed"] is False
    assert check_zero_flux_boundaries(broken)["passed"] is False


@pytest.mark.parametrize("mode", ["proportional", "stable"])
def test_fast_validation_suite_passes(mode: str) -> None:
    report = run_fast_validation_suite(SolverSettings(time_step_mode=mode))
    payload = report.as_dict()
    assert payload["interface_continuity"]["passed"] is True
    assert payload["zero_flux_boundaries"]["passed"] is True
    assert payload["smoothing_with_duration"]["passed"] is True
    assert payload["near_zero_duration"]["passed"] is True
    assert payload["calibration_recovery"]["passed"] is True
    assert payload["overall_passed"] is True
