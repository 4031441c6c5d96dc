from __future__ import annotations

import numpy as np
import pytest

from cpxsim import calibration
from cpxsim.calibration import (
    cooling_rate_k_per_hour,
    fit,
    interpolate_profile,
    profile_misfit,
    run_calibration_search,
)
from cpxsim.models import DiffusionResult, SearchSettings
from cpxsim.solver import run_radial_diffusion


def _flat_result(*_args, **_kwargs) -> DiffusionResult:
    radii = np.linspace(0.0, 10.0, 11)
    return DiffusionResult(
        radii=radii,
        concentrations=np.linspace(1.0, 0.0, 11),
        n_core=6,
        n_steps=1,
        dt_seconds=1.0,
        final_temperature=950.0,
    )


def test_cooling_rate_is_in_kelvin_per_hour() -> None:
    assert cooling_rate_k_per_hour(1033.0, 950.0, 1.0) == pytest.approx(83.0 / 8760.0)
    assert cooling_rate_k_per_hour(950.0, 1033.0, 2.0) == pytest.approx(83.0 / 17520.0)
    with pytest.raises(ValueError):
        cooling_rate_k_per_hour(1033.0, 950.0, 0.0)


def test_interpolation_extrapolates_linearly_outside_grid() -> None:
    radii = np.array([0.0, 1.0, 2.0])
    conc = np.array([0.0, 1.0, 2.0])
    values = interpolate_profile(radii, conc, np.array([-1.0, 0.5, 3.0]))
    assert np.allclose(values, [-1.0, 0.5, 3.0])


def test_misfit_is_sample_variance_of_residual() -> None:
    assert profile_misfit(np.array([1.0, 2.0, 3.0]), np.zeros(3)) == pytest.approx(1.0)
    # A constant offset has no variance.
    assert profile_misfit(np.array([1.5, 2.5]), np.array([1.0, 2.0])) == pytest.approx(0.0)
    with pytest.raises(ValueError):
        profile_misfit(np.array([1.0]), np.array([0.0]))


def test_default_candidate_durations() -> None:
    durations = SearchSettings().candidate_durations()
    assert durations.size == 100
    assert durations[0] == pytest.approx(0.01)
    assert durations[-1] == pytest.approx(100.0)
    assert np.all(np.diff(durations) > 0)
    with pytest.raises(ValueError):
        SearchSettings(lower_years=5.0, upper_years=1.0)


def test_search_recovers_duration_of_synthetic_profile(small_grain: dict[str, float]) -> None:
    truth = run_radial_diffusion(4.0, **small_grain)
    positions = truth.radii[::3]
    values = truth.concentrations[::3]
    seen: list[tuple[int, float, float]] = []

    result = run_calibration_search(
        positions,
        values,
        candidate_durations=[1.0, 2.0, 4.0, 8.0, 16.0],
        progress_callback=lambda i, d, m: seen.append((i, d, m)),
        **small_grain,
    )

    assert result.best_duration == pytest.approx(4.0)
    assert result.best_index == 2
    assert result.min_misfit < 1e-20
    assert np.all(result.misfits[[0, 1, 3, 4]] > result.min_misfit)
    assert result.best_cooling_rate == pytest.approx(83.0 / (4.0 * 8760.0))
    assert np.allclose(result.best_concentrations, truth.concentrations)
    assert [i for i, _, _ in seen] == [0, 1, 2, 3, 4]
    assert result.summary() == (result.best_duration, result.best_cooling_rate, result.min_misfit)


def test_fit_returns_duration_rate_and_misfit(small_grain: dict[str, float]) -> None:
    truth = run_radial_diffusion(2.0, **small_grain)
    best_duration, best_rate, min_misfit = fit(
        truth.radii[::2],
        truth.concentrations[::2],
        candidate_durations=[2.0, 6.0],
        **small_grain,
    )
    assert best_duration == pytest.approx(2.0)
    assert best_rate == pytest.approx(83.0 / (2.0 * 8760.0))
    assert min_misfit < 1e-20


def test_ties_resolve_to_first_candidate(monkeypatch: pytest.MonkeyPatch, small_grain: dict[str, float]) -> None:
    monkeypatch.setattr(calibration, "run_radial_diffusion", _flat_result)
    result = run_calibration_search(
        [1.0, 4.0, 7.0],
        [0.2, 0.5, 0.1],
        candidate_durations=[3.0, 1.0, 2.0],
        **small_grain,
    )
    assert np.allclose(result.misfits, result.misfits[0])
    assert result.best_index == 0
    assert result.best_duration == pytest.approx(3.0)


def test_search_settings_supply_default_candidates(
    monkeypatch: pytest.MonkeyPatch,
    small_grain: dict[str, float],
) -> None:
    monkeypatch.setattr(calibration, "run_radial_diffusion", _flat_result)
    result = run_calibration_search(
        [1.0, 4.0, 7.0],
        [0.9, 0.6, 0.3],
        search=SearchSettings(lower_years=1.0, upper_years=3.0, count=3),
        **small_grain,
    )
    assert np.allclose(result.durations, [1.0, 2.0, 3.0])


def test_observed_inputs_are_copied(monkeypatch: pytest.MonkeyPatch, small_grain: dict[str, float]) -> None:
    monkeypatch.setattr(calibration, "run_radial_diffusion", _flat_result)
    positions = np.array([1.0, 4.0, 7.0])
    result = run_calibration_search(positions, [0.9, 0.6, 0.3], candidate_durations=[1.0], **small_grain)
    result.observed_positions[0] = -5.0
    assert positions[0] == 1.0


@pytest.mark.parametrize(
    ("positions", "values", "candidates"),
    [
        ([1.0, 2.0], [0.5], [1.0]),
        ([1.0], [0.5], [1.0]),
        ([1.0, np.nan], [0.5, 0.4], [1.0]),
        ([1.0, 2.0], [0.5, 0.4], [1.0, 0.0]),
        ([1.0, 2.0], [0.5, 0.4], []),
    ],
)
def test_search_rejects_invalid_inputs(positions, values, candidates, small_grain: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        run_calibration_search(positions, values, candidate_durations=candidates, **small_grain)
