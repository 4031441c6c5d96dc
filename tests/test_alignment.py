from __future__ import annotations

import numpy as np
import pytest

from cpxsim.alignment import align, rescale_to_range, shift_with_edge_fill, steepest_gradient_index


def test_rescale_matches_target_range() -> None:
    source = 0.2 + 0.1 * np.tanh(np.linspace(-3.0, 3.0, 25))
    scaled = rescale_to_range(source, 0.55, 0.81)
    assert scaled.min() == pytest.approx(0.55)
    assert scaled.max() == pytest.approx(0.81)
    # Affine map keeps the ordering of values.
    assert np.array_equal(np.argsort(scaled), np.argsort(source))


def test_rescale_constant_profile_falls_back_to_identity() -> None:
    source = np.full(6, 0.4)
    with pytest.warns(UserWarning, match="constant profile"):
        scaled = rescale_to_range(source, 0.1, 0.9)
    assert np.array_equal(scaled, source)
    assert scaled is not source


def test_steepest_gradient_index_takes_first_maximum() -> None:
    assert steepest_gradient_index(np.array([0.0, 0.0, 1.0, 1.0])) == 1
    assert steepest_gradient_index(np.array([5.0])) == 0


def test_shift_fills_vacated_positions_with_edge_values() -> None:
    values = np.array([1.0, 2.0, 3.0, 4.0])
    assert np.array_equal(shift_with_edge_fill(values, 1), [1.0, 1.0, 2.0, 3.0])
    assert np.array_equal(shift_with_edge_fill(values, -2), [3.0, 4.0, 4.0, 4.0])
    assert np.array_equal(shift_with_edge_fill(values, 0), values)
    assert np.array_equal(shift_with_edge_fill(values, 7), [1.0, 1.0, 1.0, 1.0])


def test_align_rescales_and_centres_on_target_step() -> None:
    source = np.array([1.0] * 3 + [0.0] * 7)
    target = np.array([0.9] * 7 + [0.4] * 5)

    aligned = align(source, target)

    assert aligned.shape == source.shape
    assert np.allclose(aligned, [0.9] * 7 + [0.4] * 3)
    assert steepest_gradient_index(aligned) == steepest_gradient_index(target)


def test_align_shifts_left_when_source_step_is_late() -> None:
    source = np.linspace(0.0, 1.0, 8) ** 6
    target = np.array([0.0, 0.5, 2.0, 2.0, 2.0, 2.0])
    aligned = align(source, target)
    assert aligned.shape == source.shape
    assert aligned[-1] == pytest.approx(2.0)
    assert aligned.min() >= 0.0 - 1e-12
    assert aligned.max() <= 2.0 + 1e-12


def test_align_rejects_non_finite_profiles() -> None:
    with pytest.raises(ValueError):
        align(np.array([1.0, np.nan]), np.array([0.0, 1.0]))
