from __future__ import annotations

import warnings

import numpy as np


def _as_profile(values: np.ndarray, label: str) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.ndim != 1 or arr.size == 0:
        raise ValueError(f"{label} must be a non-empty 1D array.")
    if np.any(~np.isfinite(arr)):
        raise ValueError(f"{label} must contain only finite values.")
    return arr


def rescale_to_range(values: np.ndarray, lower: float, upper: float) -> np.ndarray:
    """Affine map of values onto [lower, upper].

    A constant profile has no range to map, so it is returned unchanged
    and a warning is emitted.
    """
    arr = _as_profile(values, "values")
    v_min = float(np.min(arr))
    v_max = float(np.max(arr))
    if v_max == v_min:
        warnings.warn(
            "Cannot rescale a constant profile; returning it unchanged.",
            stacklevel=2,
        )
        return arr
    return lower + (arr - v_min) / (v_max - v_min) * (upper - lower)


def steepest_gradient_index(values: np.ndarray) -> int:
    """Index of the largest |dC/di| (first one on ties)."""
    arr = _as_profile(values, "values")
    if arr.size == 1:
        return 0
    return int(np.argmax(np.abs(np.gradient(arr))))


def shift_with_edge_fill(values: np.ndarray, shift: int) -> np.ndarray:
    """Shift by whole indices, repeating the edge value into vacated slots."""
    arr = _as_profile(values, "values")
    n = arr.size
    shift = int(shift)
    if shift == 0:
        return arr.copy()
    out = np.empty_like(arr)
    if abs(shift) >= n:
        out[:] = arr[0] if shift > 0 else arr[-1]
        return out
    if shift > 0:
        out[:shift] = arr[0]
        out[shift:] = arr[:-shift]
    else:
        shift = -shift
        out[-shift:] = arr[-1]
        out[:-shift] = arr[shift:]
    return out


def align(source_profile: np.ndarray, target_profile: np.ndarray) -> np.ndarray:
    """Rescale source onto target's value range and line up their steepest points.

    The steepest-gradient index is only a proxy for a profile's centre, so
    profiles with very different shapes may end up imperfectly centred.
    The result has the length of source_profile.
    """
    source = _as_profile(source_profile, "source_profile")
    target = _as_profile(target_profile, "target_profile")

    scaled = rescale_to_range(source, float(np.min(target)), float(np.max(target)))
    shift = steepest_gradient_index(target) - steepest_gradient_index(scaled)
    return shift_with_edge_fill(scaled, shift)
