from __future__ import annotations

import logging
from typing import Callable, Iterable

import numpy as np
from scipy.interpolate import interp1d

from .models import ArrheniusParameters, CalibrationResult, SearchSettings, SolverSettings
from .solver import run_radial_diffusion

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 365.0 * 24.0


def cooling_rate_k_per_hour(T_start: float, T_end: float, duration_years: float) -> float:
    """Mean cooling rate |T_start - T_end| / duration, in K/h."""
    if not duration_years > 0:
        raise ValueError("duration_years must be positive.")
    return abs(float(T_start) - float(T_end)) / (float(duration_years) * HOURS_PER_YEAR)


def interpolate_profile(
    radii: np.ndarray,
    concentrations: np.ndarray,
    positions: np.ndarray,
) -> np.ndarray:
    """Linear interpolation onto positions; positions outside the grid are extrapolated linearly."""
    interpolator = interp1d(
        np.asarray(radii, dtype=float),
        np.asarray(concentrations, dtype=float),
        kind="linear",
        fill_value="extrapolate",
        assume_sorted=True,
    )
    return np.asarray(interpolator(np.asarray(positions, dtype=float)), dtype=float)


def profile_misfit(modelled: np.ndarray, observed: np.ndarray) -> float:
    """Sample variance (ddof=1) of the residual modelled - observed."""
    residual = np.asarray(modelled, dtype=float) - np.asarray(observed, dtype=float)
    if residual.size < 2:
        raise ValueError("Misfit needs at least two matched positions.")
    return float(np.var(residual, ddof=1))


def _observed_arrays(positions: Iterable[float], values: Iterable[float]) -> tuple[np.ndarray, np.ndarray]:
    x = np.array(positions, dtype=float)
    y = np.array(values, dtype=float)
    if x.ndim != 1 or y.ndim != 1:
        raise ValueError("Observed positions and values must be 1D.")
    if x.shape != y.shape:
        raise ValueError(
            f"Observed positions ({x.size}) and values ({y.size}) must have the same length."
        )
    if x.size < 2:
        raise ValueError("At least two observed points are required.")
    if np.any(~np.isfinite(x)) or np.any(~np.isfinite(y)):
        raise ValueError("Observed positions and values must be finite.")
    return x, y


def run_calibration_search(
    observed_positions: Iterable[float],
    observed_values: Iterable[float],
    T_start: float,
    T_end: float,
    r_core: float,
    r_rim: float,
    dr: float,
    C_core0: float,
    C_rim0: float,
    candidate_durations: Iterable[float] | None = None,
    *,
    search: SearchSettings | None = None,
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
    progress_callback: Callable[[int, float, float], None] | None = None,
) -> CalibrationResult:
    """Grid search over diffusion durations for the best match to an observed profile.

    Each candidate is solved independently; the misfit is the sample variance
    of the interpolated model minus the observations. Ties go to the first
    candidate in iteration order. When no candidates are given, the
    ``search`` settings (default 100 values in 0.01-100 years) are used.
    """
    x_obs, y_obs = _observed_arrays(observed_positions, observed_values)
    if candidate_durations is None:
        durations = (search or SearchSettings()).candidate_durations()
    else:
        durations = np.array(list(candidate_durations), dtype=float)
    if durations.ndim != 1 or durations.size == 0:
        raise ValueError("candidate_durations must be a non-empty 1D sequence.")
    if np.any(~np.isfinite(durations)) or np.any(durations <= 0):
        raise ValueError("candidate_durations must be positive and finite.")

    misfits = np.zeros(durations.size, dtype=float)
    best_index = -1
    best_radii = np.empty(0, dtype=float)
    best_concentrations = np.empty(0, dtype=float)
    for i, duration in enumerate(durations):
        result = run_radial_diffusion(
            duration,
            T_start,
            T_end,
            r_core,
            r_rim,
            dr,
            C_core0,
            C_rim0,
            arrhenius=arrhenius,
            settings=settings,
        )
        modelled = interpolate_profile(result.radii, result.concentrations, x_obs)
        misfits[i] = profile_misfit(modelled, y_obs)
        # Strict comparison keeps the first of equal misfits.
        if best_index < 0 or misfits[i] < misfits[best_index]:
            best_index = i
            best_radii = result.radii
            best_concentrations = result.concentrations
        if progress_callback is not None:
            progress_callback(i, float(duration), float(misfits[i]))

    best_duration = float(durations[best_index])
    best_rate = cooling_rate_k_per_hour(T_start, T_end, best_duration)
    logger.info(
        "Best-fit duration %.4g yr (%.4g K/h), misfit %.4g over %d candidates",
        best_duration, best_rate, misfits[best_index], durations.size,
    )
    return CalibrationResult(
        durations=durations,
        misfits=misfits,
        best_index=best_index,
        best_duration=best_duration,
        best_cooling_rate=best_rate,
        min_misfit=float(misfits[best_index]),
        observed_positions=x_obs,
        observed_values=y_obs,
        best_radii=best_radii,
        best_concentrations=best_concentrations,
    )


def fit(
    observed_positions: Iterable[float],
    observed_values: Iterable[float],
    T_start: float,
    T_end: float,
    r_core: float,
    r_rim: float,
    dr: float,
    C_core0: float,
    C_rim0: float,
    candidate_durations: Iterable[float] | None = None,
    *,
    search: SearchSettings | None = None,
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
) -> tuple[float, float, float]:
    """Return (best_duration in years, cooling rate in K/h, minimum misfit)."""
    return run_calibration_search(
        observed_positions,
        observed_values,
        T_start,
        T_end,
        r_core,
        r_rim,
        dr,
        C_core0,
        C_rim0,
        candidate_durations,
        search=search,
        arrhenius=arrhenius,
        settings=settings,
    ).summary()
