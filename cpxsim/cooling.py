"""Growth-then-diffusion modelling of zoned clinopyroxene grains.

A slow-diffusing element (Ca) keeps the shape of the growth zoning. Fitting
it with the Fe-Mg diffusion law gives an "equivalent" diffusion time that
stands in for the Fe-Mg profile present before diffusion began; this is an
approximation, not a coupled two-element model. Fe-Mg profiles are then
computed for a bracket of cooling rates and the proxy profile is aligned
onto the best one for comparison.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import numpy as np

from .alignment import align
from .calibration import HOURS_PER_YEAR, cooling_rate_k_per_hour, run_calibration_search
from .models import (
    ArrheniusParameters,
    CoolingRateBracket,
    GrainSample,
    ProfileCurve,
    SampleModel,
    SearchSettings,
    SegmentLevels,
    SolverSettings,
)
from .solver import run_radial_diffusion

logger = logging.getLogger(__name__)

DISTANCE_COLUMN = "Distance from the core"
SLOW_LEVEL_COLUMNS = ("r_core", "r_rim", "C0_core", "C0_rim")
FAST_LEVEL_COLUMNS = ("r_core_1", "r_rim_1", "C0_core_1", "C0_rim_1")


def duration_from_cooling_rate(T_start: float, T_end: float, rate_k_per_hour: float) -> float:
    """Years needed to cool from T_start to T_end at a constant rate in K/h."""
    if not rate_k_per_hour > 0:
        raise ValueError("rate_k_per_hour must be positive.")
    if T_start == T_end:
        raise ValueError("T_start and T_end must differ to define a cooling duration.")
    return abs(float(T_start) - float(T_end)) / (float(rate_k_per_hour) * HOURS_PER_YEAR)


def effective_cooling_rate(
    T_start: float,
    T_end: float,
    duration_years: float,
    initial_duration_years: float,
) -> float:
    """Cooling rate over the time left once the proxy's equivalent time is subtracted."""
    remaining = float(duration_years) - float(initial_duration_years)
    if not remaining > 0:
        raise ValueError(
            f"Duration {duration_years:g} yr does not exceed the equivalent initial "
            f"duration {initial_duration_years:g} yr."
        )
    return cooling_rate_k_per_hour(T_start, T_end, remaining)


def format_rate_label(rate: float) -> str:
    if rate < 1e-4:
        decimals = 6
    elif rate < 1e-3:
        decimals = 5
    elif rate < 1e-2:
        decimals = 4
    else:
        decimals = 3
    text = f"{rate:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{text} K/h"


def _first_finite(columns: Mapping[str, Any], key: str) -> float:
    values = np.asarray(columns[key], dtype=float).ravel()
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        raise ValueError(f"Column '{key}' has no finite value.")
    return float(finite[0])


def _segment_levels(columns: Mapping[str, Any], keys: tuple[str, str, str, str]) -> SegmentLevels:
    r_core, r_rim, core_level, rim_level = (_first_finite(columns, key) for key in keys)
    return SegmentLevels(r_core=r_core, r_rim=r_rim, core_level=core_level, rim_level=rim_level)


def sample_from_columns(
    columns: Mapping[str, Any],
    *,
    name: str = "",
    slow_column: str = "Ca",
    fast_column: str = "Mg#",
) -> GrainSample:
    """Build a GrainSample from one sheet's named columns.

    ``columns`` is anything indexable by column name (a dict of lists or a
    pandas DataFrame). Geometry and boundary-level columns repeat a single
    value per sample; the first finite entry is used.
    """
    missing = [
        key
        for key in (DISTANCE_COLUMN, slow_column, fast_column, *SLOW_LEVEL_COLUMNS, *FAST_LEVEL_COLUMNS)
        if key not in columns
    ]
    if missing:
        raise KeyError(f"Missing sample columns: {', '.join(missing)}")

    distance = np.asarray(columns[DISTANCE_COLUMN], dtype=float).ravel()
    slow = np.asarray(columns[slow_column], dtype=float).ravel()
    fast = np.asarray(columns[fast_column], dtype=float).ravel()
    if not distance.size == slow.size == fast.size:
        raise ValueError("Distance and profile columns must have the same length.")
    keep = np.isfinite(distance)
    return GrainSample(
        name=name,
        distance=distance[keep],
        slow_profile=slow[keep],
        fast_profile=fast[keep],
        slow_levels=_segment_levels(columns, SLOW_LEVEL_COLUMNS),
        fast_levels=_segment_levels(columns, FAST_LEVEL_COLUMNS),
    )


def model_sample(
    sample: GrainSample,
    T_start: float,
    T_end: float,
    bracket: CoolingRateBracket,
    dr: float = 1.0,
    *,
    search: SearchSettings | None = None,
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
) -> SampleModel:
    slow = sample.slow_levels
    fast = sample.fast_levels
    calibration = run_calibration_search(
        sample.distance,
        sample.slow_profile,
        T_start,
        T_end,
        slow.r_core,
        slow.r_rim,
        dr,
        slow.core_level,
        slow.rim_level,
        search=search,
        arrhenius=arrhenius,
        settings=settings,
    )
    initial_duration = calibration.best_duration
    initial = run_radial_diffusion(
        initial_duration,
        T_start,
        T_end,
        slow.r_core,
        slow.r_rim,
        dr,
        slow.core_level,
        slow.rim_level,
        arrhenius=arrhenius,
        settings=settings,
    )

    curves: list[ProfileCurve] = []
    for rate in (bracket.lower, bracket.best, bracket.upper):
        duration = duration_from_cooling_rate(T_start, T_end, rate)
        result = run_radial_diffusion(
            duration,
            T_start,
            T_end,
            fast.r_core,
            fast.r_rim,
            dr,
            fast.core_level,
            fast.rim_level,
            arrhenius=arrhenius,
            settings=settings,
        )
        curves.append(
            ProfileCurve(
                label=format_rate_label(rate),
                cooling_rate=rate,
                duration=duration,
                radii=result.radii,
                concentrations=result.concentrations,
            )
        )

    best = curves[1]
    effective_rate = effective_cooling_rate(T_start, T_end, best.duration, initial_duration)
    best.label = format_rate_label(effective_rate)
    logger.info(
        "Sample %s: equivalent initial time %.4g yr, effective cooling rate %.4g K/h",
        sample.name or "<unnamed>", initial_duration, effective_rate,
    )

    initial_curve = ProfileCurve(
        label="Initial profile",
        cooling_rate=calibration.best_cooling_rate,
        duration=initial_duration,
        radii=initial.radii,
        concentrations=align(initial.concentrations, best.concentrations),
    )
    return SampleModel(
        sample_name=sample.name,
        initial_duration=initial_duration,
        initial_curve=initial_curve,
        curves=curves,
        effective_cooling_rate=effective_rate,
    )
