from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from .calibration import run_calibration_search
from .models import ArrheniusParameters, DiffusionResult, SolverSettings
from .solver import run_radial_diffusion


@dataclass
class ScenarioInputs:
    T_start: float = 1033.0
    T_end: float = 950.0
    r_core: float = 20.0
    r_rim: float = 60.0
    dr: float = 1.0
    C_core0: float = 0.8
    C_rim0: float = 0.3

    def run(
        self,
        duration_years: float,
        arrhenius: ArrheniusParameters | None = None,
        settings: SolverSettings | None = None,
    ) -> DiffusionResult:
        return run_radial_diffusion(
            duration_years,
            self.T_start,
            self.T_end,
            self.r_core,
            self.r_rim,
            self.dr,
            self.C_core0,
            self.C_rim0,
            arrhenius=arrhenius,
            settings=settings,
        )


def total_variation(values: np.ndarray) -> float:
    return float(np.sum(np.abs(np.diff(np.asarray(values, dtype=float)))))


def max_gradient(radii: np.ndarray, values: np.ndarray) -> float:
    return float(np.max(np.abs(np.diff(values) / np.diff(radii))))


@dataclass
class ValidationReport:
    interface_continuity: dict[str, Any]
    zero_flux_boundaries: dict[str, Any]
    smoothing_with_duration: dict[str, Any]
    near_zero_duration: dict[str, Any]
    calibration_recovery: dict[str, Any]

    @property
    def overall_passed(self) -> bool:
        return all(
            bool(section.get("passed", False))
            for section in (
                self.interface_continuity,
                self.zero_flux_boundaries,
                self.smoothing_with_duration,
                self.near_zero_duration,
                self.calibration_recovery,
            )
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "interface_continuity": self.interface_continuity,
            "zero_flux_boundaries": self.zero_flux_boundaries,
            "smoothing_with_duration": self.smoothing_with_duration,
            "near_zero_duration": self.near_zero_duration,
            "calibration_recovery": self.calibration_recovery,
            "overall_passed": self.overall_passed,
        }


def check_interface_continuity(result: DiffusionResult, tolerance: float = 1e-9) -> dict[str, Any]:
    """Both segments share the interface value, which sits between its neighbours."""
    core_side = float(result.core_concentrations[-1])
    rim_side = float(result.rim_concentrations[0])
    mismatch = abs(core_side - rim_side) / max(1e-30, abs(core_side))

    k = result.interface_index
    conc = result.concentrations
    lo, hi = sorted((float(conc[k - 1]), float(conc[k + 1])))
    bracketed = lo - tolerance <= float(conc[k]) <= hi + tolerance
    return {
        "passed": bool(mismatch <= tolerance and bracketed),
        "relative_mismatch": mismatch,
        "bracketed_by_neighbours": bool(bracketed),
        "tolerance": tolerance,
    }


def check_zero_flux_boundaries(result: DiffusionResult, tolerance: float = 1e-9) -> dict[str, Any]:
    radii = result.radii
    conc = result.concentrations
    inner = abs(conc[1] - conc[0]) / (radii[1] - radii[0])
    outer = abs(conc[-1] - conc[-2]) / (radii[-1] - radii[-2])
    return {
        "passed": bool(max(inner, outer) <= tolerance),
        "inner_gradient": float(inner),
        "outer_gradient": float(outer),
        "tolerance": tolerance,
    }


def validate_smoothing_with_duration(
    scenario: ScenarioInputs,
    *,
    durations: tuple[float, ...] = (0.01, 10.0, 100.0),
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
    tolerance: float = 1e-6,
) -> dict[str, Any]:
    """Longer diffusion must not roughen the profile and must lower its steepest gradient."""
    variations: list[float] = []
    gradients: list[float] = []
    for duration in sorted(durations):
        result = scenario.run(duration, arrhenius, settings)
        variations.append(total_variation(result.concentrations))
        gradients.append(max_gradient(result.radii, result.concentrations))
    tv_ok = all(variations[i + 1] <= variations[i] + tolerance for i in range(len(variations) - 1))
    grad_ok = all(gradients[i + 1] < gradients[i] for i in range(len(gradients) - 1))
    return {
        "passed": bool(tv_ok and grad_ok),
        "total_variation": variations,
        "max_gradient": gradients,
        "tolerance": tolerance,
    }


def validate_near_zero_duration(
    scenario: ScenarioInputs,
    *,
    duration_years: float = 1e-6,
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
    tolerance: float = 1e-5,
) -> dict[str, Any]:
    result = scenario.run(duration_years, arrhenius, settings)
    k = result.interface_index
    initial = np.where(np.arange(result.radii.size) < k, scenario.C_core0, scenario.C_rim0)
    away_from_interface = np.arange(result.radii.size) != k
    max_dev = float(np.max(np.abs(result.concentrations - initial)[away_from_interface]))
    return {"passed": max_dev <= tolerance, "max_deviation": max_dev, "tolerance": tolerance}


def validate_calibration_recovery(
    scenario: ScenarioInputs,
    *,
    true_duration: float = 8.0,
    candidates: tuple[float, ...] = (0.5, 2.0, 8.0, 32.0),
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
    tolerance: float = 1e-20,
) -> dict[str, Any]:
    """A noise-free synthetic profile must be matched by its own duration."""
    truth = scenario.run(true_duration, arrhenius, settings)
    positions = truth.radii[::2]
    values = truth.concentrations[::2]
    result = run_calibration_search(
        positions,
        values,
        scenario.T_start,
        scenario.T_end,
        scenario.r_core,
        scenario.r_rim,
        scenario.dr,
        scenario.C_core0,
        scenario.C_rim0,
        candidates,
        arrhenius=arrhenius,
        settings=settings,
    )
    nearest = float(min(candidates, key=lambda d: abs(d - true_duration)))
    return {
        "passed": bool(result.best_duration == nearest and result.min_misfit <= tolerance),
        "best_duration": result.best_duration,
        "expected_duration": nearest,
        "min_misfit": result.min_misfit,
        "tolerance": tolerance,
    }


def run_fast_validation_suite(
    settings: SolverSettings | None = None,
    scenario: ScenarioInputs | None = None,
) -> ValidationReport:
    s = scenario or ScenarioInputs()
    reference = s.run(10.0, settings=settings)
    return ValidationReport(
        interface_continuity=check_interface_continuity(reference),
        zero_flux_boundaries=check_zero_flux_boundaries(reference),
        smoothing_with_duration=validate_smoothing_with_duration(s, settings=settings),
        near_zero_duration=validate_near_zero_duration(s, settings=settings),
        calibration_recovery=validate_calibration_recovery(s, settings=settings),
    )
