from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np


TIME_STEP_MODES = {"proportional", "stable"}
LINEAR_SOLVERS = {"thomas", "banded"}


def _normalize_choice(value: str, allowed: set[str], label: str) -> str:
    choice = str(value).strip().lower()
    if choice not in allowed:
        options = ", ".join(sorted(allowed))
        raise ValueError(f"Unsupported {label} '{value}'. Supported values: {options}.")
    return choice


@dataclass
class ArrheniusParameters:
    # Fe-Mg interdiffusion in clinopyroxene. D0 is 2.77e-7 m²/s written in μm²/s.
    pre_exponential: float = 2.77e5      # μm²/s
    activation_energy: float = 320.7     # kJ/mol
    gas_constant: float = 0.008314       # kJ/(mol K)

    def __post_init__(self) -> None:
        if not self.pre_exponential > 0:
            raise ValueError("pre_exponential must be positive.")
        if not self.activation_energy >= 0:
            raise ValueError("activation_energy must be non-negative.")
        if not self.gas_constant > 0:
            raise ValueError("gas_constant must be positive.")

    def diffusivity(self, temperature_c: float) -> float:
        """D(T) = D0 * exp(-Ea / (R * T)) with T converted from °C to K."""
        temperature_k = float(temperature_c) + 273.15
        return self.pre_exponential * math.exp(
            -self.activation_energy / (self.gas_constant * temperature_k)
        )


@dataclass
class SolverSettings:
    """Time stepping and linear solve options for the radial solver.

    ``proportional`` reproduces the published model: dt is the duration in
    years times ``step_seconds_per_year`` seconds, so the step count stays
    near 3154 whatever the diffusivity. ``stable`` instead caps
    alpha = D*dt/(2*dr²) at ``max_alpha`` for the hottest temperature on the
    path and never takes fewer than ``min_steps`` steps. The two modes give
    similar profile shapes but not identical numbers.
    """

    time_step_mode: str = "proportional"
    step_seconds_per_year: float = 1e4
    max_alpha: float = 0.5
    min_steps: int = 100
    linear_solver: str = "thomas"

    def __post_init__(self) -> None:
        self.time_step_mode = _normalize_choice(self.time_step_mode, TIME_STEP_MODES, "time step mode")
        self.linear_solver = _normalize_choice(self.linear_solver, LINEAR_SOLVERS, "linear solver")
        if not self.step_seconds_per_year > 0:
            raise ValueError("step_seconds_per_year must be positive.")
        if not self.max_alpha > 0:
            raise ValueError("max_alpha must be positive.")
        if self.min_steps < 1:
            raise ValueError("min_steps must be >= 1.")


@dataclass
class SearchSettings:
    """Candidate diffusion durations (years) for the calibration search.

    The defaults (100 values between 0.01 and 100 years) are a search window
    chosen for lunar basalt clinopyroxene, not a property of the model.
    """

    lower_years: float = 0.01
    upper_years: float = 100.0
    count: int = 100

    def __post_init__(self) -> None:
        if not self.lower_years > 0:
            raise ValueError("lower_years must be positive.")
        if not self.upper_years > self.lower_years:
            raise ValueError("upper_years must be greater than lower_years.")
        if self.count < 1:
            raise ValueError("count must be >= 1.")

    def candidate_durations(self) -> np.ndarray:
        if self.count == 1:
            return np.array([self.lower_years], dtype=float)
        return np.linspace(self.lower_years, self.upper_years, self.count)


@dataclass
class DiffusionResult:
    radii: np.ndarray
    concentrations: np.ndarray
    n_core: int                  # nodes in the core segment, interface included
    n_steps: int
    dt_seconds: float
    final_temperature: float     # °C after the last step

    @property
    def interface_index(self) -> int:
        return self.n_core - 1

    @property
    def core_concentrations(self) -> np.ndarray:
        return self.concentrations[: self.n_core]

    @property
    def rim_concentrations(self) -> np.ndarray:
        return self.concentrations[self.n_core - 1:]


@dataclass
class CalibrationResult:
    durations: np.ndarray              # years, in search order
    misfits: np.ndarray
    best_index: int
    best_duration: float               # years
    best_cooling_rate: float           # K/h
    min_misfit: float
    observed_positions: np.ndarray
    observed_values: np.ndarray
    best_radii: np.ndarray
    best_concentrations: np.ndarray

    def summary(self) -> tuple[float, float, float]:
        return self.best_duration, self.best_cooling_rate, self.min_misfit


@dataclass
class SegmentLevels:
    r_core: float
    r_rim: float
    core_level: float
    rim_level: float


@dataclass
class GrainSample:
    name: str
    distance: np.ndarray               # μm from the core
    slow_profile: np.ndarray           # e.g. Ca (apfu)
    fast_profile: np.ndarray           # e.g. Mg#
    slow_levels: SegmentLevels
    fast_levels: SegmentLevels


@dataclass
class CoolingRateBracket:
    lower: float                       # K/h
    best: float
    upper: float

    def __post_init__(self) -> None:
        for label, rate in (("lower", self.lower), ("best", self.best), ("upper", self.upper)):
            if not rate > 0:
                raise ValueError(f"Cooling rate '{label}' must be positive.")


@dataclass
class ProfileCurve:
    label: str
    cooling_rate: float                # K/h
    duration: float                    # years
    radii: np.ndarray
    concentrations: np.ndarray


@dataclass
class SampleModel:
    sample_name: str
    initial_duration: float            # years, equivalent time of the proxy profile
    initial_curve: ProfileCurve        # proxy profile aligned onto the best curve
    curves: list[ProfileCurve] = field(default_factory=list)   # lower, best, upper
    effective_cooling_rate: float = 0.0
