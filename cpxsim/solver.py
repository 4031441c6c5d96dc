from __future__ import annotations

import logging
import math
import warnings

import numpy as np
from scipy import linalg

from .models import ArrheniusParameters, DiffusionResult, SolverSettings

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 365.0 * 24.0 * 3600.0
_ABSOLUTE_ZERO_C = -273.15
# Slack for stepped ranges so that e.g. 0:0.1:0.3 keeps its last node.
_GRID_TOLERANCE = 1e-9


class GeometryError(ValueError):
    pass


class NumericalInstabilityError(RuntimeError):
    pass


def _stepped_range(start: float, stop: float, step: float) -> np.ndarray:
    count = int(math.floor((stop - start) / step + _GRID_TOLERANCE)) + 1
    return start + step * np.arange(count, dtype=float)


def build_radial_grid(r_core: float, r_rim: float, dr: float) -> tuple[np.ndarray, int]:
    """Concatenate the core grid [0, r_core] and the rim grid [r_core, r_rim].

    The interface node appears once. Returns (radii, n_core) where n_core
    counts the core nodes including the interface. Radii that are not whole
    multiples of dr are truncated onto the stepped range with a warning.
    """
    r_core = float(r_core)
    r_rim = float(r_rim)
    dr = float(dr)
    if not all(math.isfinite(v) for v in (r_core, r_rim, dr)):
        raise GeometryError("r_core, r_rim and dr must be finite.")
    if dr <= 0:
        raise GeometryError("dr must be positive.")
    if r_core <= 0:
        raise GeometryError("r_core must be positive.")
    if r_rim <= r_core:
        raise GeometryError(f"r_rim ({r_rim}) must be greater than r_core ({r_core}).")

    core = _stepped_range(0.0, r_core, dr)
    rim = _stepped_range(r_core, r_rim, dr)
    if core.size < 2 or rim.size < 2:
        raise GeometryError(
            f"dr={dr} leaves fewer than two nodes in the core or rim segment."
        )

    tol = 1e-6 * dr
    if abs(core[-1] - r_core) > tol or abs(rim[-1] - r_rim) > tol:
        warnings.warn(
            f"r_core={r_core} / r_rim={r_rim} are not multiples of dr={dr}; "
            f"segments truncated to end at {core[-1]:g} and {rim[-1]:g}.",
            stacklevel=2,
        )

    radii = np.concatenate([core, rim[1:]])
    if np.any(np.diff(radii) <= 0):
        raise GeometryError("Radial grid is not strictly increasing.")
    return radii, int(core.size)


def plan_time_steps(
    duration_years: float,
    T_start: float,
    T_end: float,
    dr: float,
    arrhenius: ArrheniusParameters,
    settings: SolverSettings,
) -> tuple[float, int]:
    """Return (dt in seconds, number of steps) for the selected time step mode."""
    total_seconds = duration_years * SECONDS_PER_YEAR
    if settings.time_step_mode == "proportional":
        dt = duration_years * settings.step_seconds_per_year
        n_steps = int(math.floor(total_seconds / dt + 0.5))
    else:
        d_max = arrhenius.diffusivity(max(T_start, T_end))
        if not math.isfinite(d_max):
            raise NumericalInstabilityError(
                f"Diffusivity is not finite at {max(T_start, T_end)} °C."
            )
        if d_max > 0:
            dt_limit = 2.0 * settings.max_alpha * dr * dr / d_max
            n_steps = max(settings.min_steps, int(math.ceil(total_seconds / dt_limit)))
        else:
            n_steps = settings.min_steps
        dt = total_seconds / n_steps

    if not dt > 0:
        raise GeometryError("Time step must be positive.")
    if n_steps < 1:
        raise GeometryError(
            f"Time step of {dt:g} s exceeds the diffusion duration of {total_seconds:g} s."
        )
    return dt, n_steps


class RadialOperator:
    """Three-band Crank-Nicolson operator for the concatenated core + rim grid.

    Interior rows discretize dC/dt = D (C'' + 2/r C'); the radial coefficients
    are fixed by the grid and built once, so each step only rescales them by
    alpha. Rows 0 and n-1 hold the zero-flux conditions and the interface row
    couples both segments with diffusivity-weighted coefficients.
    """

    def __init__(self, radii: np.ndarray, n_core: int, dr: float) -> None:
        n = int(radii.size)
        if n < 3:
            raise GeometryError("Radial grid needs at least three nodes.")
        self.size = n
        self.interface = n_core - 1
        ratio = np.zeros(n, dtype=float)
        ratio[1:] = dr / radii[1:]
        self._lower_shape = -(1.0 - ratio)
        self._upper_shape = -(1.0 + ratio)

    def bands(
        self,
        alpha: float,
        diffusivity: float,
    ) -> tuple[tuple[np.ndarray, np.ndarray, np.ndarray], tuple[np.ndarray, np.ndarray, np.ndarray]]:
        """Return ((lower, diag, upper) implicit, (lower, diag, upper) explicit)."""
        n = self.size
        k = self.interface
        D = diffusivity

        lower = alpha * self._lower_shape
        diag = np.full(n, 1.0 + 2.0 * alpha)
        upper = alpha * self._upper_shape
        ex_lower = -lower
        ex_diag = np.full(n, 1.0 - 2.0 * alpha)
        ex_upper = -upper

        # r = 0
        lower[0], diag[0], upper[0] = 0.0, -1.0, 1.0
        ex_lower[0], ex_diag[0], ex_upper[0] = 0.0, 1.0, -1.0
        # core/rim interface
        lower[k], diag[k], upper[k] = D, -2.0 * D, D
        ex_lower[k], ex_diag[k], ex_upper[k] = -D, 2.0 * D, -D
        # r = r_rim
        lower[-1], diag[-1], upper[-1] = -1.0, 1.0, 0.0
        ex_lower[-1], ex_diag[-1], ex_upper[-1] = 1.0, -1.0, 0.0

        return (lower, diag, upper), (ex_lower, ex_diag, ex_upper)

    @staticmethod
    def apply(
        lower: np.ndarray,
        diag: np.ndarray,
        upper: np.ndarray,
        values: np.ndarray,
    ) -> np.ndarray:
        out = diag * values
        out[1:] += lower[1:] * values[:-1]
        out[:-1] += upper[:-1] * values[1:]
        return out


def thomas_solve(
    lower: np.ndarray,
    diag: np.ndarray,
    upper: np.ndarray,
    rhs: np.ndarray,
) -> np.ndarray:
    """Solve a tridiagonal system by forward elimination and back substitution.

    lower[i] couples row i to unknown i-1 and upper[i] couples row i to
    unknown i+1; lower[0] and upper[-1] are ignored. No pivoting is done.
    """
    a = np.asarray(lower, dtype=float).tolist()
    b = np.asarray(diag, dtype=float).tolist()
    c = np.asarray(upper, dtype=float).tolist()
    d = np.asarray(rhs, dtype=float).tolist()
    n = len(d)
    if n == 0:
        raise ValueError("Tridiagonal system must not be empty.")
    if not len(a) == len(b) == len(c) == n:
        raise ValueError("Tridiagonal bands and right-hand side must have the same length.")

    for i in range(1, n):
        pivot = b[i - 1]
        if pivot == 0.0:
            raise NumericalInstabilityError(f"Zero pivot in tridiagonal solve at row {i - 1}.")
        m = a[i] / pivot
        b[i] -= m * c[i - 1]
        d[i] -= m * d[i - 1]
    if b[-1] == 0.0:
        raise NumericalInstabilityError(f"Zero pivot in tridiagonal solve at row {n - 1}.")

    x = [0.0] * n
    x[-1] = d[-1] / b[-1]
    for i in range(n - 2, -1, -1):
        x[i] = (d[i] - c[i] * x[i + 1]) / b[i]
    return np.array(x, dtype=float)


def _solve_banded(
    lower: np.ndarray,
    diag: np.ndarray,
    upper: np.ndarray,
    rhs: np.ndarray,
) -> np.ndarray:
    n = diag.size
    ab = np.zeros((3, n), dtype=float)
    ab[0, 1:] = upper[:-1]
    ab[1] = diag
    ab[2, :-1] = lower[1:]
    try:
        return linalg.solve_banded((1, 1), ab, rhs)
    except (ValueError, linalg.LinAlgError) as exc:
        raise NumericalInstabilityError(f"Banded tridiagonal solve failed: {exc}") from exc


def _check_run_inputs(
    duration_years: float,
    T_start: float,
    T_end: float,
    C_core0: float,
    C_rim0: float,
) -> None:
    if not math.isfinite(duration_years) or duration_years <= 0:
        raise GeometryError("duration_years must be positive and finite.")
    for label, value in (("T_start", T_start), ("T_end", T_end)):
        if not math.isfinite(value):
            raise ValueError(f"{label} must be finite.")
        if value <= _ABSOLUTE_ZERO_C:
            raise ValueError(f"{label} must be above absolute zero.")
    for label, value in (("C_core0", C_core0), ("C_rim0", C_rim0)):
        if not math.isfinite(value):
            raise ValueError(f"{label} must be finite.")


def run_radial_diffusion(
    duration_years: float,
    T_start: float,
    T_end: float,
    r_core: float,
    r_rim: float,
    dr: float,
    C_core0: float,
    C_rim0: float,
    *,
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
) -> DiffusionResult:
    """Diffuse a core/rim step profile along a linear cooling path.

    Temperature falls linearly from T_start to T_end (°C) over the duration
    and D is re-evaluated from the Arrhenius law at every step. After each
    solve the interface value is averaged with the core-side copy kept from
    the previous step, so both segments share one value there.
    """
    duration_years = float(duration_years)
    T_start = float(T_start)
    T_end = float(T_end)
    dr = float(dr)
    C_core0 = float(C_core0)
    C_rim0 = float(C_rim0)
    arrhenius = arrhenius or ArrheniusParameters()
    settings = settings or SolverSettings()

    _check_run_inputs(duration_years, T_start, T_end, C_core0, C_rim0)
    radii, n_core = build_radial_grid(r_core, r_rim, dr)
    dt, n_steps = plan_time_steps(duration_years, T_start, T_end, dr, arrhenius, settings)
    cooling_rate = (T_start - T_end) / (duration_years * SECONDS_PER_YEAR)  # °C/s

    operator = RadialOperator(radii, n_core, dr)
    k = operator.interface
    profile = np.empty(radii.size, dtype=float)
    profile[:k] = C_core0
    profile[k:] = C_rim0
    core_interface = C_core0

    solve_bands = thomas_solve if settings.linear_solver == "thomas" else _solve_banded
    logger.debug(
        "Radial diffusion: %.4g yr, %d nodes, %d steps of %.4g s (%s, %s)",
        duration_years, radii.size, n_steps, dt, settings.time_step_mode, settings.linear_solver,
    )

    temperature = T_start
    with np.errstate(invalid="ignore", over="ignore"):
        for step in range(1, n_steps + 1):
            temperature -= cooling_rate * dt
            D = arrhenius.diffusivity(temperature)
            alpha = D * dt / (2.0 * dr * dr)
            implicit, explicit = operator.bands(alpha, D)
            rhs = operator.apply(*explicit, profile)
            profile = solve_bands(*implicit, rhs)
            if not np.all(np.isfinite(profile)):
                raise NumericalInstabilityError(
                    f"Non-finite concentration after step {step} of {n_steps} "
                    f"(T={temperature:.2f} °C, alpha={alpha:.3e})."
                )
            core_interface = 0.5 * (core_interface + profile[k])
            profile[k] = core_interface

    return DiffusionResult(
        radii=radii,
        concentrations=profile,
        n_core=n_core,
        n_steps=n_steps,
        dt_seconds=dt,
        final_temperature=temperature,
    )


def solve(
    duration_years: float,
    T_start: float,
    T_end: float,
    r_core: float,
    r_rim: float,
    dr: float,
    C_core0: float,
    C_rim0: float,
    *,
    arrhenius: ArrheniusParameters | None = None,
    settings: SolverSettings | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Return (radii, concentrations) after diffusing for duration_years."""
    result = run_radial_diffusion(
        duration_years,
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
    return result.radii, result.concentrations
