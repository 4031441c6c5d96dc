"""Radial Fe-Mg diffusion in zoned clinopyroxene and cooling-time calibration."""

from .alignment import align
from .calibration import fit, run_calibration_search
from .solver import GeometryError, NumericalInstabilityError, run_radial_diffusion, solve
from .validation import ValidationReport, run_fast_validation_suite

__all__ = [
    "GeometryError",
    "NumericalInstabilityError",
    "ValidationReport",
    "align",
    "fit",
    "run_calibration_search",
    "run_fast_validation_suite",
    "run_radial_diffusion",
    "solve",
]
