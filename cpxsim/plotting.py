from __future__ import annotations

import numpy as np
from matplotlib.figure import Figure

from .models import CalibrationResult, SampleModel

DISTANCE_LABEL = "Distance from core (μm)"
_BRACKET_STYLES = (
    {"linestyle": "-.", "color": (189 / 255, 215 / 255, 238 / 255), "linewidth": 1.25},
    {"linestyle": "-", "color": (46 / 255, 117 / 255, 182 / 255), "linewidth": 1.5},
    {"linestyle": "-.", "color": (157 / 255, 195 / 255, 230 / 255), "linewidth": 1.25},
)


def plot_calibration_fit(
    result: CalibrationResult,
    *,
    observed_label: str = "Observed Ca",
    model_label: str = "Best-fit Fe-Mg",
    ylabel: str = "Ca content (apfu)",
) -> Figure:
    fig = Figure(figsize=(5.0, 3.5), dpi=100)
    ax = fig.add_subplot(111)
    ax.scatter(result.observed_positions, result.observed_values, s=30, marker="d", label=observed_label)
    ax.plot(result.best_radii, result.best_concentrations, linewidth=1.5, label=model_label)
    ax.set_xlabel(DISTANCE_LABEL)
    ax.set_ylabel(ylabel)
    ax.set_title(f"Best-fit diffusion time: {result.best_duration:.2f} yrs")
    ax.legend(loc="best")
    return fig


def plot_misfit_curve(result: CalibrationResult) -> Figure:
    fig = Figure(figsize=(5.0, 3.5), dpi=100)
    ax = fig.add_subplot(111)
    ax.plot(result.durations, result.misfits, "k-", linewidth=1.5)
    ax.plot([result.best_duration], [result.min_misfit], "o", color="tab:red")
    ax.set_xlabel("Diffusion time (years)")
    ax.set_ylabel("Misfit (variance)")
    ax.set_title("Misfit between modeled and observed profiles")
    return fig


def plot_sample_model(
    model: SampleModel,
    observed_positions: np.ndarray,
    observed_values: np.ndarray,
    *,
    ylabel: str = "Mg#",
) -> Figure:
    """Proxy initial profile, bracketing Fe-Mg curves and the observed profile."""
    fig = Figure(figsize=(5.0, 3.5), dpi=100)
    ax = fig.add_subplot(111)
    initial = model.initial_curve
    ax.plot(initial.radii, initial.concentrations, "--k", linewidth=0.75, label=initial.label)
    for curve, style in zip(model.curves, _BRACKET_STYLES):
        ax.plot(curve.radii, curve.concentrations, label=curve.label, **style)
    ax.scatter(observed_positions, observed_values, s=40, c="k", marker="d", label="Observed")
    ax.set_xlabel(DISTANCE_LABEL)
    ax.set_ylabel(ylabel)
    ax.tick_params(direction="out")
    ax.legend(loc="best")
    if model.sample_name:
        ax.set_title(model.sample_name)
    return fig
