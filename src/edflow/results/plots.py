"""Plotly figures for inspecting samples and fits.

These are reporting helpers: the pipeline never requires them, but they
are what an analyst looks at before accepting a selection.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from edflow.core.entities import Family
from edflow.fitting.diagnostics import REFERENCE_POINTS, CullenFreyResult, family_curve
from edflow.fitting.fitter import FitResult

FAMILY_COLOURS = {
    Family.EXPONENTIAL: "#E94F37",
    Family.GAMMA: "#2E86AB",
    Family.LOGNORMAL: "#F39237",
    Family.WEIBULL: "#3F8F29",
}


def cullen_frey_figure(
    result: CullenFreyResult,
    families: Optional[Sequence] = None,
    title: str = "Cullen and Frey graph",
) -> go.Figure:
    """Observed point, bootstrap cloud and family locations.

    Kurtosis runs downwards, as in the classic presentation.
    """
    families = [Family.parse(f) for f in (families or list(Family))]
    fig = go.Figure()

    for family in families:
        curve = family_curve(family)
        fig.add_trace(go.Scatter(
            x=curve[:, 0],
            y=curve[:, 1],
            mode="markers" if len(curve) == 1 else "lines",
            name=family.value,
            marker=dict(size=12, symbol="triangle-up", color=FAMILY_COLOURS[family]),
            line=dict(color=FAMILY_COLOURS[family], width=2),
        ))

    for name, (x, y) in REFERENCE_POINTS.items():
        fig.add_trace(go.Scatter(
            x=[x],
            y=[y],
            mode="markers",
            name=name,
            marker=dict(size=10, symbol="star", color="gray"),
        ))

    if result.bootstrap is not None and len(result.bootstrap):
        fig.add_trace(go.Scatter(
            x=result.bootstrap[:, 0],
            y=result.bootstrap[:, 1],
            mode="markers",
            name="bootstrapped values",
            marker=dict(size=4, color="rgba(255, 165, 0, 0.4)"),
        ))

    fig.add_trace(go.Scatter(
        x=[result.square_skewness],
        y=[result.kurtosis],
        mode="markers",
        name="observation",
        marker=dict(size=14, color="#333", line=dict(width=2, color="white")),
    ))

    upper_x = max(result.square_skewness * 1.5, 4.5)
    upper_y = max(result.kurtosis * 1.2, 10.0)
    fig.update_layout(
        title=title,
        xaxis=dict(title="square of skewness", range=[0, upper_x]),
        yaxis=dict(title="kurtosis", range=[upper_y, 1]),
    )
    return fig


def qq_figure(sample: Sequence[float], fits: Sequence[FitResult], title: str = "Q-Q plot") -> go.Figure:
    """Theoretical vs empirical quantiles for one or more fits."""
    x = np.sort(np.asarray(sample, dtype=float))
    n = len(x)
    probs = (np.arange(1, n + 1) - 0.5) / n

    fig = go.Figure()
    for fit in fits:
        theoretical = fit.frozen().ppf(probs)
        fig.add_trace(go.Scatter(
            x=theoretical,
            y=x,
            mode="markers",
            name=fit.family.value,
            marker=dict(size=4, color=FAMILY_COLOURS[fit.family]),
        ))

    if n:
        fig.add_trace(go.Scatter(
            x=[x[0], x[-1]],
            y=[x[0], x[-1]],
            mode="lines",
            name="y = x",
            line=dict(dash="dash", color="gray", width=1),
        ))
    fig.update_layout(
        title=title,
        xaxis_title="Theoretical quantiles (s)",
        yaxis_title="Empirical quantiles (s)",
    )
    return fig


def density_figure(
    sample: Sequence[float],
    fits: Sequence[FitResult],
    nbins: int = 50,
    title: str = "Histogram and fitted densities",
) -> go.Figure:
    """Density-normalised histogram with fitted PDFs overlaid."""
    x = np.asarray(sample, dtype=float)
    fig = go.Figure()
    fig.add_trace(go.Histogram(
        x=x,
        nbinsx=nbins,
        histnorm="probability density",
        name="empirical",
        marker_color="rgba(46, 134, 171, 0.35)",
    ))

    if len(x):
        grid = np.linspace(max(x.min(), 1e-9), x.max(), 400)
        for fit in fits:
            fig.add_trace(go.Scatter(
                x=grid,
                y=fit.frozen().pdf(grid),
                mode="lines",
                name=fit.family.value,
                line=dict(color=FAMILY_COLOURS[fit.family], width=2),
            ))
    fig.update_layout(title=title, xaxis_title="Seconds", yaxis_title="Density")
    return fig


def durations_box_figure(long_frame: pd.DataFrame, title: str = "Durations by cohort") -> go.Figure:
    """Box plot of a long-form duration table (from ``cohorts_to_long``)."""
    color = "cohort" if "cohort" in long_frame.columns else None
    fig = px.box(
        long_frame,
        x="duration_type",
        y="value",
        color=color,
        labels={"value": "Seconds", "duration_type": "Duration"},
        title=title,
    )
    return fig
