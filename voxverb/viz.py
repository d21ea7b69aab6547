# voxverb/viz.py
from __future__ import annotations
from typing import Dict, List, Optional, Sequence

import numpy as np
import plotly.graph_objects as go
from scipy.signal import spectrogram as _spec

from .config import OCTAVE_CENTERS
from .geometry import VoxelWorld
from .synthesis import ImpulseResponse


# -----------------------------
# Colors / styles
# -----------------------------

VOXEL_GREEN = "rgb(0,255,128)"
GRID_C = "rgba(120,160,130,0.18)"
RAY_NEON_ORANGE = "rgba(255,120,0,0.6)"
BLOCK_PALETTE = [
    "rgb(0,255,128)", "rgb(200,120,255)", "rgb(255,200,0)",
    "rgb(0,180,255)", "rgb(255,90,90)", "rgb(160,160,160)",
]

_AXIS = dict(showbackground=True, backgroundcolor="#000",
             gridcolor=GRID_C, zerolinecolor=GRID_C, color="#cfd8dc")


def _plot_xyz(p: np.ndarray):
    """World is y-up, plotly is z-up: (x, y, z) -> (x, z, y)."""
    p = np.atleast_2d(np.asarray(p, dtype=float))
    return p[:, 0], p[:, 2], p[:, 1]


def _dark_layout(fig: "go.Figure", title: Optional[str] = None) -> "go.Figure":
    fig.update_layout(
        title=title,
        paper_bgcolor="#000", plot_bgcolor="#000",
        font=dict(color="#e6edf3"),
        margin=dict(l=50, r=20, t=40, b=40),
        legend=dict(font=dict(color="#e6edf3")),
    )
    return fig


# -----------------------------
# Voxel scene
# -----------------------------

def make_fig(world: VoxelWorld, max_voxels: int = 20000, opacity: float = 0.25) -> "go.Figure":
    """Solid voxel centres as square markers, one trace per block type."""
    fig = go.Figure()
    vox = world.solid_voxels()
    if len(vox) > max_voxels:
        idx = np.random.default_rng(0).choice(len(vox), size=max_voxels, replace=False)
        vox = vox[np.sort(idx)]

    ids = world.blocks[tuple(vox.T)] if len(vox) else np.zeros(0, dtype=np.int16)
    for n, bid in enumerate(np.unique(ids)):
        sel = vox[ids == bid] + 0.5
        x, y, z = _plot_xyz(sel)
        fig.add_trace(go.Scatter3d(
            x=x, y=y, z=z,
            mode="markers",
            marker=dict(size=3, symbol="square", opacity=opacity,
                        color=BLOCK_PALETTE[n % len(BLOCK_PALETTE)]),
            name=world.palette[int(bid)],
        ))

    fig.update_layout(
        paper_bgcolor="#000", plot_bgcolor="#000",
        scene=dict(xaxis=dict(_AXIS, title="x"), yaxis=dict(_AXIS, title="z"),
                   zaxis=dict(_AXIS, title="y (up)"), bgcolor="#000", aspectmode="data"),
        margin=dict(l=0, r=0, b=0, t=30),
        legend=dict(font=dict(color="#e6edf3")),
    )
    return fig


def add_source_receiver(fig: "go.Figure", S: np.ndarray, R: np.ndarray):
    for p, color, name in ((S, "rgb(255,32,64)", "Source"), (R, "rgb(255,255,255)", "Receiver")):
        x, y, z = _plot_xyz(p)
        fig.add_trace(go.Scatter3d(
            x=x, y=y, z=z,
            mode="markers",
            marker=dict(size=6, color=color),
            name=name,
        ))


def add_ray_paths(fig: "go.Figure", paths: Sequence[np.ndarray], max_paths: int = 150):
    """All preview paths in a single line trace, separated by None gaps."""
    xs: List[Optional[float]] = []
    ys: List[Optional[float]] = []
    zs: List[Optional[float]] = []
    for path in list(paths)[:max_paths]:
        x, y, z = _plot_xyz(path)
        xs += list(x) + [None]
        ys += list(y) + [None]
        zs += list(z) + [None]
    if xs:
        fig.add_trace(go.Scatter3d(
            x=xs, y=ys, z=zs,
            mode="lines",
            line=dict(width=2, color=RAY_NEON_ORANGE),
            name="Ray paths",
        ))


# -----------------------------
# IR figures
# -----------------------------

def ir_figure(ir: ImpulseResponse, title: str = "Impulse response") -> "go.Figure":
    y = np.asarray(ir.combined, dtype=float)
    t = np.arange(y.size, dtype=float) / float(ir.fs)
    fig = go.Figure(data=[go.Scatter(x=t, y=y, mode="lines",
                                     line=dict(width=1, color=VOXEL_GREEN), name="IR")])
    _dark_layout(fig, title)
    fig.update_layout(xaxis=dict(title="Time (s)", color="#e6edf3"),
                      yaxis=dict(title="Amplitude", color="#e6edf3"))
    return fig


def band_energy_figure(totals: np.ndarray, title: str = "Arrived energy per band") -> "go.Figure":
    vals = np.asarray(totals, dtype=float)
    db = 10.0 * np.log10(np.maximum(vals, 1e-20))
    fig = go.Figure(data=[go.Bar(x=[f"{b} Hz" for b in OCTAVE_CENTERS], y=db,
                                 marker=dict(color=VOXEL_GREEN))])
    _dark_layout(fig, title)
    fig.update_layout(yaxis=dict(title="dB (re 1)", color="#e6edf3"),
                      xaxis=dict(color="#e6edf3"))
    return fig


def outcome_table(outcomes: Dict[str, int]) -> List[Dict[str, object]]:
    total = sum(outcomes.values())
    return [
        {"Outcome": k, "Rays": v, "Share (%)": round(100.0 * v / total, 2) if total else 0.0}
        for k, v in sorted(outcomes.items())
    ]


# -----------------------------
# Spectrogram
# -----------------------------

def spectrogram_figure(y: np.ndarray, sr: int, title: str,
                       nperseg: int = 1024, noverlap: int = 768,
                       max_cols: int = 1200) -> "go.Figure":
    if y is None or np.asarray(y).size < 2:
        return go.Figure()

    y = np.asarray(y, dtype=np.float32)
    nperseg = min(int(nperseg), y.size)
    noverlap = min(int(noverlap), nperseg - 1)
    f, t, S = _spec(y, fs=sr, window="hann",
                    nperseg=nperseg, noverlap=noverlap,
                    mode="magnitude", detrend=False, scaling="density")
    S_db = 20 * np.log10(S + 1e-12)

    # Decimate columns if too wide
    T = S_db.shape[1]
    if T > max_cols:
        factor = int(np.ceil(T / max_cols))
        new_T = T // factor
        cut = new_T * factor
        S_db = S_db[:, :cut].reshape(S_db.shape[0], new_T, factor).mean(axis=2)
        t = t[:cut].reshape(new_T, factor).mean(axis=1)

    mask = f > 0
    f, S_db = f[mask], S_db[mask, :]
    top = float(np.max(S_db)) if S_db.size else 0.0

    fig = go.Figure(data=[go.Heatmap(
        x=t, y=f, z=S_db,
        colorscale="Cividis",
        colorbar=dict(title="dB"),
        zmin=top - 80, zmax=top,
    )])
    _dark_layout(fig, title)
    fig.update_layout(
        xaxis=dict(title="Time (s)", color="#e6edf3"),
        yaxis=dict(title="Freq (Hz)", type="log", color="#e6edf3"),
    )
    return fig
