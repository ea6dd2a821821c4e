"""
plot_galaxy.py
==============
Matplotlib rendering for the spiral point-cloud generator.

Shows:
  • Every particle as a round point coloured by its own RGB
  • A perspective camera placed at (3, 3, 3) looking at the origin
  • Dark background with translucent points (additive-looking glow)

Two entry points:

  ``draw_galaxy``  – one-shot figure for a finished point set (CLI export).
  ``GalaxyView``   – long-lived view that owns the installed point set and
                     swaps it atomically on regeneration (GUI preview).

Axis convention
---------------
The generator works Y-up (x, z span the disk plane, y is the thin vertical
axis).  Matplotlib's 3-D axes are Z-up, so particles are plotted as
``(x, z, y)``.
"""

from __future__ import annotations

import math
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from spiralgen import GalaxyConfig, GalaxyGenerator, GalaxyPointSet


# ---------------------------------------------------------------------------
# Appearance constants
# ---------------------------------------------------------------------------

BG = "#000000"

# Point size in world units → scatter marker edge length in points.
SIZE_TO_POINTS = 100.0

# Translucency standing in for additive blending on a black background.
POINT_ALPHA = 0.6

# Camera at (3, 3, 3): elevation atan(1/√2), azimuth 45°; 75° vertical FOV.
CAMERA_ELEV = math.degrees(math.atan(1.0 / math.sqrt(2.0)))
CAMERA_AZIM = 45.0
CAMERA_FOV = 75.0


def marker_area(size: float) -> float:
    """Scatter ``s`` (points²) for a point of world size *size*."""
    return (size * SIZE_TO_POINTS) ** 2


def _style_axes(ax) -> None:
    ax.set_facecolor(BG)
    ax.figure.patch.set_facecolor(BG)
    ax.set_axis_off()
    ax.set_box_aspect((1, 1, 1))
    focal = 1.0 / math.tan(math.radians(CAMERA_FOV) / 2.0)
    ax.set_proj_type("persp", focal_length=focal)
    ax.view_init(elev=CAMERA_ELEV, azim=CAMERA_AZIM)


def _fit_limits(ax, points: GalaxyPointSet) -> None:
    """Cube limits centred on the origin that enclose every particle."""
    if len(points) == 0:
        extent = 1.0
    else:
        extent = float(np.abs(points.positions).max()) or 1.0
    extent *= 1.05
    ax.set_xlim(-extent, extent)
    ax.set_ylim(-extent, extent)
    ax.set_zlim(-extent, extent)


def _scatter(ax, points: GalaxyPointSet):
    """Add the point cloud to *ax* and return the new artist."""
    if len(points) == 0:
        return ax.scatter([], [], [], s=marker_area(points.size), depthshade=False)
    pos = points.positions
    # Out-of-range blend factors extrapolate past [0, 1]; a framebuffer
    # clamps them, so do the same for display.
    rgb = np.clip(points.colors, 0.0, 1.0)
    return ax.scatter(
        pos[:, 0], pos[:, 2], pos[:, 1],
        c=rgb,
        s=marker_area(points.size),
        marker="o",
        alpha=POINT_ALPHA,
        linewidths=0,
        depthshade=False,
    )


# ---------------------------------------------------------------------------
# One-shot figure
# ---------------------------------------------------------------------------

def draw_galaxy(
    points: GalaxyPointSet,
    ax=None,
    title: Optional[str] = None,
    figsize: tuple = (9, 9),
) -> Figure:
    """Draw *points* into *ax* (or a new 3-D figure) and return the Figure."""
    if ax is None:
        fig = plt.figure(figsize=figsize)
        ax = fig.add_subplot(projection="3d")
    fig = ax.figure

    _style_axes(ax)
    _scatter(ax, points)
    _fit_limits(ax, points)

    if title is None:
        title = f"Spiral galaxy  |  {len(points):,} particles"
    if title:
        ax.set_title(title, color="white", fontsize=11, pad=10)
    return fig


# ---------------------------------------------------------------------------
# Live view
# ---------------------------------------------------------------------------

class GalaxyView:
    """Figure that holds exactly one installed point set at a time.

    ``install`` builds the new artist before removing the old one, so a
    failure while constructing the replacement leaves the previous galaxy on
    screen.  ``tick`` advances a damped orbit and is meant to be called from
    a timer (the GUI frame loop).

    Parameters
    ----------
    fig : Figure, optional
        Figure to draw into; a new one is created when omitted.
    auto_rotate : float
        Constant orbit speed in degrees per second (0 = off).
    damping : float
        Fraction of the orbit velocity removed per tick, in (0, 1].
    """

    def __init__(
        self,
        fig: Optional[Figure] = None,
        auto_rotate: float = 0.0,
        damping: float = 0.05,
    ) -> None:
        if fig is None:
            fig = Figure(figsize=(9, 9))
        self.fig = fig
        self.ax = fig.add_subplot(projection="3d")
        _style_axes(self.ax)

        self.points: Optional[GalaxyPointSet] = None
        self._artist = None

        self.auto_rotate = auto_rotate
        self.damping = damping
        self._velocity = 0.0     # degrees per tick, decays by damping
        self._drag_azim: Optional[float] = None
        self._drag_step = 0.0

    # ── Point-set ownership ───────────────────────────────────────────────

    def install(self, points: GalaxyPointSet) -> None:
        """Replace the displayed point set with *points*."""
        artist = _scatter(self.ax, points)
        previous = self._artist
        self._artist = artist
        self.points = points
        if previous is not None:
            previous.remove()
        _fit_limits(self.ax, points)
        self.fig.canvas.draw_idle()

    def regenerate(self, cfg: GalaxyConfig, uniform=None) -> GalaxyPointSet:
        """Generate a new point set for *cfg* and install it.

        Errors from the generator propagate before anything is swapped.
        """
        points = GalaxyGenerator(cfg, uniform).generate()
        self.install(points)
        return points

    def release(self) -> None:
        """Drop the installed point set, leaving an empty scene."""
        if self._artist is not None:
            self._artist.remove()
        self._artist = None
        self.points = None
        self.fig.canvas.draw_idle()

    @property
    def artist(self):
        return self._artist

    # ── Camera orbit ──────────────────────────────────────────────────────

    def connect_orbit(self) -> None:
        """Hook mouse drags on the current canvas so a release keeps spinning.

        The 3-D axes rotate the camera themselves while dragging; these
        handlers only measure the azimuth change and hand the last step to
        ``nudge`` on release.  Call again after attaching a new canvas.
        """
        canvas = self.fig.canvas
        canvas.mpl_connect("button_press_event", self.on_press)
        canvas.mpl_connect("motion_notify_event", self.on_motion)
        canvas.mpl_connect("button_release_event", self.on_release)

    def on_press(self, event) -> None:
        if event.inaxes is not self.ax or event.button != 1:
            return
        self._velocity = 0.0
        self._drag_azim = self.ax.azim
        self._drag_step = 0.0

    def on_motion(self, _event) -> None:
        if self._drag_azim is None:
            return
        azim = self.ax.azim
        self._drag_step = (azim - self._drag_azim + 180.0) % 360.0 - 180.0
        self._drag_azim = azim

    def on_release(self, _event) -> None:
        if self._drag_azim is None:
            return
        self._drag_azim = None
        self.nudge(self._drag_step)
        self._drag_step = 0.0

    def nudge(self, degrees: float) -> None:
        """Add azimuthal orbit velocity, bled off by ``damping``."""
        self._velocity += degrees

    def tick(self, dt: float) -> bool:
        """Advance the orbit by *dt* seconds; True when the camera moved."""
        step = self.auto_rotate * dt + self._velocity
        self._velocity *= 1.0 - self.damping
        if abs(self._velocity) < 1e-4:
            self._velocity = 0.0
        if step == 0.0:
            return False
        self.ax.azim = (self.ax.azim + step) % 360.0
        return True
