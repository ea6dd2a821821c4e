"""
spiralgen.py
============
Core procedural generator for a point-cloud spiral galaxy.

Produces ``count`` particles, each with a 3-D position and an RGB colour,
arranged along ``branches`` spiral arms that wind ``turns`` times around the
centre.  Scatter around the ideal spiral is normally distributed; the normal
deviates come from an inverse-normal-CDF approximation fed by a uniform
random source, so the whole point set is a deterministic function of the
parameters and the uniform draws.

Per particle ``i`` four uniform draws are consumed, always in this order:

  • u_theta – angular position along the unrolled spiral
  • u_n1    – radial scatter magnitude (through ``quantile``)
  • u_sign  – radial scatter sign
  • u_n2    – out-of-plane scatter angle (through ``quantile``)

Colour is blended from ``inside_color`` to ``outside_color`` by the particle's
wrapped radius divided by the reference ``radius``.  The blend factor is not
clamped.

Usage (importable)
------------------
    from spiralgen import GalaxyConfig, GalaxyGenerator
    cfg = GalaxyConfig(count=20_000, branches=3, seed=7)
    points = GalaxyGenerator(cfg).generate()
    positions, colors = points.buffers()

Usage (script, uses all defaults)
----------------------------------
    python spiralgen.py
"""

from __future__ import annotations

import dataclasses
import json
import math
import numbers
import time
from typing import Callable, Optional, Tuple, Union

import numpy as np
import pandas as pd
from matplotlib.colors import to_rgb as _mpl_to_rgb
from scipy.special import ndtri


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GalaxyError(Exception):
    """Base class for all generator errors."""


class InvalidArgument(GalaxyError, ValueError):
    """A probability outside the open interval (0, 1) reached ``quantile``."""


class InvalidParameter(GalaxyError, ValueError):
    """A galaxy parameter is outside the range the generator can handle."""


# ---------------------------------------------------------------------------
# Inverse normal CDF
# ---------------------------------------------------------------------------

# Rational-approximation coefficients (P. J. Acklam).  Relative error of the
# approximation is below 1.15e-9 over the whole domain.
_A = (-39.6968302866538, 220.946098424521, -275.928510446969,
      138.357751867269, -30.6647980661472, 2.50662827745924)
_B = (-54.4760987982241, 161.585836858041, -155.698979859887,
      66.8013118877197, -13.2806815528857)
_C = (-7.78489400243029e-3, -0.322396458041136, -2.40075827716184,
      -2.54973253934373, 4.37466414146497, 2.93816398269878)
_D = (7.78469570904146e-3, 0.32246712907004, 2.445134137143,
      3.75440866190742)

P_LOW = 0.02425
P_HIGH = 1.0 - P_LOW


def _tail(q: np.ndarray) -> np.ndarray:
    c1, c2, c3, c4, c5, c6 = _C
    d1, d2, d3, d4 = _D
    return ((((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6)
            / ((((d1 * q + d2) * q + d3) * q + d4) * q + 1.0))


def quantile(p):
    """Standard-normal quantile: the *z* for which Φ(z) = *p*.

    Three-region rational approximation: a central region
    ``P_LOW <= p <= P_HIGH`` evaluated in ``r = (p - 0.5)²`` and two tails
    evaluated in ``q = sqrt(-2 ln p)`` (mirrored for the upper tail).

    Parameters
    ----------
    p : float or array-like
        Probabilities, each strictly inside (0, 1).

    Returns
    -------
    float for scalar input, otherwise an ndarray with the shape of *p*.

    Raises
    ------
    InvalidArgument
        If any value is ``<= 0``, ``>= 1`` or NaN.
    """
    scalar = np.ndim(p) == 0
    arr = np.atleast_1d(np.asarray(p, dtype=np.float64))

    inside = (arr > 0.0) & (arr < 1.0)   # False for NaN as well
    if not inside.all():
        bad = arr[~inside].flat[0]
        raise InvalidArgument(
            f"quantile: probability {bad!r} is outside the open interval (0, 1)"
        )

    out = np.empty_like(arr)
    low = arr < P_LOW
    high = arr > P_HIGH
    mid = ~(low | high)

    if low.any():
        q = np.sqrt(-2.0 * np.log(arr[low]))
        out[low] = _tail(q)

    if mid.any():
        a1, a2, a3, a4, a5, a6 = _A
        b1, b2, b3, b4, b5 = _B
        q = arr[mid] - 0.5
        r = q * q
        out[mid] = (
            (((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6) * q
            / (((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1.0)
        )

    if high.any():
        q = np.sqrt(-2.0 * np.log(1.0 - arr[high]))
        out[high] = -_tail(q)

    if scalar:
        return float(out[0])
    return out


# ---------------------------------------------------------------------------
# Colour helpers
# ---------------------------------------------------------------------------

ColorSpec = Union[str, Tuple[float, float, float]]


def to_rgb(color: ColorSpec) -> Tuple[float, float, float]:
    """Convert a hex string, colour name or RGB triple to a float triple.

    Raises
    ------
    InvalidParameter
        If *color* cannot be parsed.  matplotlib also rejects triples with
        channels outside [0, 1].
    """
    try:
        return tuple(float(c) for c in _mpl_to_rgb(color))
    except (ValueError, TypeError) as exc:
        raise InvalidParameter(f"unrecognised colour {color!r}") from exc


def lerp(a, b, t):
    """Blend colour *a* towards *b* by *t*, component-wise.

    *t* may be a scalar or a 1-D array of per-particle factors, in which case
    the result has shape ``(len(t), 3)``.  Values outside [0, 1] extrapolate;
    nothing is clamped.  Written as ``a·(1-t) + b·t`` so the end points come
    back exactly.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64)
    if t.ndim:
        t = t[:, None]
    return a * (1.0 - t) + b * t


# ---------------------------------------------------------------------------
# Parameter ranges
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class ParamRange:
    """Panel range for one numeric parameter."""

    lo: float
    hi: float
    step: float
    default: float
    integer: bool = False

    def snap(self, value: float) -> float:
        """Round *value* to the step grid and clamp it to [lo, hi]."""
        value = max(self.lo, min(self.hi, float(value)))
        snapped = round(round((value - self.lo) / self.step) * self.step + self.lo, 10)
        snapped = max(self.lo, min(self.hi, snapped))
        return int(round(snapped)) if self.integer else snapped


PARAMETER_RANGES = {
    "flatness":         ParamRange(0.0,   2.0,        0.1,   1.0),
    "tightness":        ParamRange(0.0,   2.0,        0.05,  0.075),
    "turns":            ParamRange(0.5,   5.0,        0.1,   3.0),
    "count":            ParamRange(100,   1_000_000,  100,   100_000, integer=True),
    "size":             ParamRange(0.001, 0.1,        0.001, 0.01),
    "radius":           ParamRange(0.01,  20.0,       0.01,  5.0),
    "branches":         ParamRange(1,     20,         1,     1, integer=True),
    "spin":             ParamRange(-5.0,  5.0,        0.001, 1.0),
    "randomness":       ParamRange(0.0,   2.0,        0.001, 0.2),
    "randomness_power": ParamRange(1.0,   10.0,       0.001, 3.0),
}

COLOR_PARAMETERS = ("inside_color", "outside_color")

# Keys written by the browser front-end's parameter object.
_LEGACY_KEYS = {
    "randomnessPower": "randomness_power",
    "insideColor":     "inside_color",
    "outsideColor":    "outside_color",
}


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class GalaxyConfig:
    """All tunable parameters for galaxy generation.

    Units
    -----
    Positions come out in the same arbitrary unit as ``radius``.  The wrapped
    radius of a particle is an angle-like quantity in ``[0, turns·2π)``, so
    with the defaults (``turns=3``) particles reach about 18.8 units out while
    colour is normalised against ``radius=5``; outer particles therefore
    extrapolate past ``outside_color``.

    Reserved fields
    ---------------
    ``spin``, ``randomness`` and ``randomness_power`` are carried through the
    panel and parameter files but do not enter the position formula.
    """

    # ---- shape ----
    flatness: float = 1.0         # vertical compression of the scatter
    tightness: float = 0.075      # radial scatter magnitude
    turns: float = 3.0            # spiral revolutions (angular span turns·2π)
    branches: int = 1             # number of spiral arms

    # ---- particles ----
    count: int = 100_000
    size: float = 0.01            # rendered point size, passed through

    # ---- colour ----
    radius: float = 5.0           # reference radius for the colour blend
    inside_color: ColorSpec = "#ff6030"
    outside_color: ColorSpec = "#1b3984"

    # ---- reserved ----
    spin: float = 1.0
    randomness: float = 0.2
    randomness_power: float = 3.0

    # ---- reproducibility ----
    seed: Optional[int] = None    # seeds the default uniform source

    @property
    def span(self) -> float:
        """Angular span of the unrolled spiral, ``turns · 2π``."""
        return self.turns * 2 * math.pi

    def validate(self) -> None:
        """Raise ``InvalidParameter`` unless generation can run to completion."""
        for name in PARAMETER_RANGES:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidParameter(f"{name} must be a number (got {value!r})")
        if self.seed is not None and (
            isinstance(self.seed, bool)
            or not isinstance(self.seed, (int, np.integer))
            or self.seed < 0
        ):
            raise InvalidParameter(f"seed must be an integer >= 0 or None (got {self.seed!r})")
        if not _is_integral(self.count) or self.count < 0:
            raise InvalidParameter(f"count must be an integer >= 0 (got {self.count!r})")
        if not _is_integral(self.branches) or self.branches < 1:
            raise InvalidParameter(f"branches must be an integer >= 1 (got {self.branches!r})")
        if not self.turns > 0:
            raise InvalidParameter(f"turns must be > 0 (got {self.turns!r})")
        if not self.radius > 0:
            raise InvalidParameter(f"radius must be > 0 (got {self.radius!r})")
        if not self.size > 0:
            raise InvalidParameter(f"size must be > 0 (got {self.size!r})")
        if not self.flatness >= 0:
            raise InvalidParameter(f"flatness must be >= 0 (got {self.flatness!r})")
        if not self.tightness >= 0:
            raise InvalidParameter(f"tightness must be >= 0 (got {self.tightness!r})")
        for name in COLOR_PARAMETERS:
            to_rgb(getattr(self, name))

    def to_dict(self) -> dict:
        """JSON-ready field mapping (colour triples become lists)."""
        out = {}
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            out[field.name] = list(value) if isinstance(value, tuple) else value
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "GalaxyConfig":
        """Build a config from a mapping; unknown keys are rejected."""
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in data.items():
            key = _LEGACY_KEYS.get(key, key)
            if key not in known:
                raise InvalidParameter(f"unknown parameter {key!r}")
            if key in COLOR_PARAMETERS and isinstance(value, list):
                value = tuple(value)
            kwargs[key] = value
        return cls(**kwargs)


def _is_integral(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, np.integer)):
        return True
    return isinstance(value, float) and value.is_integer()


def load_config(path: str) -> GalaxyConfig:
    """Read a JSON parameter file written by ``GalaxyConfig.to_dict``."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise InvalidParameter(f"{path}: expected a JSON object of parameters")
    return GalaxyConfig.from_dict(data)


# ---------------------------------------------------------------------------
# Point set
# ---------------------------------------------------------------------------

@dataclasses.dataclass(eq=False)
class GalaxyPointSet:
    """Result of one generation call.

    ``positions`` and ``colors`` are ``(count, 3)`` float64 arrays; the
    remaining arrays are per-particle intermediates of the spiral formula,
    kept for inspection and plotting.
    """

    positions: np.ndarray
    colors: np.ndarray
    theta: np.ndarray
    branch: np.ndarray          # arm index, i mod branches
    branch_angle: np.ndarray
    radius: np.ndarray
    size: float = 0.01

    def __post_init__(self) -> None:
        if len(self.positions) != len(self.colors):
            raise ValueError(
                f"positions ({len(self.positions)}) and colors "
                f"({len(self.colors)}) differ in length"
            )

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def count(self) -> int:
        return len(self.positions)

    def buffers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Flat float32 ``positions[count*3]`` and ``colors[count*3]``."""
        return (
            np.ascontiguousarray(self.positions, dtype=np.float32).reshape(-1),
            np.ascontiguousarray(self.colors, dtype=np.float32).reshape(-1),
        )

    def to_frame(self) -> pd.DataFrame:
        """One row per particle: position, colour and spiral intermediates."""
        return pd.DataFrame({
            "x":            self.positions[:, 0],
            "y":            self.positions[:, 1],
            "z":            self.positions[:, 2],
            "r":            self.colors[:, 0],
            "g":            self.colors[:, 1],
            "b":            self.colors[:, 2],
            "theta":        self.theta,
            "branch_angle": self.branch_angle,
            "radius":       self.radius,
            "branch":       self.branch,
        })


# ---------------------------------------------------------------------------
# Main generator class
# ---------------------------------------------------------------------------

UniformSource = Union[Callable[[], float], np.random.Generator]


class GalaxyGenerator:
    """Procedural generator for a spiral point-cloud galaxy.

    Parameters
    ----------
    cfg : GalaxyConfig
        Shape parameters.  Read, never modified.
    uniform : callable or numpy Generator, optional
        Source of uniform draws in [0, 1).  A zero-argument callable is
        called once per draw, in per-particle order; a ``numpy.random.Generator``
        supplies a whole ``(count, 4)`` block at once.  Defaults to
        ``numpy.random.default_rng(cfg.seed)``.
    """

    def __init__(self, cfg: GalaxyConfig, uniform: Optional[UniformSource] = None) -> None:
        self.cfg = cfg
        self._uniform = uniform

    # ------------------------------------------------------------------
    # Uniform draws
    # ------------------------------------------------------------------

    def _draw(self, n: int) -> np.ndarray:
        """Return an ``(n, 4)`` block of uniform draws, row = one particle."""
        if self._uniform is None:
            self._uniform = np.random.default_rng(self.cfg.seed)
        source = self._uniform
        if isinstance(source, np.random.Generator):
            return source.random((n, 4))
        flat = np.fromiter((source() for _ in range(4 * n)),
                           dtype=np.float64, count=4 * n)
        return flat.reshape(n, 4)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self) -> GalaxyPointSet:
        """Build the full point set for ``self.cfg``.

        Validation happens before any draw is taken, so an invalid config
        neither consumes randomness nor yields a partial result.

        Raises
        ------
        InvalidParameter
            If the config fails ``GalaxyConfig.validate``.
        InvalidArgument
            If the uniform source yields 0 (or anything outside (0, 1)) for a
            draw that goes through ``quantile``.
        """
        cfg = self.cfg
        cfg.validate()

        n = int(cfg.count)
        branches = int(cfg.branches)
        inside = to_rgb(cfg.inside_color)
        outside = to_rgb(cfg.outside_color)
        span = cfg.span

        u = self._draw(n)
        branch = np.arange(n) % branches

        branch_angle = branch / branches * math.pi * 2
        theta = u[:, 0] * cfg.turns * 2 * math.pi
        radius = np.fmod(theta + branch_angle, span)

        n1 = quantile(u[:, 1])
        sign = np.where(u[:, 2] < 0.5, 1.0, -1.0)
        random_r = n1 * sign * math.pi * (radius / cfg.turns) * cfg.tightness
        phi = quantile(u[:, 3]) * 2 * math.pi

        x1 = radius * np.cos(theta)
        y1 = radius * np.sin(theta)
        x2 = (radius + random_r) * np.cos(theta - random_r)
        y2 = (radius + random_r) * np.sin(theta - random_r)

        cos_phi = np.cos(phi)
        positions = np.empty((n, 3), dtype=np.float64)
        positions[:, 0] = (x2 - x1) * cos_phi + x1
        positions[:, 1] = random_r * np.sin(phi) * cfg.flatness
        positions[:, 2] = (y2 - y1) * cos_phi + y1

        colors = lerp(inside, outside, radius / cfg.radius).reshape(n, 3)

        return GalaxyPointSet(
            positions=positions,
            colors=colors,
            theta=theta,
            branch=branch,
            branch_angle=branch_angle,
            radius=radius,
            size=cfg.size,
        )

    # ------------------------------------------------------------------
    # Acceptance tests
    # ------------------------------------------------------------------

    def _run_checks(self, points: GalaxyPointSet) -> None:
        """Print acceptance test results to stdout."""
        cfg = self.cfg
        sep = "─" * 52

        print(f"\n{sep}")
        print("  ACCEPTANCE TESTS")
        print(sep)

        ok = len(points) == cfg.count
        print(f"  Particles  : {len(points):>9,}  (target {cfg.count:,})  "
              f"{'✓' if ok else '✗ FAIL'}")

        if len(points) == 0:
            print("  (no particles to check)")
            print(sep + "\n")
            return

        frame = points.to_frame()

        r_min = float(frame["radius"].min())
        r_max = float(frame["radius"].max())
        ok_r = r_min >= 0.0 and r_max < cfg.span
        print(f"  Radius     : [{r_min:.4f}, {r_max:.4f}]  within [0, {cfg.span:.4f})  "
              f"{'✓' if ok_r else '✗ FAIL'}")

        per_branch = frame["branch"].value_counts().sort_index()
        spread = int(per_branch.max() - per_branch.min())
        print(f"  Branches   : {len(per_branch)} arms, "
              f"{int(per_branch.min()):,}–{int(per_branch.max()):,} particles each  "
              f"{'✓' if spread <= 1 else '✗ FAIL'}")

        y_ext = float(frame["y"].abs().max())
        print(f"  Vertical   : |y| ≤ {y_ext:.4f}  (flatness {cfg.flatness})")

        n_extra = int((frame["radius"] > cfg.radius).sum())
        print(f"  Colour     : {n_extra:,} particles beyond reference radius "
              f"{cfg.radius} (extrapolated)")

        grid = np.linspace(1e-6, 1.0 - 1e-6, 2001)
        exact = ndtri(grid)
        err = np.abs(quantile(grid) - exact) / np.maximum(np.abs(exact), 1.0)
        ok_q = float(err.max()) < 1e-8
        print(f"  Quantile   : max rel err {err.max():.2e} vs scipy ndtri  "
              f"{'✓' if ok_q else '✗ FAIL'}")
        print(sep + "\n")

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, verbose: bool = True) -> GalaxyPointSet:
        """Generate with stage timing and acceptance tests printed to stdout."""
        if not verbose:
            return self.generate()

        t0 = time.perf_counter()
        print("Generating particles …")
        points = self.generate()
        print(f"  {len(points):,} particles generated in "
              f"{time.perf_counter() - t0:.2f}s")

        self._run_checks(points)
        return points


def generate(params: GalaxyConfig, uniform: Optional[UniformSource] = None) -> GalaxyPointSet:
    """Functional form of ``GalaxyGenerator(params, uniform).generate()``."""
    return GalaxyGenerator(params, uniform).generate()


# ---------------------------------------------------------------------------
# Script entry point (uses all GalaxyConfig defaults)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    GalaxyGenerator(GalaxyConfig()).run()
