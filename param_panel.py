"""
param_panel.py
==============
Editable parameter model behind the galaxy GUI.

The panel owns its own working copy of the parameters.  Slider drags and
spinbox edits go through ``set()`` and never touch the generator; only
``commit()`` hands a fresh, validated ``GalaxyConfig`` to the ``on_commit``
callback.  If validation or the callback raises, the last committed config is
kept, so the galaxy on screen is never replaced by a rejected change.

Usage
-----
    from param_panel import ParameterPanel
    panel = ParameterPanel(on_commit=view.regenerate)
    panel.set("branches", 3)
    panel.commit()
"""

from __future__ import annotations

import dataclasses
from typing import Callable, Optional

from spiralgen import (
    COLOR_PARAMETERS,
    PARAMETER_RANGES,
    GalaxyConfig,
    InvalidParameter,
    to_rgb,
)


class ParameterPanel:
    """Working/committed pair of galaxy configs with a commit hook.

    Parameters
    ----------
    config : GalaxyConfig, optional
        Initial committed parameters (defaults to ``GalaxyConfig()``).
        Copied; the caller's object is never mutated.
    on_commit : callable, optional
        Called with the new ``GalaxyConfig`` on each ``commit()``.  Typically
        ``GalaxyView.regenerate``.
    deferred : bool
        When True, ``commit()`` only submits; the config becomes ``committed``
        when ``confirm()`` is called (used when generation runs in the
        background and may still fail).
    """

    def __init__(
        self,
        config: Optional[GalaxyConfig] = None,
        on_commit: Optional[Callable[[GalaxyConfig], object]] = None,
        deferred: bool = False,
    ) -> None:
        base = config if config is not None else GalaxyConfig()
        self._committed = dataclasses.replace(base)
        self._working = dataclasses.replace(base)
        self._submitted = dataclasses.replace(base)
        self.on_commit = on_commit
        self.deferred = deferred

    # ── Accessors ─────────────────────────────────────────────────────────

    @property
    def committed(self) -> GalaxyConfig:
        """Copy of the last successfully committed parameters."""
        return dataclasses.replace(self._committed)

    @property
    def working(self) -> GalaxyConfig:
        """Copy of the parameters currently being edited."""
        return dataclasses.replace(self._working)

    @property
    def dirty(self) -> bool:
        """True when the working copy differs from the last submitted config."""
        return self._working != self._submitted

    def get(self, name: str):
        return getattr(self._working, name)

    # ── Editing ───────────────────────────────────────────────────────────

    def set(self, name: str, value) -> object:
        """Transient edit of one parameter; returns the value actually stored.

        Numeric parameters are snapped to their step and clamped to their
        range.  Colours must parse; anything else is stored as given.
        """
        if name in PARAMETER_RANGES:
            try:
                value = PARAMETER_RANGES[name].snap(value)
            except (TypeError, ValueError) as exc:
                raise InvalidParameter(f"{name}: not a number ({value!r})") from exc
        elif name in COLOR_PARAMETERS:
            to_rgb(value)
        elif not hasattr(self._working, name):
            raise InvalidParameter(f"unknown parameter {name!r}")
        setattr(self._working, name, value)
        return value

    def revert(self) -> None:
        """Discard edits made since the last commit."""
        self._working = dataclasses.replace(self._committed)
        self._submitted = dataclasses.replace(self._committed)

    def reset(self) -> None:
        """Load default values into the working copy (not committed)."""
        seed = self._working.seed
        self._working = GalaxyConfig(seed=seed)

    # ── Commit ────────────────────────────────────────────────────────────

    def commit(self) -> GalaxyConfig:
        """Validate the working copy and pass it to ``on_commit``.

        Returns the config handed to the callback.  Any exception from
        validation or from the callback propagates and leaves ``committed``
        unchanged.  With ``deferred=True`` the config only becomes
        ``committed`` once ``confirm()`` is called for it.
        """
        cfg = dataclasses.replace(self._working)
        cfg.validate()
        snapshot = dataclasses.replace(cfg)
        if self.on_commit is not None:
            self.on_commit(cfg)
        self._submitted = snapshot
        if not self.deferred:
            self._committed = dataclasses.replace(snapshot)
        return dataclasses.replace(snapshot)

    def confirm(self, cfg: GalaxyConfig) -> None:
        """Record *cfg* as committed once its galaxy is on screen."""
        self._committed = dataclasses.replace(cfg)


# ---------------------------------------------------------------------------

class GenerationSlot:
    """One running generation job plus at most one waiting config.

    ``submit`` starts *start(cfg)* when idle; while a job runs, the newest
    submitted config replaces any older waiting one.  The owner calls
    ``done()`` on its own thread when the job ends, which starts the waiting
    config, if any.  Busy state is tracked here rather than read off the
    worker thread, which may still be alive when its completion is handled.
    """

    def __init__(self, start: Callable[[GalaxyConfig], None]) -> None:
        self._start = start
        self.running: Optional[GalaxyConfig] = None
        self.pending: Optional[GalaxyConfig] = None

    @property
    def busy(self) -> bool:
        return self.running is not None

    def submit(self, cfg: GalaxyConfig) -> bool:
        """Start *cfg* now (True) or queue it behind the running job (False)."""
        if self.running is not None:
            self.pending = cfg
            return False
        self.running = cfg
        try:
            self._start(cfg)
        except Exception:
            self.running = None
            raise
        return True

    def done(self) -> Optional[GalaxyConfig]:
        """Finish the running job; returns its config."""
        finished, self.running = self.running, None
        if self.pending is not None:
            cfg, self.pending = self.pending, None
            self.submit(cfg)
        return finished
