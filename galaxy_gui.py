"""
galaxy_gui.py
=============
Tkinter GUI front-end for the spiral point-cloud galaxy generator.

Layout
------
Left panel   – galaxy parameters (shape, scatter, colour, reserved) in
               scrollable, collapsible sections.
Centre panel – embedded matplotlib 3-D view, redrawn by a timer-driven
               frame loop; drag to orbit, optional auto-orbit.

Every committed change (slider release, Return / focus-out in a spinbox,
colour pick) regenerates the whole galaxy.  A rejected change keeps the
galaxy that is already on screen.

Usage
-----
    python galaxy_gui.py

Dependencies
------------
Same as the core generator (numpy, pandas, scipy, matplotlib) plus tkinter,
which is bundled with the standard Python installer.  On Ubuntu/Debian:
    sudo apt-get install python3-tk
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import numpy as np

import tkinter as tk
from tkinter import ttk, colorchooser, filedialog, messagebox

import matplotlib
matplotlib.use("TkAgg")
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.colors import to_hex

from param_panel import GenerationSlot, ParameterPanel
from plot_galaxy import GalaxyView
from spiralgen import (
    PARAMETER_RANGES,
    GalaxyConfig,
    GalaxyError,
    GalaxyGenerator,
    GalaxyPointSet,
)


FRAME_MS = 33          # frame-loop period (≈30 fps)


# ---------------------------------------------------------------------------
# Reusable compound widgets
# ---------------------------------------------------------------------------

class SliderEntry(ttk.Frame):
    """Scale + spinbox for one ranged parameter.

    Dragging the scale only updates the displayed value; *on_commit* fires
    when the drag ends or the spinbox is confirmed.
    """

    def __init__(
        self,
        parent,
        label: str,
        name: str,
        panel: ParameterPanel,
        on_commit: Callable[[str], None],
        label_width: int = 22,
        **kw,
    ):
        super().__init__(parent, **kw)
        self._name = name
        self._panel = panel
        self._range = PARAMETER_RANGES[name]
        self._on_commit = on_commit

        rng = self._range
        var_cls = tk.IntVar if rng.integer else tk.DoubleVar
        self.var = var_cls(value=panel.get(name))

        ttk.Label(self, text=label, width=label_width, anchor="w").grid(
            row=0, column=0, sticky="w", padx=(4, 2), pady=1,
        )
        scale = ttk.Scale(self, orient="horizontal", length=130,
                          from_=rng.lo, to=rng.hi, variable=self.var,
                          command=self._on_scale)
        scale.grid(row=0, column=1, padx=4)
        scale.bind("<ButtonRelease-1>", self._commit)

        spin = ttk.Spinbox(self, from_=rng.lo, to=rng.hi, increment=rng.step,
                           textvariable=self.var, width=9)
        spin.grid(row=0, column=2, padx=(2, 4))
        spin.bind("<Return>",   self._commit)
        spin.bind("<FocusOut>", self._commit)
        self._spin = spin

    def _on_scale(self, raw: str) -> None:
        # display only; the panel is updated on release
        self.var.set(self._range.snap(float(raw)))

    def _commit(self, _evt=None) -> None:
        try:
            raw = float(self._spin.get())
        except ValueError:
            raw = self._panel.get(self._name)
        stored = self._panel.set(self._name, raw)
        self.var.set(stored)
        self._on_commit(self._name)

    def refresh(self) -> None:
        self.var.set(self._panel.get(self._name))


# ---------------------------------------------------------------------------

class ColorEntry(ttk.Frame):
    """Swatch + hex entry + picker button for one colour parameter."""

    def __init__(self, parent, label: str, name: str, panel: ParameterPanel,
                 on_commit: Callable[[str], None], label_width: int = 22, **kw):
        super().__init__(parent, **kw)
        self._name = name
        self._panel = panel
        self._on_commit = on_commit
        self.var = tk.StringVar(value=to_hex(panel.get(name)))

        ttk.Label(self, text=label, width=label_width, anchor="w").grid(
            row=0, column=0, sticky="w", padx=(4, 2), pady=1,
        )
        self._swatch = tk.Label(self, width=3, relief="sunken", cursor="hand2")
        self._swatch.grid(row=0, column=1, padx=2)
        self._swatch.bind("<Button-1>", self._open_picker)

        entry = ttk.Entry(self, textvariable=self.var, width=10)
        entry.grid(row=0, column=2, padx=2)
        entry.bind("<Return>",   self._commit)
        entry.bind("<FocusOut>", self._commit)

        ttk.Button(self, text="Pick…", width=6,
                   command=self._open_picker).grid(row=0, column=3, padx=(2, 4))
        self._refresh_swatch()

    def _refresh_swatch(self) -> None:
        try:
            self._swatch.configure(bg=self.var.get().strip())
        except tk.TclError:
            self._swatch.configure(bg="#888888")

    def _commit(self, _evt=None) -> None:
        value = self.var.get().strip()
        if value == to_hex(self._panel.get(self._name)):
            return
        try:
            self._panel.set(self._name, value)
        except GalaxyError as exc:
            messagebox.showerror("Invalid colour", str(exc), parent=self)
            self.refresh()
            return
        self._refresh_swatch()
        self._on_commit(self._name)

    def _open_picker(self, _evt=None) -> None:
        _rgb, hexval = colorchooser.askcolor(
            color=self.var.get(), title="Choose colour", parent=self)
        if hexval:
            self.var.set(hexval.lower())
            self._commit()

    def refresh(self) -> None:
        self.var.set(to_hex(self._panel.get(self._name)))
        self._refresh_swatch()


# ---------------------------------------------------------------------------

class Section(ttk.Frame):
    """Collapsible block of parameter rows."""

    def __init__(self, parent, title: str, start_open: bool = True, **kw):
        super().__init__(parent, **kw)
        self._title = title
        self._open = start_open

        self._btn = ttk.Button(self, command=self._toggle)
        self._btn.pack(fill="x", padx=2, pady=(4, 0))
        ttk.Separator(self, orient="horizontal").pack(fill="x", padx=2)

        self.inner = ttk.Frame(self, padding=(2, 2, 2, 6))
        self._sync()

    def _sync(self) -> None:
        if self._open:
            self.inner.pack(fill="x", expand=True)
        else:
            self.inner.pack_forget()
        self._btn.configure(text=f"{'▼' if self._open else '▶'}  {self._title}")

    def _toggle(self) -> None:
        self._open = not self._open
        self._sync()


# ---------------------------------------------------------------------------
# Main GUI class
# ---------------------------------------------------------------------------

class GalaxyGUI:
    """Top-level GUI application window."""

    def __init__(self, root: tk.Tk, config: Optional[GalaxyConfig] = None) -> None:
        self.root = root
        root.title("Spiral Galaxy Generator")
        root.minsize(1100, 720)

        self._jobs = GenerationSlot(self._launch_worker)
        self.panel = ParameterPanel(config, on_commit=self._jobs.submit, deferred=True)
        self.view = GalaxyView()

        self._worker: Optional[threading.Thread] = None
        self._rows: list = []
        self._last_tick = time.perf_counter()

        self.v_auto_orbit = tk.BooleanVar(value=False)

        self._build_ui()
        self._jobs.submit(self.panel.committed)
        self.root.after(FRAME_MS, self._tick)

    # ── UI construction ───────────────────────────────────────────────────

    def _build_ui(self) -> None:
        self._build_action_bar()

        paned = ttk.PanedWindow(self.root, orient="horizontal")
        paned.pack(fill="both", expand=True, padx=6, pady=(6, 0))

        left = ttk.Frame(paned, width=400)
        left.pack_propagate(False)
        paned.add(left, weight=0)

        centre = ttk.Frame(paned)
        paned.add(centre, weight=1)

        self._build_param_panel(left)
        self._build_view_panel(centre)

    def _build_param_panel(self, parent: ttk.Frame) -> None:
        """Scrollable column of collapsible parameter sections."""
        scroll_canvas = tk.Canvas(parent, highlightthickness=0, borderwidth=0)
        vscroll = ttk.Scrollbar(parent, orient="vertical",
                                command=scroll_canvas.yview)
        scroll_canvas.configure(yscrollcommand=vscroll.set)
        vscroll.pack(side="right", fill="y")
        scroll_canvas.pack(side="left", fill="both", expand=True)

        inner = ttk.Frame(scroll_canvas)
        win_id = scroll_canvas.create_window((0, 0), window=inner, anchor="nw")
        inner.bind("<Configure>",
                   lambda _e: scroll_canvas.configure(
                       scrollregion=scroll_canvas.bbox("all")))
        scroll_canvas.bind("<Configure>",
                           lambda e: scroll_canvas.itemconfigure(win_id, width=e.width))
        scroll_canvas.bind("<Button-4>", lambda _e: scroll_canvas.yview_scroll(-1, "units"))
        scroll_canvas.bind("<Button-5>", lambda _e: scroll_canvas.yview_scroll(1, "units"))

        layout = [
            ("Shape", True, [
                ("Particles (count)",     "count"),
                ("Arms (branches)",       "branches"),
                ("Turns",                 "turns"),
                ("Point size",            "size"),
            ]),
            ("Scatter", True, [
                ("Tightness",             "tightness"),
                ("Flatness",              "flatness"),
            ]),
            ("Colour", True, [
                ("Inside colour",         "inside_color"),
                ("Outside colour",        "outside_color"),
                ("Reference radius",      "radius"),
            ]),
            ("Reserved (not applied)", False, [
                ("Spin",                  "spin"),
                ("Randomness",            "randomness"),
                ("Randomness power",      "randomness_power"),
            ]),
        ]
        for title, start_open, rows in layout:
            sec = Section(inner, title, start_open=start_open)
            sec.pack(fill="x", padx=4, pady=3)
            for label, name in rows:
                cls = SliderEntry if name in PARAMETER_RANGES else ColorEntry
                row = cls(sec.inner, label, name, self.panel, self._on_param_commit)
                row.pack(fill="x")
                self._rows.append(row)

    def _build_view_panel(self, parent: ttk.Frame) -> None:
        canvas = FigureCanvasTkAgg(self.view.fig, master=parent)
        canvas.get_tk_widget().pack(fill="both", expand=True)
        self._canvas = canvas
        self.view.connect_orbit()

    def _build_action_bar(self) -> None:
        bar = ttk.Frame(self.root)
        bar.pack(side="bottom", fill="x", padx=6, pady=(0, 6))

        self.btn_regen = ttk.Button(bar, text="New seed", width=12,
                                    command=self._on_new_seed)
        self.btn_regen.pack(side="left", padx=(0, 4))

        self.btn_defaults = ttk.Button(bar, text="Defaults", width=12,
                                       command=self._on_defaults)
        self.btn_defaults.pack(side="left", padx=4)

        ttk.Checkbutton(bar, text="Auto-orbit",
                        variable=self.v_auto_orbit).pack(side="left", padx=8)

        ttk.Separator(bar, orient="vertical").pack(side="left", fill="y", padx=8, pady=4)

        self.btn_png = ttk.Button(bar, text="Export PNG…", width=13,
                                  command=self._on_export_png)
        self.btn_png.pack(side="left", padx=4)

        self._status_var = tk.StringVar(value="Ready.")
        ttk.Label(bar, textvariable=self._status_var, anchor="w").pack(
            side="left", padx=12)

        self._progress = ttk.Progressbar(bar, mode="indeterminate", length=110)
        self._progress.pack(side="right", padx=4)

    # ── Helpers ───────────────────────────────────────────────────────────

    def _status(self, msg: str) -> None:
        self._status_var.set(msg)

    def _set_busy(self, busy: bool) -> None:
        if busy:
            self._progress.start(10)
        else:
            self._progress.stop()

    def _refresh_rows(self) -> None:
        for row in self._rows:
            row.refresh()

    # ── Parameter commits ─────────────────────────────────────────────────

    def _on_param_commit(self, name: str) -> None:
        if not self.panel.dirty:
            return
        try:
            self.panel.commit()
        except GalaxyError as exc:
            self.panel.revert()
            self._refresh_rows()
            self._status(f"Rejected {name}: {exc}")
            messagebox.showerror("Invalid parameter", str(exc))

    def _on_new_seed(self) -> None:
        self.panel.set("seed", int(np.random.default_rng().integers(0, 2**31)))
        self._on_param_commit("seed")

    def _on_defaults(self) -> None:
        self.panel.reset()
        self._refresh_rows()
        self._on_param_commit("defaults")

    # ── Generation ────────────────────────────────────────────────────────

    def _launch_worker(self, cfg: GalaxyConfig) -> None:
        """Start hook of the job slot: generate *cfg* off the Tk thread."""
        self._set_busy(True)
        self._status(f"Generating {cfg.count:,} particles…")
        self._worker = threading.Thread(
            target=self._generate_worker, args=(cfg,), daemon=True)
        self._worker.start()

    def _generate_worker(self, cfg: GalaxyConfig) -> None:
        points, error = None, None
        t0 = time.perf_counter()
        try:
            points = GalaxyGenerator(cfg).generate()
        except GalaxyError as exc:
            error = str(exc)
        finally:
            elapsed = time.perf_counter() - t0
            self.root.after(0, lambda: self._generation_done(cfg, points, elapsed, error))

    def _generation_done(
        self,
        cfg: GalaxyConfig,
        points: Optional[GalaxyPointSet],
        elapsed: float,
        error: Optional[str],
    ) -> None:
        if points is not None:
            self.view.install(points)
            self.panel.confirm(cfg)
            self._status(f"{len(points):,} particles in {elapsed:.2f}s.")
        else:
            # Later edits were built on the failed config; drop them too.
            self._jobs.pending = None
            self.panel.revert()
            self._refresh_rows()
            self._status(f"Generation failed: {error or 'unexpected error'}")
        self._jobs.done()
        self._set_busy(self._jobs.busy)
        if points is None:
            messagebox.showerror("Generation failed", error or "Unexpected error; see console.")

    # ── Frame loop ────────────────────────────────────────────────────────

    def _tick(self) -> None:
        now = time.perf_counter()
        dt, self._last_tick = now - self._last_tick, now
        self.view.auto_rotate = 6.0 if self.v_auto_orbit.get() else 0.0
        if self.view.tick(dt):
            self._canvas.draw_idle()
        self.root.after(FRAME_MS, self._tick)

    # ── Export ────────────────────────────────────────────────────────────

    def _on_export_png(self) -> None:
        if self.view.points is None:
            messagebox.showwarning("No data", "Nothing generated yet.")
            return
        path = filedialog.asksaveasfilename(
            defaultextension=".png",
            filetypes=[("PNG files", "*.png"), ("All files", "*.*")],
            initialfile="galaxy.png",
            title="Export as PNG",
        )
        if not path:
            return
        try:
            self.view.fig.savefig(path, dpi=150, bbox_inches="tight",
                                  facecolor=self.view.fig.get_facecolor())
        except OSError as exc:
            messagebox.showerror("Export failed", str(exc))
            return
        self._status(f"Saved → {path}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    root = tk.Tk()
    GalaxyGUI(root)
    root.mainloop()


if __name__ == "__main__":
    main()
