"""
run_generate.py
===============
CLI entrypoint for the spiral point-cloud galaxy generator.

All parameters are optional; unspecified parameters fall back to the values
in ``--params FILE`` when given, otherwise to the ``GalaxyConfig`` defaults.

Quick start
-----------
    python run_generate.py --save galaxy.png

With custom parameters::

    python run_generate.py \\
        --count 50000 \\
        --branches 3 \\
        --turns 2.5 \\
        --tightness 0.1 \\
        --inside_color "#ff6030" \\
        --outside_color "#1b3984" \\
        --seed 7 \\
        --show
"""

from __future__ import annotations

import argparse
from typing import Optional

from spiralgen import (
    PARAMETER_RANGES,
    GalaxyConfig,
    GalaxyError,
    GalaxyGenerator,
    load_config,
)


# Help text per numeric parameter; ranges and defaults come from PARAMETER_RANGES.
_HELP = {
    "flatness":         "Vertical compression of the arm scatter.",
    "tightness":        "Radial scatter magnitude around the ideal spiral.",
    "turns":            "Spiral revolutions (angular span = turns × 2π).",
    "count":            "Number of particles.",
    "size":             "Rendered point size (world units).",
    "radius":           "Reference radius for the inside → outside colour blend.",
    "branches":         "Number of spiral arms.",
    "spin":             "Reserved twist factor (carried, not applied).",
    "randomness":       "Reserved scatter modifier (carried, not applied).",
    "randomness_power": "Reserved scatter exponent (carried, not applied).",
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_generate.py",
        description=(
            "Procedural spiral point-cloud galaxy generator.\n"
            "Generates the particles, prints acceptance checks and optionally "
            "renders the result."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # ── Shape parameters ──────────────────────────────────────────────────
    for name, rng in PARAMETER_RANGES.items():
        p.add_argument(
            f"--{name}", type=int if rng.integer else float, default=None,
            metavar="N" if rng.integer else "X",
            help=(f"{_HELP[name]}  Panel range [{rng.lo:g}, {rng.hi:g}], "
                  f"default {rng.default:g}."),
        )

    # ── Colours ───────────────────────────────────────────────────────────
    p.add_argument("--inside_color", default=None, metavar="COLOR",
                   help="Core colour (hex or matplotlib name), default #ff6030.")
    p.add_argument("--outside_color", default=None, metavar="COLOR",
                   help="Rim colour (hex or matplotlib name), default #1b3984.")

    # ── Reproducibility ───────────────────────────────────────────────────
    p.add_argument("--seed", type=int, default=None, metavar="S",
                   help="Random seed for reproducible output (default: fresh entropy).")
    p.add_argument("--params", default=None, metavar="FILE",
                   help="JSON file of parameters; explicit flags override it.")

    # ── Output ────────────────────────────────────────────────────────────
    p.add_argument("--save", default=None, metavar="FILE",
                   help="Render the galaxy and save it to FILE (png/pdf/svg).")
    p.add_argument("--show", action="store_true",
                   help="Open an interactive matplotlib window.")
    p.add_argument("--quiet", action="store_true",
                   help="Skip the configuration listing and acceptance tests.")

    return p


def config_from_args(args: argparse.Namespace) -> GalaxyConfig:
    """Merge ``--params`` file and explicit flags into a ``GalaxyConfig``."""
    cfg = load_config(args.params) if args.params else GalaxyConfig()
    overrides = {
        name: getattr(args, name)
        for name in (*PARAMETER_RANGES, "inside_color", "outside_color", "seed")
        if getattr(args, name) is not None
    }
    return GalaxyConfig.from_dict({**cfg.to_dict(), **overrides})


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args   = parser.parse_args(argv)

    try:
        cfg = config_from_args(args)
        cfg.validate()
    except (GalaxyError, OSError, ValueError) as exc:
        parser.error(str(exc))

    if not args.quiet:
        print("Configuration")
        print("─" * 40)
        for field, value in cfg.to_dict().items():
            print(f"  {field:<18} = {value}")
        print()

    try:
        points = GalaxyGenerator(cfg).run(verbose=not args.quiet)
    except GalaxyError as exc:
        parser.error(str(exc))

    if args.save or args.show:
        import matplotlib.pyplot as plt
        from plot_galaxy import draw_galaxy

        fig = draw_galaxy(points)
        if args.save:
            fig.savefig(args.save, dpi=150, bbox_inches="tight",
                        facecolor=fig.get_facecolor())
            print(f"Saved figure to {args.save}")
        if args.show:
            plt.show()
        plt.close(fig)


if __name__ == "__main__":
    main()
