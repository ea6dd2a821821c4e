# tests/test_generator.py

import json
import math

import numpy as np
import pytest

from spiralgen import (
    PARAMETER_RANGES,
    GalaxyConfig,
    GalaxyGenerator,
    InvalidArgument,
    InvalidParameter,
    generate,
    lerp,
    load_config,
    quantile,
)

TWO_PI = 2.0 * math.pi


def small_config(**kw):
    base = dict(count=1000, branches=3, turns=2.0, tightness=0.2, seed=11)
    base.update(kw)
    return GalaxyConfig(**base)


# --------------------------------------------------------------------------- #
# Particle counts
@pytest.mark.parametrize("n", [0, 1, 1000])
def test_count_matches(n):
    points = generate(GalaxyConfig(count=n, seed=1))
    assert len(points) == n
    assert points.positions.shape == (n, 3)
    assert points.colors.shape == (n, 3)


def test_zero_count_consumes_no_draws(constant_uniform):
    uniform = constant_uniform()
    points = generate(GalaxyConfig(count=0), uniform)
    assert len(points) == 0
    assert uniform.calls == 0


def test_four_draws_per_particle(constant_uniform):
    uniform = constant_uniform(0.3)
    generate(GalaxyConfig(count=25), uniform)
    assert uniform.calls == 100


# --------------------------------------------------------------------------- #
# Golden vector: four particles, two arms, all draws 0.5
def test_golden_two_branch_scenario(constant_uniform):
    cfg = GalaxyConfig(
        count=4, branches=2, turns=1, tightness=0, flatness=1, radius=5,
        inside_color=(1.0, 0.0, 0.0), outside_color=(0.0, 0.0, 1.0),
    )
    uniform = constant_uniform(0.5)
    points = generate(cfg, uniform)

    assert uniform.calls == 16
    np.testing.assert_allclose(points.theta, [math.pi] * 4)
    np.testing.assert_allclose(points.branch_angle, [0.0, math.pi, 0.0, math.pi])
    np.testing.assert_allclose(points.radius, [math.pi, 0.0, math.pi, 0.0], atol=1e-12)
    assert list(points.branch) == [0, 1, 0, 1]

    for k in range(4):
        r = points.radius[k]
        theta = points.theta[k]
        expected_pos = [r * math.cos(theta), 0.0, r * math.sin(theta)]
        np.testing.assert_allclose(points.positions[k], expected_pos, atol=1e-12)
        expected_col = [1.0 - r / 5.0, 0.0, r / 5.0]
        np.testing.assert_allclose(points.colors[k], expected_col, atol=1e-12)
        np.testing.assert_allclose(points.colors[k], lerp((1, 0, 0), (0, 0, 1), r / 5.0))

    # odd particles land on the centre and keep the inside colour exactly
    assert tuple(points.colors[1]) == (1.0, 0.0, 0.0)


def test_single_particle_follows_formula(sequence_uniform):
    u_theta, u_n1, u_sign, u_n2 = 0.25, 0.8, 0.7, 0.6
    cfg = GalaxyConfig(count=1, branches=1, turns=2.0, tightness=0.5,
                       flatness=0.5, radius=4.0,
                       inside_color=(1.0, 1.0, 0.0), outside_color=(0.0, 0.0, 1.0))
    points = generate(cfg, sequence_uniform([u_theta, u_n1, u_sign, u_n2]))

    theta = u_theta * 2.0 * TWO_PI
    radius = theta % (2.0 * TWO_PI)
    sign = -1.0       # u_sign >= 0.5
    random_r = quantile(u_n1) * sign * math.pi * (radius / 2.0) * 0.5
    phi = quantile(u_n2) * TWO_PI
    x1, y1 = radius * math.cos(theta), radius * math.sin(theta)
    x2 = (radius + random_r) * math.cos(theta - random_r)
    y2 = (radius + random_r) * math.sin(theta - random_r)

    expected = [
        (x2 - x1) * math.cos(phi) + x1,
        random_r * math.sin(phi) * 0.5,
        (y2 - y1) * math.cos(phi) + y1,
    ]
    np.testing.assert_allclose(points.positions[0], expected, rtol=1e-12, atol=1e-12)
    t = radius / 4.0
    np.testing.assert_allclose(points.colors[0], [1.0 - t, 1.0 - t, t], rtol=1e-12)


# --------------------------------------------------------------------------- #
# Branch assignment
@pytest.mark.parametrize("branches", [1, 2, 5])
def test_adjacent_particles_differ_by_one_arm(branches, constant_uniform):
    cfg = GalaxyConfig(count=3 * branches + 1, branches=branches, turns=2.0)
    points = generate(cfg, constant_uniform(0.4))

    step = TWO_PI / branches % TWO_PI
    for i in range(len(points) - 1):
        assert points.theta[i] == points.theta[i + 1]
        diff = (points.branch_angle[i + 1] - points.branch_angle[i]) % TWO_PI
        assert diff == pytest.approx(step, abs=1e-12)


def test_branches_evenly_populated():
    points = generate(small_config(count=1000, branches=7))
    counts = np.bincount(points.branch, minlength=7)
    assert counts.max() - counts.min() <= 1


# --------------------------------------------------------------------------- #
# Geometry
def test_wrapped_radius_bounds():
    cfg = small_config(count=5000, branches=4, turns=1.5)
    points = generate(cfg)
    assert points.radius.min() >= 0.0
    assert points.radius.max() < cfg.span


def test_zero_tightness_lies_on_clean_spiral():
    points = generate(small_config(tightness=0.0))
    np.testing.assert_allclose(points.positions[:, 1], 0.0, atol=0.0)
    np.testing.assert_allclose(points.positions[:, 0],
                               points.radius * np.cos(points.theta), atol=1e-12)
    np.testing.assert_allclose(points.positions[:, 2],
                               points.radius * np.sin(points.theta), atol=1e-12)


def test_zero_flatness_flattens_vertical_axis_only():
    flat = generate(small_config(flatness=0.0))
    full = generate(small_config(flatness=1.0))
    assert np.all(flat.positions[:, 1] == 0.0)
    assert np.any(full.positions[:, 1] != 0.0)
    np.testing.assert_array_equal(flat.positions[:, [0, 2]], full.positions[:, [0, 2]])


def test_flatness_scales_vertical_axis():
    a = generate(small_config(flatness=1.0))
    b = generate(small_config(flatness=0.5))
    np.testing.assert_allclose(b.positions[:, 1], a.positions[:, 1] * 0.5)


def test_reserved_parameters_are_inert():
    a = generate(small_config())
    b = generate(small_config(spin=-4.2, randomness=1.9, randomness_power=9.0))
    np.testing.assert_array_equal(a.positions, b.positions)
    np.testing.assert_array_equal(a.colors, b.colors)


# --------------------------------------------------------------------------- #
# Colour
def test_colour_is_unclamped_radius_ratio():
    cfg = GalaxyConfig(count=10_000, seed=3)
    points = generate(cfg)
    expected = lerp((1.0, 0x60 / 255, 0x30 / 255),
                    (0x1B / 255, 0x39 / 255, 0x84 / 255),
                    points.radius / cfg.radius)
    np.testing.assert_allclose(points.colors, expected, atol=1e-12)
    assert (points.radius > cfg.radius).any()
    assert (points.colors[:, 0] < 0.0).any()


# --------------------------------------------------------------------------- #
# Uniform sources
def test_callable_and_numpy_sources_agree():
    n = 200
    draws = np.random.default_rng(5).random((n, 4)).ravel()
    it = iter(draws.tolist())
    from_callable = generate(small_config(count=n), lambda: next(it))
    from_rng = generate(small_config(count=n), np.random.default_rng(5))
    np.testing.assert_array_equal(from_callable.positions, from_rng.positions)
    np.testing.assert_array_equal(from_callable.colors, from_rng.colors)


def test_seed_reproducible():
    a = GalaxyGenerator(small_config(seed=42)).generate()
    b = GalaxyGenerator(small_config(seed=42)).generate()
    c = GalaxyGenerator(small_config(seed=43)).generate()
    np.testing.assert_array_equal(a.positions, b.positions)
    assert not np.array_equal(a.positions, c.positions)


def test_repeated_calls_are_independent():
    gen = GalaxyGenerator(small_config())
    first = gen.generate()
    second = gen.generate()
    assert not np.array_equal(first.positions, second.positions)


def test_zero_draw_into_quantile_raises(sequence_uniform):
    with pytest.raises(InvalidArgument):
        generate(GalaxyConfig(count=1), sequence_uniform([0.5, 0.0, 0.5, 0.5]))


# --------------------------------------------------------------------------- #
# Parameter validation
@pytest.mark.parametrize(
    "override",
    [
        {"branches": 0},
        {"branches": -2},
        {"branches": 1.5},
        {"turns": 0},
        {"turns": -1.0},
        {"radius": 0},
        {"count": -1},
        {"count": 2.5},
        {"count": True},
        {"size": 0},
        {"flatness": -0.1},
        {"tightness": -1},
        {"inside_color": "no-such-colour"},
        {"turns": "3"},
        {"radius": None},
        {"flatness": True},
        {"spin": "fast"},
        {"seed": 1.5},
        {"seed": -1},
        {"seed": "42"},
    ],
)
def test_invalid_parameters_rejected_before_drawing(override, constant_uniform):
    uniform = constant_uniform()
    cfg = GalaxyConfig(count=10, **{k: v for k, v in override.items() if k != "count"})
    if "count" in override:
        cfg.count = override["count"]
    with pytest.raises(InvalidParameter):
        generate(cfg, uniform)
    assert uniform.calls == 0


def test_bad_seed_rejected_without_custom_source():
    with pytest.raises(InvalidParameter):
        generate(GalaxyConfig(count=10, seed="42"))


def test_integral_float_counts_accepted():
    points = generate(GalaxyConfig(count=10.0, branches=2.0, seed=0))
    assert len(points) == 10


# --------------------------------------------------------------------------- #
# Output buffers
def test_buffers_are_flat_float32():
    points = generate(small_config(count=50))
    positions, colors = points.buffers()
    assert positions.dtype == np.float32 and colors.dtype == np.float32
    assert positions.shape == (150,) and colors.shape == (150,)
    np.testing.assert_allclose(positions[3:6], points.positions[1], rtol=1e-6)
    np.testing.assert_allclose(colors[3:6], points.colors[1], rtol=1e-6)


def test_to_frame():
    points = generate(small_config(count=30, branches=3))
    frame = points.to_frame()
    assert len(frame) == 30
    assert list(frame.columns) == ["x", "y", "z", "r", "g", "b",
                                   "theta", "branch_angle", "radius", "branch"]
    assert frame["branch"].value_counts().to_dict() == {0: 10, 1: 10, 2: 10}


def test_size_passed_through():
    assert generate(small_config(count=5, size=0.042)).size == 0.042


# --------------------------------------------------------------------------- #
# Verbose pipeline
def test_run_prints_acceptance_tests(capsys):
    points = GalaxyGenerator(small_config(count=2000)).run()
    out = capsys.readouterr().out
    assert len(points) == 2000
    assert "ACCEPTANCE TESTS" in out
    assert "FAIL" not in out


def test_run_quiet(capsys):
    GalaxyGenerator(small_config(count=10)).run(verbose=False)
    assert capsys.readouterr().out == ""


def test_run_with_zero_particles(capsys):
    GalaxyGenerator(GalaxyConfig(count=0)).run()
    assert "no particles to check" in capsys.readouterr().out


# --------------------------------------------------------------------------- #
# Configuration
def test_defaults_match_parameter_ranges():
    cfg = GalaxyConfig()
    for name, rng in PARAMETER_RANGES.items():
        assert getattr(cfg, name) == rng.default
    assert cfg.inside_color == "#ff6030"
    assert cfg.outside_color == "#1b3984"


def test_from_dict_rejects_unknown_key():
    with pytest.raises(InvalidParameter):
        GalaxyConfig.from_dict({"arms": 3})


def test_from_dict_accepts_front_end_keys():
    cfg = GalaxyConfig.from_dict({"randomnessPower": 4.5, "insideColor": "#ffffff",
                                  "outsideColor": [0.0, 0.0, 0.0]})
    assert cfg.randomness_power == 4.5
    assert cfg.inside_color == "#ffffff"
    assert cfg.outside_color == (0.0, 0.0, 0.0)


def test_load_config_round_trip(tmp_path):
    cfg = small_config(inside_color=(0.5, 0.25, 1.0))
    path = tmp_path / "params.json"
    path.write_text(json.dumps(cfg.to_dict()))
    assert load_config(str(path)) == cfg


def test_load_config_requires_object(tmp_path):
    path = tmp_path / "params.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(InvalidParameter):
        load_config(str(path))


@pytest.mark.parametrize(
    "name, raw, snapped",
    [
        ("count", 12_345, 12_300),
        ("count", 5, 100),
        ("branches", 25, 20),
        ("branches", 2.6, 3),
        ("tightness", 0.07, 0.05),
        ("flatness", -1.0, 0.0),
        ("spin", -7.0, -5.0),
    ],
)
def test_param_range_snap(name, raw, snapped):
    assert PARAMETER_RANGES[name].snap(raw) == pytest.approx(snapped)
