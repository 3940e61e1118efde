import numpy as np
import pytest

from impact2d.core import FieldRegistry, QuadTreeMesh
from impact2d.numerics.adaptivity import (
    WaveletAdaptivity,
    minmod,
    remap_values,
    wavelet_error,
)


@pytest.fixture
def fields():
    registry = FieldRegistry(QuadTreeMesh((0.0, 0.0), 1.0, base_level=3))
    registry.declare_field("f", prolongation="fraction")
    registry.declare_field("q")
    return registry


def test_minmod():
    a = np.array([1.0, -2.0, 3.0, 0.0])
    b = np.array([2.0, -1.0, -1.0, 5.0])
    assert np.array_equal(minmod(a, b), [1.0, -1.0, 0.0, 0.0])


def test_wavelet_error_vanishes_for_constant(fields):
    error = wavelet_error(fields.mesh, np.full(fields.mesh.n_cells, 3.0))
    assert np.all(error == 0.0)


def test_wavelet_error_detects_jump(fields):
    x, _ = fields.mesh.centers()
    step = np.where(x > 0.5, 1.0, 0.0)
    error = wavelet_error(fields.mesh, step)
    near = np.abs(x - 0.5) < 0.125
    assert np.allclose(error[near], 0.5)
    assert np.all(error[~near] == 0.0)


def test_linear_prolongation_conserves_parent_mean(fields):
    mesh = fields.mesh
    x, y = mesh.centers()
    values = x**2 + 3.0 * y
    old_mesh = mesh.copy()
    change = mesh.refine(np.ones(mesh.n_cells, dtype=bool))

    new_values = remap_values(old_mesh, values, change, "linear")

    children = new_values.reshape(-1, 4)
    assert np.allclose(children.mean(axis=1), values[change.parents])


def test_fraction_prolongation_stays_bounded(fields):
    mesh = fields.mesh
    x, y = mesh.centers()
    fraction = np.clip((0.6 - np.hypot(x, y)) / 0.2 + 0.5, 0.0, 1.0)
    old_mesh = mesh.copy()
    change = mesh.refine(np.ones(mesh.n_cells, dtype=bool))

    new_values = remap_values(old_mesh, fraction, change, "fraction")

    assert new_values.min() >= 0.0 and new_values.max() <= 1.0
    children = new_values.reshape(-1, 4)
    assert np.allclose(children.mean(axis=1), fraction[change.parents])


def test_restriction_averages_siblings(fields):
    mesh = fields.mesh
    mesh.refine(np.arange(mesh.n_cells) == 0)
    values = np.arange(mesh.n_cells, dtype=float)
    old_mesh = mesh.copy()
    change = mesh.coarsen(mesh.level == 4)

    new_values = remap_values(old_mesh, values, change, "linear")

    assert new_values[-1] == pytest.approx(values[-4:].mean())


def test_vector_fields_are_remapped_by_column(fields):
    fields.declare_field("u", rank=1)
    fields.set_values("u.x", 1.0)
    fields.set_values("u.y", -2.0)
    engine = WaveletAdaptivity(fields)

    engine.refine_where(lambda x, y, level: x < 0.25, max_level=5)

    assert fields.values("u").shape == (fields.mesh.n_cells, 2)
    assert np.allclose(fields.values("u.x"), 1.0)
    assert np.allclose(fields.values("u.y"), -2.0)


def test_refine_where_reaches_max_level(fields):
    engine = WaveletAdaptivity(fields)

    refined = engine.refine_where(
        lambda x, y, level: (x - 0.5) ** 2 + (y - 0.5) ** 2 < 0.1**2, max_level=6
    )

    mesh = fields.mesh
    assert refined > 0
    assert mesh.max_level == 6
    x, y = mesh.centers()
    inside = (x - 0.5) ** 2 + (y - 0.5) ** 2 < 0.1**2
    assert np.all(mesh.level[inside] == 6)
    assert np.isclose(mesh.areas().sum(), 1.0)


def test_adapt_refines_jump_and_coarsens_smooth_region(fields):
    engine = WaveletAdaptivity(fields)
    x, _ = fields.mesh.centers()
    fields.set_values("f", np.where(x > 0.5, 1.0, 0.0))
    area = fields.integrate("f")

    for _ in range(4):
        result = engine.adapt(["f"], [0.01], max_level=6)

    mesh = fields.mesh
    x, _ = mesh.centers()
    h = mesh.cell_size()
    at_jump = np.abs(x - 0.5) < h
    assert np.all(mesh.level[at_jump] == 6)
    assert np.all(mesh.level[np.abs(x - 0.5) > 0.25] == 3)
    assert result.cells == mesh.n_cells
    assert np.isclose(fields.integrate("f"), area)


def test_adapt_coarsens_back_to_base(fields):
    engine = WaveletAdaptivity(fields)
    engine.refine_where(lambda x, y, level: x < 0.5, max_level=5)
    fields.set_values("f", 0.25)

    for _ in range(3):
        engine.adapt(["f", "q"], [0.01, 0.01], max_level=5)

    assert np.all(fields.mesh.level == 3)
    assert np.allclose(fields.values("f"), 0.25)


def test_adapt_validates_tolerances(fields):
    engine = WaveletAdaptivity(fields)
    with pytest.raises(ValueError):
        engine.adapt(["f", "q"], [0.01], max_level=5)
    with pytest.raises(ValueError):
        engine.adapt(["f"], [0.0], max_level=5)
