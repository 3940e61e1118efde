import numpy as np
import pytest

from impact2d.core import Domain, QuadTreeMesh


@pytest.fixture
def mesh():
    return QuadTreeMesh(origin=(-1.0, 0.0), size=2.0, base_level=2)


def test_domain_configure_places_origin_at_bottom_centre():
    domain = Domain.configure(30e-3, 64)
    assert domain.origin == (-15e-3, 0.0)
    assert domain.base_level == 6
    assert domain.base_resolution == 64
    assert domain.extent == ((-15e-3, 15e-3), (0.0, 30e-3))
    assert domain.contains(0.0, 5e-3)
    assert not domain.contains(0.0, -1e-3)


@pytest.mark.parametrize("resolution", [0, 3, 48, 100])
def test_domain_rejects_non_power_of_two(resolution):
    with pytest.raises(ValueError):
        Domain.configure(1.0, resolution)


def test_initial_mesh_is_uniform(mesh):
    assert mesh.n_cells == 16
    assert np.all(mesh.level == 2)
    assert np.isclose(mesh.areas().sum(), 4.0)
    x, y = mesh.centers()
    assert np.isclose(x.min(), -0.75) and np.isclose(y.max(), 1.75)


def test_refine_appends_children_after_kept_cells(mesh):
    mask = np.zeros(mesh.n_cells, dtype=bool)
    mask[5] = True
    change = mesh.refine(mask)

    assert mesh.n_cells == 19
    assert change.n_refined == 1
    assert list(change.parents) == [5]
    assert len(change.kept) == 15
    assert np.all(mesh.level[-4:] == 3)
    assert np.isclose(mesh.areas().sum(), 4.0)
    assert set(map(tuple, change.offsets)) == {(-1, -1), (1, -1), (-1, 1), (1, 1)}


def test_coarsen_restores_parent(mesh):
    mesh.refine(np.arange(mesh.n_cells) == 0)
    version = mesh.version

    change = mesh.coarsen(mesh.level == 3)

    assert change.n_coarsened == 1
    assert mesh.n_cells == 16
    assert np.all(mesh.level == 2)
    assert mesh.version == version + 1
    assert sorted(zip(mesh.ix, mesh.iy)) == sorted(
        (i, j) for i in range(4) for j in range(4)
    )


def test_coarsen_requires_all_four_siblings(mesh):
    mesh.refine(np.arange(mesh.n_cells) == 0)
    mask = mesh.level == 3
    mask[np.nonzero(mask)[0][0]] = False

    change = mesh.coarsen(mask)

    assert change.is_empty
    assert mesh.n_cells == 19


def test_coarsen_never_goes_below_base_level(mesh):
    change = mesh.coarsen(np.ones(mesh.n_cells, dtype=bool))
    assert change.is_empty
    assert mesh.n_cells == 16


def test_owner_map_covers_domain(mesh):
    mesh.refine(np.arange(mesh.n_cells) == 3)
    owner = mesh.owner_map()

    assert owner.shape == (8, 8)
    assert np.all(owner >= 0)
    counts = np.bincount(owner.ravel(), minlength=mesh.n_cells)
    assert np.array_equal(counts, 4 ** (3 - mesh.level))


def test_owner_map_rejects_coarser_level(mesh):
    mesh.refine(np.arange(mesh.n_cells) == 0)
    with pytest.raises(ValueError):
        mesh.owner_map(2)


def test_locate_returns_minus_one_outside(mesh):
    found = mesh.locate(np.array([-0.9, 0.9, 2.0]), np.array([0.1, 1.9, 0.5]))
    assert found[0] >= 0 and found[1] >= 0
    assert found[2] == -1


def test_neighbour_at_wall_is_self(mesh):
    left = mesh.neighbour_indices(0, -1)
    on_wall = np.nonzero(mesh.ix == 0)[0]
    assert np.array_equal(left[on_wall], on_wall)

    right = mesh.neighbour_indices(0, +1)
    inner = np.nonzero(mesh.ix == 1)[0]
    assert np.all(mesh.ix[right[inner]] == 2)
