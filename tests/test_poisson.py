import numpy as np
import pytest

from impact2d.numerics.poisson import PoissonConfig, SORSolver


def cosine_problem(n, beta=1.0):
    """離散Neumann問題の固有関数 cos(πx)cos(πy) を厳密解とする問題"""
    h = 1.0 / n
    centers = (np.arange(n) + 0.5) * h
    x, y = np.meshgrid(centers, centers, indexing="xy")
    exact = np.cos(np.pi * x) * np.cos(np.pi * y)
    eigenvalue = -8.0 * np.sin(0.5 * np.pi * h) ** 2 / h**2
    rhs = beta * eigenvalue * exact

    beta_x = np.full((n, n + 1), beta)
    beta_y = np.full((n + 1, n), beta)
    beta_x[:, [0, -1]] = 0.0
    beta_y[[0, -1], :] = 0.0
    return exact, rhs, beta_x, beta_y, h


@pytest.fixture
def solver():
    return SORSolver(PoissonConfig(tolerance=1e-10, max_iterations=2000))


def test_solves_discrete_neumann_problem(solver):
    exact, rhs, beta_x, beta_y, h = cosine_problem(16)

    result = solver.solve(rhs, beta_x, beta_y, h)

    assert result.converged
    assert result.iterations < 2000
    assert np.allclose(result.solution, exact, atol=1e-6)
    assert result.diagnostics["method"] == "SOR"


def test_variable_coefficient_scales_solution(solver):
    exact, rhs, _, _, h = cosine_problem(16)
    _, _, beta_x, beta_y, _ = cosine_problem(16, beta=2.0)

    result = solver.solve(rhs, beta_x, beta_y, h)

    assert np.allclose(result.solution, 0.5 * exact, atol=1e-6)


def test_solution_has_zero_mean(solver):
    _, rhs, beta_x, beta_y, h = cosine_problem(8)
    result = solver.solve(rhs + 3.0, beta_x, beta_y, h)
    assert abs(result.solution.mean()) < 1e-12


def test_initial_guess_reduces_iterations(solver):
    exact, rhs, beta_x, beta_y, h = cosine_problem(16)
    cold = solver.solve(rhs, beta_x, beta_y, h)
    warm = solver.solve(rhs, beta_x, beta_y, h, initial=exact)
    assert warm.iterations <= cold.iterations


def test_reports_non_convergence():
    exact, rhs, beta_x, beta_y, h = cosine_problem(32)
    solver = SORSolver(PoissonConfig(tolerance=1e-12, max_iterations=3, check_interval=1))

    result = solver.solve(rhs, beta_x, beta_y, h)

    assert not result.converged
    assert result.iterations == 3
    assert result.residual > 1e-12


def test_rejects_mismatched_shapes(solver):
    _, rhs, beta_x, beta_y, h = cosine_problem(8)
    with pytest.raises(ValueError):
        solver.solve(rhs, beta_x[:, :-1], beta_y, h)


def test_rejects_isolated_cells(solver):
    _, rhs, beta_x, beta_y, h = cosine_problem(8)
    with pytest.raises(ValueError):
        solver.solve(rhs, np.zeros_like(beta_x), np.zeros_like(beta_y), h)


@pytest.mark.parametrize(
    "params",
    [
        {"omega": 2.0},
        {"omega": 0.0},
        {"tolerance": 0.0},
        {"max_iterations": 0},
        {"check_interval": 0},
    ],
)
def test_config_validation(params):
    with pytest.raises(ValueError):
        SORSolver(PoissonConfig(**params))
