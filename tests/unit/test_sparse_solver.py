import numpy as np
import pytest
import scipy.sparse as sp

from femesh.exceptions import DimensionMismatchError, SolveError
from femesh.sparse_solver import SparseDirectSolver, solve_sparse


def _laplacian_1d(n):
    return sp.diags([-np.ones(n - 1), 2.0 * np.ones(n), -np.ones(n - 1)], [-1, 0, 1], format="csr")


def test_real_system():
    A = _laplacian_1d(5)
    x_true = np.arange(5, dtype=float)
    x = solve_sparse(A, A @ x_true, n=5)

    assert np.allclose(x, x_true)


def test_complex_system():
    A = (_laplacian_1d(4) + 1j * sp.eye(4)).tocsr()
    x_true = np.array([1 + 1j, 2 - 1j, 0.5j, -3.0])
    x = solve_sparse(A, A @ x_true)

    assert np.iscomplexobj(x)
    assert np.allclose(x, x_true)


def test_real_matrix_with_complex_rhs():
    A = _laplacian_1d(4)
    x_true = np.array([1 + 2j, -1j, 3.0, 0.25 + 0.25j])
    x = solve_sparse(A, A @ x_true)

    assert np.allclose(x, x_true)


def test_dimension_checks():
    A = _laplacian_1d(3)
    with pytest.raises(DimensionMismatchError):
        SparseDirectSolver(sp.csr_matrix(np.ones((2, 3))))
    with pytest.raises(DimensionMismatchError):
        SparseDirectSolver(A, n=4)
    with pytest.raises(DimensionMismatchError):
        solve_sparse(A, np.ones(4))


def test_singular_matrix_raises_solve_error():
    A = sp.csr_matrix(np.array([[1.0, 1.0], [1.0, 1.0]]))
    with pytest.raises(SolveError):
        solve_sparse(A, np.ones(2))


def test_factor_is_released_on_every_exit():
    A = _laplacian_1d(3)
    with SparseDirectSolver(A) as solver:
        solver.solve(np.ones(3))
        assert solver._lu is not None
    assert solver._lu is None

    solver = SparseDirectSolver(A)
    with pytest.raises(DimensionMismatchError):
        with solver:
            solver.factor()
            solver.solve(np.ones(5))
    assert solver._lu is None
