"""
Direct sparse solver for the assembled coefficient matrix.

The factorisation is done with SuperLU (scipy.sparse.linalg.splu). The solver is a context manager: the factor object
is released when the block is left, whatever happened inside it.

Usage:
    from femesh.sparse_solver import SparseDirectSolver

    with SparseDirectSolver(A, node_count) as solver:
        phi = solver.solve(b)
"""

from typing import Optional
import logging

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from femesh.exceptions import DimensionMismatchError, SolveError

logger = logging.getLogger(__name__)


class SparseDirectSolver:
    """
    Class wrapping the factorisation of one coefficient matrix.

    Attributes:
    -----------
    A: scipy.sparse.csc_matrix
        the coefficient matrix (square, size n)
    n: int
        expected number of unknowns (number of nodes)
    _lu: scipy.sparse.linalg.SuperLU, optional
        factor object, only alive between factor() and release()

    Methods:
    -----------
    factor(self)
        factorises A
    solve(self, b)
        solves A x = b, factorising first if needed
    release(self)
        drops the factor object
    """

    def __init__(self, A, n: Optional[int] = None):
        shape = A.shape
        if len(shape) != 2 or shape[0] != shape[1]:
            raise DimensionMismatchError(f"The coefficient matrix must be square, got shape {shape}")
        if n is not None and shape[0] != n:
            raise DimensionMismatchError(f"The coefficient matrix has {shape[0]} rows for {n} nodes")
        self.n = shape[0]
        A = sp.csc_matrix(A)
        self.A = A if np.iscomplexobj(A.data) else A.astype(np.float64)
        self._lu = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def factor(self):
        if self.n == 0:
            raise SolveError("Nothing to solve, the system is empty")
        try:
            self._lu = spla.splu(self.A)
        except (RuntimeError, ValueError) as exc:
            raise SolveError(f"Factorisation of the {self.n}x{self.n} system failed: {exc}") from exc
        logger.debug("Factorised %dx%d system (%d non-zeros)", self.n, self.n, self.A.nnz)

    def solve(self, b) -> np.ndarray:
        """
        Solves the system for the right-hand side `b`.

        Parameters:
        -----------
        b: np.ndarray
            right-hand side of length n (real or complex)

        Returns:
        -----------
        x: np.ndarray
            dense solution, complex if A or b is complex

        Raises:
        -----------
        DimensionMismatchError if b has the wrong length, SolveError if the factorisation or the solution fails
        """
        b = np.asarray(b)
        if b.ndim != 1 or b.shape[0] != self.n:
            raise DimensionMismatchError(f"The right-hand side has shape {b.shape}, expected ({self.n},)")
        if self._lu is None:
            self.factor()
        if np.iscomplexobj(b) and not np.iscomplexobj(self.A.data):
            # SuperLU of a real matrix cannot take a complex right-hand side
            x = self._lu.solve(np.ascontiguousarray(b.real, dtype=np.float64)) \
                + 1j * self._lu.solve(np.ascontiguousarray(b.imag, dtype=np.float64))
        else:
            x = self._lu.solve(b.astype(np.result_type(b.dtype, self.A.dtype)))
        if not np.all(np.isfinite(x)):
            raise SolveError("The solution contains non-finite values, the system is probably singular")
        return x

    def release(self):
        self._lu = None


def solve_sparse(A, b, n: Optional[int] = None) -> np.ndarray:
    """One-shot helper: factorise, solve and release."""
    with SparseDirectSolver(A, n) as solver:
        return solver.solve(b)
