"""Dense LU factorization of the coarsest-level operator."""

from __future__ import annotations

import warnings

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve


class DenseLU:
    """Partial-pivoting LU of a small dense matrix.

    `solve` and `solve_transpose` never modify the stored factors, so one
    factorization serves both A x = b and A^T x = b.
    """

    def __init__(self, A=None):
        self.lu = None
        self.piv = None
        self.singular = False
        if A is not None:
            self.decompose(A)

    def decompose(self, A) -> "DenseLU":
        """Factor A (dense array or anything with `toarray`)."""
        if hasattr(A, "toarray"):
            A = A.toarray()
        A = np.asarray(A, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"expected square matrix, got shape {A.shape}")

        with warnings.catch_warnings():
            # an exactly zero pivot is recorded below and reported at solve time
            warnings.simplefilter("ignore", LinAlgWarning)
            self.lu, self.piv = lu_factor(A)
        self.singular = bool(np.any(np.diag(self.lu) == 0.0))
        return self

    def _check(self) -> None:
        if self.lu is None:
            raise RuntimeError("DenseLU.decompose has not been called")
        if self.singular:
            raise np.linalg.LinAlgError("Matrix is singular")

    def solve(self, b: np.ndarray) -> np.ndarray:
        """Return the solution of A x = b."""
        self._check()
        return lu_solve((self.lu, self.piv), b, trans=0)

    def solve_transpose(self, b: np.ndarray) -> np.ndarray:
        """Return the solution of A^T x = b."""
        self._check()
        return lu_solve((self.lu, self.piv), b, trans=1)
