"""SSOR / SOR relaxation used as pre- and post-smoother on each level.

One `SSOR` instance is bound to one level operator and stored per level; the
cycle invokes it by level index through its two-method capability
(`apply`, `trans_apply`).

Sweeps
------
Let x be the incoming iterate and xx a scratch copy. The forward sweep, for
i = 0 .. n-1, computes

    sigma  = sum_{j<i} a_ij xx[j] + sum_{j>i} a_ij x[j]
    xx[i]  = x[i] + omega_f * ((b[i] - sigma) / a_ii - x[i])

If `reverse` is False the result is copied to x (SOR). Otherwise a backward
sweep, for i = n-1 .. 0, blends the forward half-iterate into x:

    sigma  = sum_{j<i} a_ij xx[j] + sum_{j>i} a_ij x[j]
    x[i]   = xx[i] + omega_r * ((b[i] - sigma) / a_ii - xx[i])

Both sweeps are strictly sequential: row i reads values written for rows
processed just before it.
"""

from __future__ import annotations

import numpy as np
from scipy.sparse import csr_array

from .csr import diagonal_indices


class SSOR:
    """Symmetric successive overrelaxation smoother.

    Parameters
    ----------
    A
        Square CSR operator with sorted indices and a stored diagonal.
        It is referenced, never modified.
    omega_f, omega_r
        Overrelaxation factors of the forward and backward sweep, in (0, 2].
    reverse
        Perform the backward sweep. Without it the smoother is SOR.
    """

    def __init__(self, A: csr_array, omega_f: float = 1.0, omega_r: float = 1.0, reverse: bool = True):
        if A.shape[0] != A.shape[1]:
            raise ValueError("SSOR only applies to square matrices")
        self.reverse = reverse
        self.set_omega(omega_f, omega_r)
        self.set_matrix(A)

    def set_omega(self, omega_f: float, omega_r: float) -> None:
        """Set the overrelaxation factors, both in (0, 2]."""
        if not 0.0 < omega_f <= 2.0:
            raise ValueError(f"omega_f must be in (0, 2], got {omega_f!r}")
        if not 0.0 < omega_r <= 2.0:
            raise ValueError(f"omega_r must be in (0, 2], got {omega_r!r}")
        self.omega_f = float(omega_f)
        self.omega_r = float(omega_r)

    def set_matrix(self, A: csr_array) -> None:
        """Bind the smoother to A and locate its diagonal entries."""
        self.diag_index = diagonal_indices(A)
        self.indptr = A.indptr
        self.indices = A.indices
        self.data = A.data
        self.xx = np.zeros(A.shape[0], dtype=A.dtype)

    def apply(self, b: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Perform one SSOR (or SOR) sweep on x in place and return x."""
        indptr, indices, data, diag = self.indptr, self.indices, self.data, self.diag_index
        n = diag.size
        xx = self.xx
        xx[:] = x

        w = self.omega_f
        for i in range(n):
            lo, d, hi = indptr[i], diag[i], indptr[i + 1]
            sigma = data[lo:d] @ xx[indices[lo:d]] + data[d + 1 : hi] @ x[indices[d + 1 : hi]]
            xx[i] = x[i] + w * ((b[i] - sigma) / data[d] - x[i])

        if not self.reverse:
            x[:] = xx
            return x

        w = self.omega_r
        for i in range(n - 1, -1, -1):
            lo, d, hi = indptr[i], diag[i], indptr[i + 1]
            sigma = data[lo:d] @ xx[indices[lo:d]] + data[d + 1 : hi] @ x[indices[d + 1 : hi]]
            x[i] = xx[i] + w * ((b[i] - sigma) / data[d] - xx[i])
        return x

    def trans_apply(self, b: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Transposed sweep. Assumes a symmetric matrix and delegates to `apply`."""
        return self.apply(b, x)

    def __repr__(self) -> str:
        kind = "SSOR" if self.reverse else "SOR"
        return f"{kind}(n={self.diag_index.size}, omega_f={self.omega_f}, omega_r={self.omega_r})"
