"""CSR conversion and diagonal lookup shared by the aggregation and smoothing code."""

from __future__ import annotations

from warnings import warn

import numpy as np
from scipy.sparse import SparseEfficiencyWarning, csr_array, issparse

from .types import IndexArray


def as_csr(A) -> csr_array:
    """Return A as a square float64 `csr_array` with sorted column indices.

    Parameters
    ----------
    A
        Sparse matrix/array in any scipy format, or a dense array-like.

    Returns
    -------
    csr_array
        A sorted float64 CSR copy; the caller's matrix is never modified.

    Raises
    ------
    TypeError
        If A cannot be converted to CSR.
    ValueError
        If A is not square.
    """
    if not issparse(A) or A.format != "csr":
        try:
            A = csr_array(A)
            warn("Implicit conversion of A to CSR", SparseEfficiencyWarning, stacklevel=3)
        except Exception as e:
            raise TypeError("Argument A must be a sparse matrix or be convertible to csr_array") from e
    else:
        A = csr_array(A, copy=True)

    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError(f"expected square matrix, got shape {A.shape}")

    if A.dtype != np.float64:
        A = A.astype(np.float64)

    A.sum_duplicates()
    A.sort_indices()
    return A


def diagonal_indices(A: csr_array) -> IndexArray:
    """Locate the diagonal entry of every row by binary search.

    Column indices must be sorted within each row.

    Raises
    ------
    ValueError
        If some row has no stored diagonal entry.
    """
    n = A.shape[0]
    indptr = A.indptr
    indices = A.indices
    diag = np.empty(n, dtype=np.int32)
    for i in range(n):
        lo, hi = indptr[i], indptr[i + 1]
        k = lo + int(np.searchsorted(indices[lo:hi], i))
        if k >= hi or indices[k] != i:
            raise ValueError(f"Matrix is missing a diagonal entry on row {i + 1}")
        diag[i] = k
    return diag
