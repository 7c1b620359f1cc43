"""Prolongation and Galerkin coarse operators built from aggregates.

Given the aggregates of one level this module forms

  - the tentative prolongation Pt : R^{n_fine x n_aggs}, a 0/1 matrix with at
    most one nonzero per row (Pt[i, labels[i]] = 1),
  - optionally the smoothed prolongation P = (I - omega D^{-1} A_F) Pt, one
    damped-Jacobi sweep with a filtered operator A_F that keeps the strong
    couplings and lumps the weak ones onto the diagonal,
  - the Galerkin operator A_c = P^T A P.

Two Galerkin paths exist:

  - `galerkin_aggregated` (omega == 0): scatter-add of A's entries into
    (labels[i], labels[j]), O(nnz(A)).
  - `galerkin_explicit` (omega != 0): P^T A P column by column, expanding each
    column of P to a dense vector of length n_fine. Exact, but O(n_coarse)
    dense sweeps.

Both return sorted CSR operators. For symmetric A both results are symmetric
since they are exact triple products.
"""

from __future__ import annotations

import numpy as np
from scipy.sparse import coo_array, csr_array

from .types import Aggregation, IndexArray


def tentative_prolongation(labels: IndexArray, n_aggs: int) -> csr_array:
    """Build the 0/1 tentative prolongation from the fine-to-aggregate map.

    Rows of unaggregated nodes (label -1) are empty.
    """
    n = labels.size
    rows = np.flatnonzero(labels >= 0).astype(np.int32)
    cols = labels[rows]
    P = csr_array((np.ones(rows.size), (rows, cols)), shape=(n, n_aggs))
    P.sort_indices()
    return P


def galerkin_aggregated(A: csr_array, labels: IndexArray, n_aggs: int) -> csr_array:
    """Compute Pt^T A Pt for a tentative prolongation by scatter-add.

    Every entry a_ij with both i and j aggregated contributes to
    A_c[labels[i], labels[j]]. Explicit zeros produced by cancellation are
    kept so the coarse operator retains its structural diagonal.
    """
    rows = np.repeat(np.arange(A.shape[0], dtype=np.int32), np.diff(A.indptr))
    ci = labels[rows]
    cj = labels[A.indices]
    keep = (ci >= 0) & (cj >= 0)
    Ac = coo_array((A.data[keep], (ci[keep], cj[keep])), shape=(n_aggs, n_aggs)).tocsr()
    Ac.sum_duplicates()
    Ac.sort_indices()
    return Ac


def smoothed_prolongation(A: csr_array, agg: Aggregation, omega: float) -> csr_array:
    """Apply one damped-Jacobi sweep to the tentative prolongation.

    Parameters
    ----------
    A
        CSR operator of the fine level.
    agg
        Aggregation of A; supplies labels, diagonal positions and the strong
        coupling mask.
    omega
        Jacobi damping in (0, 1].

    Returns
    -------
    P
        CSR prolongation of shape (n_fine, n_aggs).

    Notes
    -----
    Row i of P, for an aggregated node i, is

        P[i, :] = e_{labels[i]} - omega / a_ii * (sum_{j strong} a_ij e_{labels[j]}
                                                 - (sum_{j weak} a_ij) e_{labels[i]})

    where the sums run over aggregated columns j only. Rows of unaggregated
    nodes are zero. Numerically zero entries are dropped.
    """
    labels = agg.labels
    n = A.shape[0]
    rows = np.repeat(np.arange(n, dtype=np.int32), np.diff(A.indptr))
    ci = labels[rows]
    cj = labels[A.indices]

    live = (ci >= 0) & (cj >= 0)
    weak = live & ~agg.strong & (A.data != 0)
    strong = live & ~weak

    weak_sum = np.bincount(rows[weak], weights=A.data[weak], minlength=n)
    scale = -omega / A.data[agg.diag_index]

    aggregated = np.flatnonzero(labels >= 0).astype(np.int32)

    r = np.concatenate([rows[strong], aggregated, aggregated])
    c = np.concatenate([cj[strong], labels[aggregated], labels[aggregated]])
    v = np.concatenate(
        [
            scale[rows[strong]] * A.data[strong],
            -scale[aggregated] * weak_sum[aggregated],
            np.ones(aggregated.size),
        ]
    )

    P = coo_array((v, (r, c)), shape=(n, agg.n_aggs)).tocsr()
    P.sum_duplicates()
    P.eliminate_zeros()
    P.sort_indices()
    return P


def galerkin_explicit(A: csr_array, P: csr_array) -> csr_array:
    """Form P^T A P one coarse column at a time.

    For each coarse column k the k-th column of P is expanded to a dense
    vector, multiplied by A and then by P^T; the nonzeros of the result form
    column k of the coarse operator.
    """
    n, c = P.shape
    if c == 0:
        return csr_array((0, 0))

    Pc = P.tocsc()
    R = P.T.tocsr()

    pk = np.zeros(n)
    cols_r: list[np.ndarray] = []
    cols_c: list[np.ndarray] = []
    cols_v: list[np.ndarray] = []
    for k in range(c):
        lo, hi = Pc.indptr[k], Pc.indptr[k + 1]
        pk[:] = 0.0
        pk[Pc.indices[lo:hi]] = Pc.data[lo:hi]

        col = R @ (A @ pk)

        nz = np.flatnonzero(col)
        cols_r.append(nz)
        cols_c.append(np.full(nz.size, k, dtype=np.int64))
        cols_v.append(col[nz])

    Ac = csr_array(
        (np.concatenate(cols_v), (np.concatenate(cols_r), np.concatenate(cols_c))),
        shape=(c, c),
    )
    Ac.sort_indices()
    return Ac

