"""Strength-of-connection and aggregation for smoothed-aggregation AMG.

This module partitions the fine nodes of one level into disjoint aggregates
following Vanek, Mandel and Brezina (1996).

Main responsibilities
---------------------
1) Strength-of-connection:
   Node j is strongly coupled to node i iff

       |a_ij| >= eps * sqrt(a_ii * a_jj),

   recorded as a boolean mask aligned with A.data. Because the test holds
   trivially for j == i (when a_ii > 0), every neighborhood N_i contains i.

2) Aggregation in three phases over the free nodes (nodes with at least one
   nonzero off-diagonal entry):
     - initial     : N_i becomes an aggregate if all of N_i is free
     - enlargement : a free node joins the aggregate that overlaps N_i most
     - remnants    : the free part of N_i of a still-free node i becomes a
                     new aggregate

Isolated nodes (no nonzero off-diagonal entry) join no aggregate and are
labelled -1.

Tie-break
---------
During enlargement the overlap counts are computed against the aggregates as
they stood after the initial phase. Ties between equally overlapping
aggregates go to the lowest aggregate id.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_array

from .csr import diagonal_indices
from .types import Aggregation, IndexArray


def strength_tolerance(level: int) -> float:
    """Strength tolerance eps_k = 0.08 * 0.5**k used on level k."""
    return 0.08 * 0.5**level


def _row_ids(A: csr_array) -> IndexArray:
    """Row index of every stored entry of A."""
    n = A.shape[0]
    return np.repeat(np.arange(n, dtype=np.int32), np.diff(A.indptr))


def strong_connections(A: csr_array, diag_index: IndexArray, eps: float) -> NDArray[np.bool_]:
    """Mark the strong couplings of A.

    Parameters
    ----------
    A
        CSR operator with sorted indices.
    diag_index
        Position of each row's diagonal in A.data (see `diagonal_indices`).
    eps
        Strength tolerance, between zero and one.

    Returns
    -------
    strong
        Boolean mask over A.data. Entries whose diagonal product is negative
        (and hence has no real square root) are never strong.
    """
    d = A.data[diag_index]
    rows = _row_ids(A)
    with np.errstate(invalid="ignore"):
        bound = eps * np.sqrt(d[rows] * d[A.indices])
    return np.abs(A.data) >= bound


def free_nodes(A: csr_array) -> NDArray[np.bool_]:
    """True for nodes with at least one nonzero off-diagonal entry."""
    rows = _row_ids(A)
    off = (A.indices != rows) & (A.data != 0)
    return np.bincount(rows[off], minlength=A.shape[0]) > 0


def can_strengthen(A: csr_array, agg: Aggregation, eps: float) -> bool:
    """True if a tolerance of `eps` or below could still make a weak coupling strong.

    A weak off-diagonal coupling can only turn strong when its bound
    eps * sqrt(a_ii * a_jj) is finite and positive; couplings between nodes
    whose diagonals differ in sign never qualify.
    """
    if not eps > 0.0:
        return False
    d = A.data[agg.diag_index]
    rows = _row_ids(A)
    prod = d[rows] * d[A.indices]
    candidate = ~agg.strong & (A.indices != rows) & (A.data != 0) & (prod > 0) & np.isfinite(prod)
    return bool(candidate.any())


def _neighborhoods(A: csr_array, strong: NDArray[np.bool_]) -> list[IndexArray]:
    """Split the strong pattern of A into per-node neighborhood arrays."""
    n = A.shape[0]
    counts = np.bincount(_row_ids(A)[strong], minlength=n)
    ptr = np.zeros(n + 1, dtype=np.int64)
    ptr[1:] = np.cumsum(counts)
    cols = A.indices[strong]
    return [cols[ptr[i] : ptr[i + 1]] for i in range(n)]


def _initial_aggregates(neigh: list[IndexArray], free: NDArray[np.bool_], labels: IndexArray) -> int:
    """Turn every fully free neighborhood into an aggregate.

    Mutates `free` and `labels`; returns the number of aggregates created.
    """
    n_aggs = 0
    for i in range(free.size):
        if not free[i]:
            continue
        Ni = neigh[i]
        if Ni.size and np.all(free[Ni]):
            labels[Ni] = n_aggs
            free[Ni] = False
            n_aggs += 1
    return n_aggs


def _enlarge_aggregates(neigh: list[IndexArray], free: NDArray[np.bool_], labels: IndexArray, n_aggs: int) -> None:
    """Attach free nodes to the aggregate their neighborhood overlaps most."""
    snapshot = labels.copy()
    for i in range(free.size):
        if not free[i]:
            continue
        owners = snapshot[neigh[i]]
        owners = owners[owners >= 0]
        if owners.size == 0:
            continue
        overlap = np.bincount(owners, minlength=n_aggs)
        labels[i] = int(np.argmax(overlap))
        free[i] = False


def _remnant_aggregates(neigh: list[IndexArray], free: NDArray[np.bool_], labels: IndexArray, n_aggs: int) -> int:
    """Collect the free part of each remaining neighborhood into a new aggregate."""
    for i in range(free.size):
        if not free[i]:
            continue
        Ni = neigh[i]
        Ci = Ni[free[Ni]]
        if Ci.size == 0:
            continue
        labels[Ci] = n_aggs
        free[Ci] = False
        n_aggs += 1
    return n_aggs


def aggregate(A: csr_array, eps: float) -> Aggregation:
    """Partition the nodes of A into aggregates.

    Parameters
    ----------
    A
        Square CSR operator with sorted column indices and a stored diagonal
        on every row.
    eps
        Strength tolerance for the node neighborhoods.

    Returns
    -------
    Aggregation
        Labels, aggregate count and the strength data reused by the
        prolongation smoother. `n_aggs == 0` means the level cannot be
        coarsened (every node is isolated).

    Raises
    ------
    ValueError
        If a diagonal entry is missing.

    Examples
    --------
    >>> from pyamg.gallery import poisson
    >>> from saamg.sa.aggregation import aggregate
    >>> agg = aggregate(poisson((8,), format="csr").tocsr(), 0.08)
    >>> agg.labels
    array([0, 0, 1, 1, 1, 2, 2, 2], dtype=int32)
    """
    diag_index = diagonal_indices(A)
    strong = strong_connections(A, diag_index, eps)
    neigh = _neighborhoods(A, strong)

    free = free_nodes(A)
    n_isolated = int(free.size - np.count_nonzero(free))
    labels = np.full(A.shape[0], -1, dtype=np.int32)

    n_aggs = _initial_aggregates(neigh, free, labels)
    _enlarge_aggregates(neigh, free, labels, n_aggs)
    n_aggs = _remnant_aggregates(neigh, free, labels, n_aggs)

    return Aggregation(
        labels=labels,
        n_aggs=n_aggs,
        diag_index=diag_index,
        strong=strong,
        n_isolated=n_isolated,
    )
