"""Typed containers used throughout the smoothed-aggregation hierarchy.

This module defines small dataclasses that group setup parameters and
per-level state into coherent parcels, so the hierarchy is an explicit array of
levels rather than a web of parallel attributes.

Containers
----------
AMGConfig
    Validated construction parameters (relaxation factors, sweep counts,
    cycle type, coarsest size, Jacobi damping).

Aggregation
    Output of the aggregation phase on one level:
      - labels[i]  : aggregate id of fine node i (-1 if unaggregated)
      - n_aggs     : number of aggregates (= coarse dimension)
      - diag_index : position of each row's diagonal in A.indices/A.data
      - strong     : boolean mask aligned with A.data; True on strong couplings

Level
    One entry of the level chain: operator, transfer operators, smoothers
    and the scratch vectors used by the cycle.

Invariants
----------
- Label arrays and diagonal indices are int32 numpy arrays.
- `strong` has the same length and ordering as `A.data` of the level matrix.
- A node's neighborhood always contains the node itself when a_ii > 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_array

IndexArray = NDArray[np.int32]


class UnaggregatedNodeWarning(UserWarning):
    """Issued when isolated nodes are left without a coarse representation."""


def _check_relaxation(name: str, value: float) -> None:
    """Reject a relaxation factor outside (0, 2]."""
    if not 0.0 < value <= 2.0:
        raise ValueError(f"{name} must be in (0, 2], got {value!r}")


@dataclass(slots=True, frozen=True)
class AMGConfig:
    """Construction parameters of the smoothed-aggregation preconditioner.

    Attributes
    ----------
    omega_pre_f, omega_pre_r : float
        Overrelaxation factors of the forward and backward sweep of the
        pre-smoother. Must lie in (0, 2].
    omega_post_f, omega_post_r : float
        Overrelaxation factors of the forward and backward sweep of the
        post-smoother. Must lie in (0, 2].
    nu1, nu2 : int
        Number of pre- and post-smoothing sweeps per visit of a level.
    gamma : int
        Number of recursive visits of the next coarser level.
        1 gives a V-cycle, 2 a W-cycle.
    min_size : int
        Coarsening stops once a level has at most this many rows; that level
        is then solved by a dense LU factorization.
    omega : float
        Jacobi damping of the prolongation smoother, in [0, 1]. Zero disables
        prolongation smoothing (plain aggregation) and selects the fast
        scatter-add Galerkin product.
    reverse : bool
        If False, the smoothers perform only the forward sweep (SOR).

    Notes
    -----
    The defaults pair a pre-smoother (1, 1.85) with the post-smoother
    (1.85, 1). The post-smoother is then the adjoint of the pre-smoother and
    the resulting cycle is symmetric for symmetric A, so it may be used
    inside CG.
    """

    omega_pre_f: float = 1.0
    omega_pre_r: float = 1.85
    omega_post_f: float = 1.85
    omega_post_r: float = 1.0
    nu1: int = 1
    nu2: int = 1
    gamma: int = 1
    min_size: int = 40
    omega: float = 2.0 / 3.0
    reverse: bool = True

    def __post_init__(self) -> None:
        _check_relaxation("omega_pre_f", self.omega_pre_f)
        _check_relaxation("omega_pre_r", self.omega_pre_r)
        _check_relaxation("omega_post_f", self.omega_post_f)
        _check_relaxation("omega_post_r", self.omega_post_r)
        if self.nu1 < 0 or self.nu2 < 0:
            raise ValueError(f"nu1 and nu2 must be nonnegative, got {self.nu1}, {self.nu2}")
        if self.gamma < 1:
            raise ValueError(f"gamma must be at least 1, got {self.gamma}")
        if self.min_size <= 0:
            raise ValueError(f"min_size must be positive, got {self.min_size}")
        if not 0.0 <= self.omega <= 1.0:
            raise ValueError(f"omega must be in [0, 1], got {self.omega!r}")

    @classmethod
    def sor(
        cls,
        omega_pre: float = 1.0,
        omega_post: float = 1.0,
        *,
        nu1: int = 1,
        nu2: int = 1,
        gamma: int = 1,
        min_size: int = 40,
        omega: float = 2.0 / 3.0,
    ) -> "AMGConfig":
        """Configuration using forward-only SOR smoothing (no backward sweep)."""
        return cls(
            omega_pre_f=omega_pre,
            omega_pre_r=omega_pre,
            omega_post_f=omega_post,
            omega_post_r=omega_post,
            nu1=nu1,
            nu2=nu2,
            gamma=gamma,
            min_size=min_size,
            omega=omega,
            reverse=False,
        )


@dataclass(slots=True)
class Aggregation:
    """Aggregates and strength data for one level.

    Attributes
    ----------
    labels
        int32 array of length n_fine. `labels[i]` is the aggregate containing
        node i, or -1 if node i belongs to no aggregate.
    n_aggs
        Number of aggregates; the dimension of the next coarser level.
    diag_index
        int32 array of length n_fine with the position of a_ii in A.data.
    strong
        Boolean mask over A's stored entries marking strong couplings.
        Row i's neighborhood is A.indices[A.indptr[i]:A.indptr[i+1]][strong[...]].
    n_isolated
        Number of nodes without any nonzero off-diagonal entry.
    """

    labels: IndexArray
    n_aggs: int
    diag_index: IndexArray
    strong: NDArray[np.bool_]
    n_isolated: int = 0

    def members(self) -> list[IndexArray]:
        """Return the aggregates as sorted arrays of fine-node indices."""
        order = np.argsort(self.labels, kind="stable").astype(np.int32)
        counts = np.bincount(self.labels[self.labels >= 0], minlength=self.n_aggs)
        start = int(np.count_nonzero(self.labels < 0))
        out: list[IndexArray] = []
        for c in counts:
            out.append(order[start : start + c])
            start += c
        return out

    def unaggregated(self) -> IndexArray:
        """Fine nodes with no aggregate."""
        return np.flatnonzero(self.labels < 0).astype(np.int32)


class Smoother(Protocol):
    """Relaxation capability stored per level and invoked by index."""

    def apply(self, b: np.ndarray, x: np.ndarray) -> np.ndarray: ...

    def trans_apply(self, b: np.ndarray, x: np.ndarray) -> np.ndarray: ...


@dataclass(slots=True)
class Level:
    """One level of the multigrid chain.

    Attributes
    ----------
    A
        CSR operator of this level (square, sorted indices, diagonal present).
    P
        Prolongation from the next coarser level to this one, shape
        (n_k, n_{k+1}). None on the coarsest level.
    R
        Restriction, the CSR transpose of P. None on the coarsest level.
    presmoother, postsmoother
        Smoothers bound to A. None on the coarsest level.
    u, f, r
        Solution, right-hand side and residual scratch vectors of length n_k.
    stats
        Setup diagnostics for this level (`LevelStats`), when recorded.
    """

    A: csr_array
    P: Optional[csr_array] = None
    R: Optional[csr_array] = None
    presmoother: Optional[Smoother] = None
    postsmoother: Optional[Smoother] = None
    u: np.ndarray = field(default_factory=lambda: np.zeros(0))
    f: np.ndarray = field(default_factory=lambda: np.zeros(0))
    r: np.ndarray = field(default_factory=lambda: np.zeros(0))
    stats: Any = None

    def allocate(self) -> None:
        """(Re)allocate the scratch vectors to the size of A."""
        n = self.A.shape[0]
        self.u = np.zeros(n, dtype=self.A.dtype)
        self.f = np.zeros(n, dtype=self.A.dtype)
        self.r = np.zeros(n, dtype=self.A.dtype)
