"""Smoothed-aggregation algebraic multigrid preconditioner.

Aggregation-based AMG after Vanek, Mandel and Brezina (1996). The operator is
coarsened by strength-based aggregation and a Jacobi-smoothed prolongation
until it is small enough for a dense LU factorization; one application of the
preconditioner is one V- or W-cycle with SSOR smoothing.

Typical usage
-------------

    A = pyamg.gallery.poisson((50, 50), format="csr")
    ml = smoothed_aggregation_preconditioner(A)
    x, info = pyamg.krylov.cg(A, b, tol=1e-8, M=ml.aspreconditioner())
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.sparse.linalg import LinearOperator

from pyamg.krylov import cg, fgmres, gmres

from .sa import multigrid
from .sa.coarse import DenseLU
from .sa.csr import as_csr
from .sa.hierarchy import build_hierarchy
from .sa.stats import format_hierarchy, grid_complexity, operator_complexity
from .sa.types import AMGConfig, Level

_ACCELERATORS = {"cg": cg, "gmres": gmres, "fgmres": fgmres}


class SmoothedAggregationAMG:
    """Algebraic multigrid preconditioner based on smoothed aggregation.

    Parameters
    ----------
    config
        Construction parameters. If None, an `AMGConfig` is built from
        `**kwargs` (all defaults when no keywords are given).
    print_info
        Print per-level setup diagnostics in `set_matrix`.
    **kwargs
        Fields of `AMGConfig` (omega_pre_f, omega_pre_r, omega_post_f,
        omega_post_r, nu1, nu2, gamma, min_size, omega, reverse).

    Notes
    -----
    The parameters are validated here, before any matrix is seen. The
    hierarchy is built by `set_matrix` and replaced wholesale on every call.
    `apply` and `trans_apply` only write scratch vectors of the hierarchy, so
    concurrent calls on one instance need external synchronization.
    """

    def __init__(self, config: Optional[AMGConfig] = None, *, print_info: bool = False, **kwargs):
        if config is None:
            config = AMGConfig(**kwargs)
        elif kwargs:
            raise TypeError("pass either config or keyword parameters, not both")
        self.config = config
        self.print_info = print_info
        self._levels: list[Level] = []
        self._coarse: Optional[DenseLU] = None

    @classmethod
    def sor(cls, omega_pre: float = 1.0, omega_post: float = 1.0, *, print_info: bool = False, **kwargs):
        """Preconditioner using forward-only SOR smoothing."""
        return cls(AMGConfig.sor(omega_pre, omega_post, **kwargs), print_info=print_info)

    @property
    def levels(self) -> list[Level]:
        """The level chain, finest first (empty before `set_matrix`)."""
        return self._levels

    @property
    def shape(self) -> tuple[int, int]:
        self._require_setup()
        return self._levels[0].A.shape

    def set_matrix(self, A) -> None:
        """Build the hierarchy for A.

        Raises
        ------
        RuntimeError
            If A cannot be coarsened even once.
        ValueError
            If A is not square or a row lacks a diagonal entry.
        """
        A = as_csr(A)
        levels, coarse = build_hierarchy(A, self.config, print_info=self.print_info)
        self._levels = levels
        self._coarse = coarse

    def _require_setup(self) -> None:
        if not self._levels:
            raise RuntimeError("set_matrix must be called before applying the preconditioner")

    def _run(self, b, x, transpose: bool) -> np.ndarray:
        self._require_setup()
        fine = self._levels[0]
        b = np.asarray(b, dtype=float).reshape(-1)
        if b.shape[0] != fine.A.shape[0]:
            raise ValueError(f"right-hand side has length {b.shape[0]}, expected {fine.A.shape[0]}")
        if x is None:
            x = np.zeros_like(b)
        elif not np.issubdtype(np.asarray(x).dtype, np.floating):
            raise TypeError(f"initial guess must have a floating dtype, got {np.asarray(x).dtype}")

        fine.u[:] = np.reshape(x, -1)
        fine.f[:] = b

        cfg = self.config
        multigrid.cycle(
            self._levels,
            self._coarse,
            0,
            nu1=cfg.nu1,
            nu2=cfg.nu2,
            gamma=cfg.gamma,
            transpose=transpose,
        )

        x[...] = fine.u.reshape(np.shape(x))
        return x

    def apply(self, b, x=None) -> np.ndarray:
        """Approximately solve A x = b with one cycle.

        Parameters
        ----------
        b
            Right-hand side.
        x
            Initial iterate, overwritten with the result. A zero vector is
            used (and returned) when omitted.
        """
        return self._run(b, x, transpose=False)

    def trans_apply(self, b, x=None) -> np.ndarray:
        """Approximately solve A^T x = b with one cycle.

        The smoothers assume a symmetric operator; only the coarse solve
        uses the transposed factorization.
        """
        return self._run(b, x, transpose=True)

    def aspreconditioner(self) -> LinearOperator:
        """Wrap one cycle from a zero initial guess as a `LinearOperator`."""
        n = self.shape[0]
        return LinearOperator(
            (n, n),
            matvec=lambda b: self.apply(b),
            rmatvec=lambda b: self.trans_apply(b),
            dtype=self._levels[0].A.dtype,
        )

    def solve(
        self,
        b,
        x0=None,
        tol: float = 1e-8,
        maxiter: Optional[int] = None,
        accel: str = "cg",
        residuals: Optional[list] = None,
    ) -> tuple[np.ndarray, int]:
        """Solve A x = b with a Krylov method preconditioned by this hierarchy.

        Parameters
        ----------
        accel
            One of "cg", "gmres" or "fgmres" from `pyamg.krylov`.
        residuals
            If given, the residual history is appended to it.

        Returns
        -------
        x, info
            Solution and the accelerator's convergence flag (0 = converged).
        """
        try:
            krylov = _ACCELERATORS[accel]
        except KeyError as e:
            raise ValueError(f"Unrecognized accelerator: {accel!r}") from e
        self._require_setup()
        return krylov(
            self._levels[0].A,
            np.asarray(b, dtype=float),
            x0=x0,
            tol=tol,
            maxiter=maxiter,
            M=self.aspreconditioner(),
            residuals=residuals,
        )

    def operator_complexity(self) -> float:
        """Sum of nnz over all levels divided by nnz of the finest level."""
        self._require_setup()
        return operator_complexity(self._levels)

    def grid_complexity(self) -> float:
        """Sum of unknowns over all levels divided by the finest-level unknowns."""
        self._require_setup()
        return grid_complexity(self._levels)

    def __repr__(self) -> str:
        if not self._levels:
            return f"{type(self).__name__}({self.config})"
        return f"{type(self).__name__}\n{format_hierarchy(self._levels)}"


def smoothed_aggregation_preconditioner(A, *, print_info: bool = False, **kwargs) -> SmoothedAggregationAMG:
    """Construct a `SmoothedAggregationAMG` and build its hierarchy for A.

    Keyword arguments are the fields of `AMGConfig`.
    """
    ml = SmoothedAggregationAMG(print_info=print_info, **kwargs)
    ml.set_matrix(A)
    return ml
