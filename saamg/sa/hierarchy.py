"""Hierarchy construction for smoothed-aggregation AMG.

This module provides:
  - the routine that extends the level chain by one coarser level
    (aggregation, prolongation, Galerkin product),
  - the driver that coarsens until the size threshold is reached, factors
    the coarsest operator and attaches smoothers and scratch vectors.

The public entrypoint used by `saamg.preconditioner` is `build_hierarchy`.
"""

from __future__ import annotations

from warnings import warn

from scipy.sparse import csr_array

from .aggregation import aggregate, can_strengthen, strength_tolerance
from .coarse import DenseLU
from .interpolation import (
    galerkin_aggregated,
    galerkin_explicit,
    smoothed_prolongation,
    tentative_prolongation,
)
from .smoothers import SSOR
from .stats import LevelStats, finalize_level_stats, print_hierarchy_summary, print_level_summary
from .types import AMGConfig, Level, UnaggregatedNodeWarning


def extend_hierarchy(levels: list[Level], *, omega: float) -> bool:
    """Extend the multigrid hierarchy by one level.

    Parameters
    ----------
    levels
        The level chain built so far. The routine reads `levels[-1].A`, sets
        `P`, `R` and `stats` on that level and appends the coarse level.
    omega
        Jacobi damping of the prolongation smoother (0 disables smoothing).

    Returns
    -------
    bool
        False if aggregation produced no aggregates, or kept every node in
        its own aggregate while no weak coupling could turn strong on coarser
        levels. The chain is then left unchanged and coarsening must stop.

    Raises
    ------
    ValueError
        If the operator on this level has a row without a diagonal entry.
    """
    k = len(levels) - 1
    level = levels[-1]
    A = level.A

    stats = LevelStats(level=k, n_fine=A.shape[0], nnz=A.nnz)

    with stats.timeit("aggregate"):
        agg = aggregate(A, strength_tolerance(k))

    if agg.n_aggs == 0:
        return False
    if agg.n_aggs == A.shape[0] and not can_strengthen(A, agg, strength_tolerance(k + 1)):
        return False

    if agg.n_isolated:
        warn(
            f"{agg.n_isolated} isolated node(s) on level {k} have no coarse representation",
            UnaggregatedNodeWarning,
            stacklevel=3,
        )

    if omega == 0:
        P = tentative_prolongation(agg.labels, agg.n_aggs)
        with stats.timeit("galerkin"):
            Ac = galerkin_aggregated(A, agg.labels, agg.n_aggs)
    else:
        with stats.timeit("prolongation"):
            P = smoothed_prolongation(A, agg, omega)
        with stats.timeit("galerkin"):
            Ac = galerkin_explicit(A, P)

    finalize_level_stats(stats=stats, agg=agg, n_coarse=Ac.shape[0], p_nnz=P.nnz)
    level.P = P
    level.R = P.T.tocsr()
    level.stats = stats
    levels.append(Level(A=Ac))
    return True


def _attach_smoothers(level: Level, config: AMGConfig) -> None:
    """Bind pre- and post-smoothers to the operator of a non-coarsest level."""
    level.presmoother = SSOR(level.A, config.omega_pre_f, config.omega_pre_r, reverse=config.reverse)
    level.postsmoother = SSOR(level.A, config.omega_post_f, config.omega_post_r, reverse=config.reverse)


def build_hierarchy(A: csr_array, config: AMGConfig, *, print_info: bool = False) -> tuple[list[Level], DenseLU]:
    """Build the full level chain for the operator A.

    Parameters
    ----------
    A
        Finest-level CSR operator (square, sorted indices).
    config
        Validated construction parameters.
    print_info
        If True, print per-level summaries and the final hierarchy table.

    Returns
    -------
    levels, coarse
        `levels[0]` holds A, `levels[-1]` the coarsest Galerkin operator;
        `coarse` is the dense LU factorization of the latter.

    Raises
    ------
    RuntimeError
        If A cannot be coarsened even once ("Matrix too small for AMG").
    ValueError
        If a diagonal entry is missing on any coarsened level.
    """
    levels = [Level(A=A)]

    while levels[-1].A.shape[0] > config.min_size:
        if not extend_hierarchy(levels, omega=config.omega):
            break

    if len(levels) == 1:
        raise RuntimeError("Matrix too small for AMG")

    coarse = DenseLU(levels[-1].A)

    for level in levels[:-1]:
        with level.stats.timeit("smoother"):
            _attach_smoothers(level, config)
    for level in levels:
        level.allocate()

    for level in levels[:-1]:
        print_level_summary(level.stats, print_info=print_info)
    print_hierarchy_summary(levels, print_info=print_info)
    return levels, coarse
