"""Recursive V/W-cycle over an explicit array of levels.

Level k (0 = finest, m-1 = coarsest) is visited by `cycle(levels, coarse, k)`:

  1. pre-smooth nu1 times:       u_k <- S_pre(f_k, u_k)
  2. reset the coarse iterate:   u_{k+1} <- 0
  3. residual:                   r_k <- f_k - A_k u_k
  4. restrict:                   f_{k+1} <- P_k^T r_k
  5. recurse gamma times into k+1
  6. correct:                    u_k <- u_k + P_k u_{k+1}
  7. post-smooth nu2 times:      u_k <- S_post(f_k, u_k)

At the coarsest level u_{m-1} is obtained by the dense LU solve, with the
transposed factorization when `transpose` is set. Only the scratch vectors
u, f and r of the levels are written.
"""

from __future__ import annotations

from typing import Sequence

from .coarse import DenseLU
from .types import Level


def coarse_solve(level: Level, coarse: DenseLU, *, transpose: bool = False) -> None:
    """Solve the coarsest level directly: u <- A^{-1} f (or A^{-T} f)."""
    if transpose:
        level.u[:] = coarse.solve_transpose(level.f)
    else:
        level.u[:] = coarse.solve(level.f)


def _relax(smoother, level: Level, sweeps: int, transpose: bool) -> None:
    """Apply a smoother `sweeps` times to the level's (f, u)."""
    for _ in range(sweeps):
        if transpose:
            smoother.trans_apply(level.f, level.u)
        else:
            smoother.apply(level.f, level.u)


def cycle(
    levels: Sequence[Level],
    coarse: DenseLU,
    k: int,
    *,
    nu1: int,
    nu2: int,
    gamma: int,
    transpose: bool = False,
) -> None:
    """Run one multigrid cycle starting at level k.

    Parameters
    ----------
    levels
        The level chain; `levels[k].f` and `levels[k].u` hold the right-hand
        side and initial iterate on entry, and `levels[k].u` the result on exit.
    coarse
        Factorization of `levels[-1].A`.
    k
        Level to cycle at. Start with 0.
    nu1, nu2
        Number of pre- and post-smoothing sweeps.
    gamma
        Number of recursive visits of level k+1 (1: V-cycle, 2: W-cycle).
    transpose
        Use the transposed smoothers and coarse solve.
    """
    level = levels[k]
    if k == len(levels) - 1:
        coarse_solve(level, coarse, transpose=transpose)
        return

    nxt = levels[k + 1]

    _relax(level.presmoother, level, nu1, transpose)

    nxt.u[:] = 0.0

    level.r[:] = level.f - level.A @ level.u
    nxt.f[:] = level.R @ level.r

    for _ in range(gamma):
        cycle(levels, coarse, k + 1, nu1=nu1, nu2=nu2, gamma=gamma, transpose=transpose)

    level.u += level.P @ nxt.u

    _relax(level.postsmoother, level, nu2, transpose)
