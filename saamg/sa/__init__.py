"""Smoothed-aggregation AMG internals.

This package contains the building blocks of the preconditioner exposed by
`saamg.preconditioner`.

Modules
-------
types
    Configuration, aggregation and per-level data containers.
csr
    CSR conversion and diagonal lookup.
aggregation
    Strength-of-connection and the three-phase aggregation.
interpolation
    Tentative/smoothed prolongation and Galerkin coarse operators.
smoothers
    SSOR / SOR relaxation bound to one level operator.
coarse
    Dense LU factorization used on the coarsest level.
hierarchy
    Coarsening driver building the level chain.
multigrid
    Recursive V/W-cycle over the level chain.
stats
    Per-level timing and diagnostic reporting.
"""

from __future__ import annotations

from . import aggregation, coarse, csr, hierarchy, interpolation, multigrid, smoothers, stats, types

__all__ = [
    "types",
    "csr",
    "aggregation",
    "interpolation",
    "smoothers",
    "coarse",
    "hierarchy",
    "multigrid",
    "stats",
]
