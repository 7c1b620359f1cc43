"""Setup diagnostics for the smoothed-aggregation hierarchy.

Each coarsening step gets a `LevelStats` record. `extend_hierarchy` wraps its
phases in named timers and, once the coarse operator exists, fills in the
aggregate counts and sizes:

    stats = LevelStats(level=k, n_fine=A.shape[0], nnz=A.nnz)
    with stats.timeit("aggregate"):
        agg = aggregate(A, eps)
    finalize_level_stats(stats=stats, agg=agg, n_coarse=agg.n_aggs)
    print_level_summary(stats, print_info=print_info)

Printing happens here and nowhere else, and only when `print_info` is set.
Timer keys are free-form; the summary lists the known setup phases in
pipeline order.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Sequence
import time

import numpy as np

from .types import Aggregation, Level


@dataclass(slots=True)
class LevelStats:
    """What was measured while coarsening one level.

    `level`, `n_fine` and `nnz` describe the operator being coarsened.
    `n_aggs` and `n_coarse` stay None until `finalize_level_stats` runs.
    `timings` maps a phase name to seconds spent in it; `extra` holds the
    derived numbers (`cr`, `isolated`, `agg_min`/`agg_med`/`agg_max`, `p_nnz`).
    """

    level: int
    n_fine: int
    nnz: int = 0
    n_aggs: int | None = None
    n_coarse: int | None = None
    timings: dict[str, float] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @contextmanager
    def timeit(self, key: str):
        """Add the wall time spent inside the block to `timings[key]`."""
        self.timings.setdefault(key, 0.0)
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[key] += time.perf_counter() - start


_SPREAD = (("min", np.min), ("med", np.median), ("max", np.max))


def _record_spread(extra: dict[str, Any], name: str, values) -> None:
    """Record the smallest, median and largest of `values` as `<name>_min`, `_med`, `_max`."""
    v = np.asarray(values, dtype=float).ravel()
    if v.size:
        extra.update({f"{name}_{tag}": float(fn(v)) for tag, fn in _SPREAD})


def finalize_level_stats(*, stats: LevelStats, agg: Aggregation, n_coarse: int, p_nnz: int | None = None) -> None:
    """Fill in the aggregate counts, coarsening ratio and aggregate-size spread.

    `stats` is updated in place. `p_nnz` is recorded when the caller knows
    the number of stored prolongation entries.
    """
    stats.n_aggs = int(agg.n_aggs)
    stats.n_coarse = int(n_coarse)
    stats.extra["cr"] = float(stats.n_fine / n_coarse) if n_coarse > 0 else float("inf")
    stats.extra["isolated"] = int(agg.n_isolated)

    labels = agg.labels[agg.labels >= 0]
    if labels.size:
        _record_spread(stats.extra, "agg", np.bincount(labels, minlength=agg.n_aggs))

    if p_nnz is not None:
        stats.extra["p_nnz"] = int(p_nnz)


def operator_complexity(levels: Sequence[Level]) -> float:
    """Total stored entries over all levels divided by those of the finest."""
    nnz = [lvl.A.nnz for lvl in levels]
    return float(sum(nnz)) / nnz[0] if nnz and nnz[0] > 0 else float("inf")


def grid_complexity(levels: Sequence[Level]) -> float:
    """Total unknowns over all levels divided by those of the finest."""
    n = [lvl.A.shape[0] for lvl in levels]
    return float(sum(n)) / n[0] if n and n[0] > 0 else float("inf")


def _scalar(value) -> str:
    """Three significant digits, switching to exponent form for very small or large magnitudes."""
    if not isinstance(value, (int, float, np.number)):
        return str(value)
    mag = abs(float(value))
    spec = ".2e" if 0.0 < mag < 1e-2 or mag >= 1e4 else ".3g"
    return format(float(value), spec)


def _spread(extra: dict[str, Any], name: str) -> str:
    """`min/med/max` as recorded by `_record_spread`, or "n/a"."""
    values = [extra.get(f"{name}_{tag}") for tag, _ in _SPREAD]
    if None in values:
        return "n/a"
    return "/".join(_scalar(v) for v in values)


def _duration(seconds: float) -> str:
    """Milliseconds below one second, seconds above."""
    if seconds >= 1.0:
        return f"{seconds:7.2f}s"
    return f"{1e3 * seconds:7.1f}ms"


_TIMING_ORDER = ("aggregate", "prolongation", "galerkin", "smoother")


def print_level_summary(
    stats: LevelStats,
    *,
    print_info: bool,
    prefix: str = "SA",
    indent: str = "",
) -> None:
    """Print one level's aggregate figures and phase timings when `print_info` is set."""
    if not print_info:
        return

    coarse = "?" if stats.n_coarse is None else stats.n_coarse
    lines = [
        f"{prefix:<3}  level={stats.level:<2d}  n={stats.n_fine:<7d} -> {coarse:<7}  "
        f"cr={_scalar(stats.extra.get('cr', 'n/a'))}  nnz={stats.nnz}",
        "     aggregates:",
        f"       count    : {'n/a' if stats.n_aggs is None else stats.n_aggs}",
        f"       size     : {_spread(stats.extra, 'agg')}",
        f"       isolated : {stats.extra.get('isolated', 'n/a')}",
    ]
    if "p_nnz" in stats.extra:
        lines.append(f"       P nnz    : {stats.extra['p_nnz']}")

    phases = [(k, stats.timings[k]) for k in _TIMING_ORDER if k in stats.timings]
    lines.append("     timing:")
    lines += [f"       {k:<12} {_duration(t)}" for k, t in phases]
    lines.append(f"       {'total':<12} {_duration(sum(t for _, t in phases))}")

    for line in lines:
        print(indent + line)


def print_hierarchy_summary(levels: Sequence[Level], *, print_info: bool, indent: str = "") -> None:
    """Print `format_hierarchy(levels)` when `print_info` is set."""
    if not print_info:
        return
    print(f"{indent}{format_hierarchy(levels)}")


def format_hierarchy(levels: Sequence[Level]) -> str:
    """Render the level table used by `print_hierarchy_summary` and `__repr__`."""
    lines = [
        f"Number of Levels:     {len(levels)}",
        f"Operator Complexity:  {operator_complexity(levels):6.3f}",
        f"Grid Complexity:      {grid_complexity(levels):6.3f}",
        "  level   unknowns     nonzeros",
    ]
    total = sum(lvl.A.nnz for lvl in levels) or 1
    for k, lvl in enumerate(levels):
        lines.append(f"{k:>6} {lvl.A.shape[0]:>11} {lvl.A.nnz:>12} [{100.0 * lvl.A.nnz / total:5.2f}%]")
    return "\n".join(lines)
