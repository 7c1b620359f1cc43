"""Benchmark smoothed-aggregation setup/solve on 2D Poisson problems.

Run from the repository root:
  python saamg/tests/bench_saamg.py --sizes 32 64 128 --accel cg

Options:
  --omega 0               plain aggregation (fast Galerkin path)
  --gamma 2               W-cycle
  --sor                   forward-only SOR smoothing
  --per-level             print per-level setup summaries
  --csv out.csv           write a CSV summary
"""

from __future__ import annotations

import argparse
import csv
import time

import numpy as np

from pyamg.gallery import poisson
from pyamg.krylov import cg, fgmres

from saamg import AMGConfig, SmoothedAggregationAMG
from saamg.sa.stats import print_level_summary


def _conv_factor(res: list[float]) -> tuple[int, float, float]:
    """Return (iters, conv_factor, final_res)."""
    if len(res) < 2:
        return 0, float("nan"), float("nan")
    iters = len(res) - 1
    r0 = res[0]
    r1 = res[-1]
    if r0 <= 0:
        return iters, float("nan"), float(r1)
    cf = float(np.exp(np.log(r1 / r0) / max(iters, 1)))
    return iters, cf, float(r1)


def _run_one(
    A,
    b,
    *,
    config: AMGConfig,
    accel: str,
    tol: float,
    maxiter: int,
):
    t0 = time.perf_counter()
    ml = SmoothedAggregationAMG(config)
    ml.set_matrix(A)
    setup_time = time.perf_counter() - t0

    res: list[float] = []
    M = ml.aspreconditioner()
    t1 = time.perf_counter()
    if accel == "cg":
        x, info = cg(A, b, tol=tol, maxiter=maxiter, M=M, residuals=res)
    else:
        x, info = fgmres(A, b, tol=tol, restart=maxiter, maxiter=maxiter, M=M, residuals=res)
    solve_time = time.perf_counter() - t1

    iters, cf, final_res = _conv_factor(res)

    return dict(
        levels=len(ml.levels),
        setup_time=setup_time,
        solve_time=solve_time,
        iters=iters,
        conv_factor=cf,
        final_res=final_res,
        info=info,
        oc=float(ml.operator_complexity()),
        gc=float(ml.grid_complexity()),
        ml=ml,
    )


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--sizes", type=int, nargs="+", default=[32, 64])
    p.add_argument("--accel", choices=["cg", "fgmres"], default="cg")
    p.add_argument("--omega", type=float, default=2.0 / 3.0)
    p.add_argument("--gamma", type=int, default=1)
    p.add_argument("--nu", type=int, default=1, help="pre- and post-smoothing sweeps")
    p.add_argument("--min-size", type=int, default=40)
    p.add_argument("--sor", action="store_true")
    p.add_argument("--tol", type=float, default=1e-8)
    p.add_argument("--maxiter", type=int, default=200)
    p.add_argument("--per-level", action="store_true")
    p.add_argument("--csv", type=str, default="")
    args = p.parse_args()

    common = dict(nu1=args.nu, nu2=args.nu, gamma=args.gamma, min_size=args.min_size, omega=args.omega)
    config = AMGConfig.sor(**common) if args.sor else AMGConfig(**common)

    rows = []
    for m in args.sizes:
        A = poisson((m, m), format="csr")
        n = A.shape[0]

        rng = np.random.default_rng(n)
        b = rng.standard_normal(n)

        print(f"\n=== poisson {m}x{m} (n={n}) ===")
        out = _run_one(A, b, config=config, accel=args.accel, tol=args.tol, maxiter=args.maxiter)
        print(
            f"levels={out['levels']} | setup={out['setup_time']:.2f}s "
            f"solve={out['solve_time']:.2f}s iters={out['iters']:3d} "
            f"cf={out['conv_factor']:.3f} oc={out['oc']:.2f} gc={out['gc']:.2f} "
            f"final_res={out['final_res']:.2e}"
        )

        if args.per_level:
            for lev in out["ml"].levels[:-1]:
                print("-" * 72)
                print_level_summary(lev.stats, print_info=True, indent="")

        ml = out.pop("ml")
        rows.append(dict(case=f"poisson_{m}x{m}", n=n, nnz=ml.levels[0].A.nnz, **out))

    if args.csv:
        with open(args.csv, "w", newline="") as fp:
            w = csv.DictWriter(fp, fieldnames=rows[0].keys())
            w.writeheader()
            w.writerows(rows)
        print(f"\nWrote {args.csv}")


if __name__ == "__main__":
    main()
