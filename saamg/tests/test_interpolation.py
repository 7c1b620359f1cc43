"""Tests for the tentative/smoothed prolongation and the Galerkin products."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.sparse import csr_array

from pyamg.gallery import poisson, stencil_grid

from saamg.sa.aggregation import aggregate, strength_tolerance
from saamg.sa.csr import as_csr
from saamg.sa.interpolation import (
    galerkin_aggregated,
    galerkin_explicit,
    smoothed_prolongation,
    tentative_prolongation,
)


def _anisotropic(nx: int, ny: int, eps: float = 0.01) -> csr_array:
    """5-point operator with weak coupling in y."""
    stencil = np.array([[0.0, -eps, 0.0], [-1.0, 2.0 + 2.0 * eps, -1.0], [0.0, -eps, 0.0]])
    return as_csr(stencil_grid(stencil, (nx, ny), format="csr"))


def _reference_prolongation(A: csr_array, agg, omega: float) -> np.ndarray:
    """Dense (I - omega D^{-1} A_F) Pt with weak couplings lumped on the diagonal."""
    Ad = A.toarray()
    S = csr_array((agg.strong.astype(float), A.indices, A.indptr), shape=A.shape).toarray() > 0
    AF = np.where(S, Ad, 0.0)
    AF[np.diag_indices_from(AF)] -= np.where(S, 0.0, Ad).sum(axis=1)
    Pt = tentative_prolongation(agg.labels, agg.n_aggs).toarray()
    P = Pt - omega * (AF / np.diag(Ad)[:, None]) @ Pt
    P[agg.labels < 0] = 0.0
    return P


CASES = [
    ("poisson1d", lambda: as_csr(poisson((40,), format="csr"))),
    ("poisson2d", lambda: as_csr(poisson((9, 11), format="csr"))),
    ("anisotropic", lambda: _anisotropic(10, 8)),
]


def test_tentative_has_one_entry_per_aggregated_row():
    labels = np.array([0, 0, 1, -1, 1, 2], dtype=np.int32)
    P = tentative_prolongation(labels, 3)
    assert P.shape == (6, 3)
    np.testing.assert_array_equal(np.diff(P.indptr), [1, 1, 1, 0, 1, 1])
    np.testing.assert_array_equal(
        P.toarray(),
        [[1, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 0], [0, 1, 0], [0, 0, 1]],
    )


@pytest.mark.parametrize("name,build", CASES, ids=[c[0] for c in CASES])
def test_galerkin_aggregated_matches_triple_product(name, build):
    A = build()
    agg = aggregate(A, strength_tolerance(0))
    Pt = tentative_prolongation(agg.labels, agg.n_aggs).toarray()

    Ac = galerkin_aggregated(A, agg.labels, agg.n_aggs)

    assert Ac.shape == (agg.n_aggs, agg.n_aggs)
    np.testing.assert_allclose(Ac.toarray(), Pt.T @ A.toarray() @ Pt, atol=1e-13)


def test_galerkin_aggregated_sums_repeated_contributions():
    # every entry of a 3x3 all-ones block lands on the same coarse entry
    A = as_csr(csr_array(np.ones((3, 3)) + 2.0 * np.eye(3)))
    Ac = galerkin_aggregated(A, np.zeros(3, dtype=np.int32), 1)
    assert Ac.toarray()[0, 0] == pytest.approx(15.0)


def test_galerkin_aggregated_skips_unaggregated_nodes():
    A = as_csr(poisson((6,), format="csr"))
    labels = np.array([0, 0, 0, -1, 1, 1], dtype=np.int32)
    Ac = galerkin_aggregated(A, labels, 2)
    Pt = tentative_prolongation(labels, 2).toarray()
    np.testing.assert_allclose(Ac.toarray(), Pt.T @ A.toarray() @ Pt)


def test_smoothed_rows_on_1d_poisson():
    A = as_csr(poisson((8,), format="csr"))
    agg = aggregate(A, strength_tolerance(0))
    P = smoothed_prolongation(A, agg, 2.0 / 3.0).toarray()

    np.testing.assert_allclose(P[0], [2.0 / 3.0, 0.0, 0.0])
    np.testing.assert_allclose(P[2], [1.0 / 3.0, 2.0 / 3.0, 0.0])
    # interior of an aggregate: the row sums of A cancel
    np.testing.assert_allclose(P[3], [0.0, 1.0, 0.0])


@pytest.mark.parametrize("name,build", CASES, ids=[c[0] for c in CASES])
@pytest.mark.parametrize("omega", [0.5, 2.0 / 3.0, 1.0])
def test_smoothed_prolongation_matches_filtered_jacobi(name, build, omega):
    A = build()
    agg = aggregate(A, strength_tolerance(0))

    P = smoothed_prolongation(A, agg, omega)

    assert P.shape == (A.shape[0], agg.n_aggs)
    np.testing.assert_allclose(P.toarray(), _reference_prolongation(A, agg, omega), atol=1e-14)


def test_weak_couplings_are_lumped_onto_own_aggregate():
    A = _anisotropic(6, 6)
    agg = aggregate(A, strength_tolerance(0))
    S = csr_array((agg.strong.astype(float), A.indices, A.indptr), shape=A.shape).toarray() > 0
    assert (~S & (A.toarray() != 0)).any()

    P = smoothed_prolongation(A, agg, 2.0 / 3.0)
    Ad = A.toarray()
    Pd = P.toarray()
    for i in range(A.shape[0]):
        strong_sum = Ad[i, S[i]].sum()
        weak_sum = Ad[i, ~S[i]].sum()
        expected = 1.0 - (2.0 / 3.0) * (strong_sum - weak_sum) / Ad[i, i]
        assert Pd[i].sum() == pytest.approx(expected)
        # weak neighbours in other aggregates get no column of their own
        weak_cols = {int(agg.labels[j]) for j in np.flatnonzero(~S[i] & (Ad[i] != 0))}
        strong_cols = {int(agg.labels[j]) for j in np.flatnonzero(S[i])}
        for c in weak_cols - strong_cols:
            assert Pd[i, c] == 0.0


@pytest.mark.parametrize("name,build", CASES, ids=[c[0] for c in CASES])
def test_galerkin_explicit_matches_sparse_product(name, build):
    A = build()
    agg = aggregate(A, strength_tolerance(0))
    P = smoothed_prolongation(A, agg, 2.0 / 3.0)

    Ac = galerkin_explicit(A, P)
    ref = (P.T @ A @ P).toarray()

    np.testing.assert_allclose(Ac.toarray(), ref, atol=1e-13)
    np.testing.assert_allclose(Ac.toarray(), Ac.toarray().T, atol=1e-13)
    assert Ac.has_sorted_indices


def test_galerkin_explicit_without_coarse_columns():
    A = as_csr(poisson((4,), format="csr"))
    Ac = galerkin_explicit(A, csr_array((4, 0)))
    assert Ac.shape == (0, 0)


@pytest.mark.parametrize("grid", [(5,), (13,), (50,), (3, 3), (5, 5), (7, 6)])
def test_galerkin_aggregated_on_laplacians(grid):
    A = as_csr(poisson(grid, format="csr"))
    agg = aggregate(A, strength_tolerance(0))
    Pt = tentative_prolongation(agg.labels, agg.n_aggs).toarray()
    Ac = galerkin_aggregated(A, agg.labels, agg.n_aggs).toarray()
    np.testing.assert_allclose(Ac, Pt.T @ A.toarray() @ Pt, atol=1e-13)
    np.testing.assert_allclose(Ac, Ac.T)
