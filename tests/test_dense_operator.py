from __future__ import annotations

"""
Numerical tests for the dense instantiation of the operator interface.

Every dense result is compared against an explicit torch product so the
conjugation conventions are pinned down for real and complex dtypes.
"""

import numpy as np
import pytest
import torch

from fastsolver.operators import (
    DenseOperator,
    as_operator,
    columnwise_conj_matmat,
    columnwise_matmat,
    conj_matmat,
    conj_matvec,
    matmat,
    matvec,
    ncols,
    nrows,
)

_ALL_DTYPES = (torch.float32, torch.float64, torch.complex64, torch.complex128)


def _random_matrix(n: int, m: int, dtype: torch.dtype, seed: int = 0) -> torch.Tensor:
    gen = torch.Generator().manual_seed(seed)
    return torch.randn(n, m, generator=gen, dtype=dtype)


def _tol(dtype: torch.dtype) -> dict:
    if dtype in (torch.float32, torch.complex64):
        return {"rtol": 1e-5, "atol": 1e-5}
    return {"rtol": 1e-12, "atol": 1e-12}


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def test_real_3x2_matvec_scenario() -> None:
    M = torch.tensor([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]], dtype=torch.float64)
    v = torch.tensor([1.0, 1.0], dtype=torch.float64)

    out = matvec(M, v)

    assert out.shape == (3,)
    assert torch.equal(out, torch.tensor([3.0, 7.0, 11.0], dtype=torch.float64))


def test_complex_1x1_conj_matvec_scenario() -> None:
    M = torch.tensor([[2.0 + 3.0j]], dtype=torch.complex128)
    v = torch.tensor([1.0 + 0.0j], dtype=torch.complex128)

    out = conj_matvec(M, v)

    assert out.shape == (1,)
    assert torch.equal(out, torch.tensor([2.0 - 3.0j], dtype=torch.complex128))


def test_complex_2x2_conj_matvec_hand_computed() -> None:
    """
    M = [[1+i, 2], [3i, 4-i]], v = [1, i].

    M^H = [[1-i, -3i], [2, 4+i]], so
    M^H v = [(1-i) + (-3i)(i), 2 + (4+i)(i)] = [4-i, 1+4i].
    """
    M = torch.tensor([[1 + 1j, 2 + 0j], [0 + 3j, 4 - 1j]], dtype=torch.complex128)
    v = torch.tensor([1 + 0j, 0 + 1j], dtype=torch.complex128)

    out = conj_matvec(M, v)

    expected = torch.tensor([4 - 1j, 1 + 4j], dtype=torch.complex128)
    torch.testing.assert_close(out, expected)


# ---------------------------------------------------------------------------
# Dense products vs explicit torch products
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("dtype", _ALL_DTYPES)
def test_matvec_matches_standard_product(dtype: torch.dtype) -> None:
    M = _random_matrix(7, 4, dtype)
    v = _random_matrix(4, 1, dtype, seed=1)[:, 0]

    op = DenseOperator(M)
    torch.testing.assert_close(op.matvec(v), M @ v, **_tol(dtype))
    assert op.nrows() == 7
    assert op.ncols() == 4
    assert op.shape == (7, 4)


@pytest.mark.parametrize("dtype", _ALL_DTYPES)
def test_conj_matvec_matches_conjugate_transpose(dtype: torch.dtype) -> None:
    M = _random_matrix(5, 3, dtype)
    v = _random_matrix(5, 1, dtype, seed=2)[:, 0]

    out = DenseOperator(M).conj_matvec(v)

    assert out.shape == (3,)
    torch.testing.assert_close(out, M.conj().T @ v, **_tol(dtype))


@pytest.mark.parametrize("dtype", [torch.float32, torch.float64])
def test_conj_matvec_is_transpose_for_real(dtype: torch.dtype) -> None:
    M = _random_matrix(4, 6, dtype)
    v = _random_matrix(4, 1, dtype, seed=3)[:, 0]

    torch.testing.assert_close(conj_matvec(M, v), M.T @ v, **_tol(dtype))


@pytest.mark.parametrize("dtype", _ALL_DTYPES)
@pytest.mark.parametrize("k", [0, 1, 5])
def test_dense_matmat_matches_columnwise(dtype: torch.dtype, k: int) -> None:
    M = _random_matrix(6, 4, dtype)
    X = _random_matrix(4, k, dtype, seed=4)
    op = DenseOperator(M)

    out = op.matmat(X)

    assert out.shape == (6, k)
    torch.testing.assert_close(out, M @ X, **_tol(dtype))
    torch.testing.assert_close(out, columnwise_matmat(op, X), **_tol(dtype))


@pytest.mark.parametrize("dtype", _ALL_DTYPES)
@pytest.mark.parametrize("k", [0, 1, 3])
def test_dense_conj_matmat_matches_columnwise(dtype: torch.dtype, k: int) -> None:
    M = _random_matrix(6, 4, dtype)
    X = _random_matrix(6, k, dtype, seed=5)
    op = DenseOperator(M)

    out = op.conj_matmat(X)

    assert out.shape == (4, k)
    torch.testing.assert_close(out, M.conj().T @ X, **_tol(dtype))
    torch.testing.assert_close(out, columnwise_conj_matmat(op, X), **_tol(dtype))
    for j in range(k):
        torch.testing.assert_close(out[:, j], op.conj_matvec(X[:, j]), **_tol(dtype))


def test_conj_matvec_does_not_modify_inputs() -> None:
    M = torch.tensor([[1 + 2j, 3 - 1j]], dtype=torch.complex128)
    v = torch.tensor([2 - 5j], dtype=torch.complex128)
    M_before = M.clone()
    v_before = v.clone()

    DenseOperator(M).conj_matvec(v)

    assert torch.equal(M, M_before)
    assert torch.equal(v, v_before)
    assert not M.is_conj()
    assert not v.is_conj()


def test_result_is_materialised_not_lazy_conjugate() -> None:
    M = torch.tensor([[1 + 1j]], dtype=torch.complex64)
    out = conj_matvec(M, torch.tensor([1 + 0j], dtype=torch.complex64))
    assert not out.is_conj()


# ---------------------------------------------------------------------------
# Dtype promotion / wrapping
# ---------------------------------------------------------------------------


def test_real_vector_on_complex_matrix_is_promoted() -> None:
    M = torch.tensor([[1 + 1j, 2 + 0j]], dtype=torch.complex128)
    v = torch.tensor([1.0, 1.0], dtype=torch.float64)

    out = matvec(M, v)

    assert out.dtype == torch.complex128
    torch.testing.assert_close(out, torch.tensor([3 + 1j], dtype=torch.complex128))


def test_complex_vector_on_real_matrix_is_promoted() -> None:
    M = torch.tensor([[1.0, 2.0]], dtype=torch.float64)
    v = torch.tensor([1j], dtype=torch.complex128)

    out = conj_matvec(M, v)

    assert out.dtype == torch.complex128
    torch.testing.assert_close(out, torch.tensor([1j, 2j], dtype=torch.complex128))


def test_numpy_matrix_is_an_operator() -> None:
    M = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    v = torch.tensor([1.0, 1.0], dtype=torch.float64)

    assert nrows(M) == 3
    assert ncols(M) == 2
    torch.testing.assert_close(matvec(M, v), torch.tensor([3.0, 7.0, 11.0], dtype=torch.float64))


def test_reversed_numpy_matrix_is_an_operator() -> None:
    M = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])[::-1]
    v = torch.ones(2, dtype=torch.float64)

    expected = torch.tensor([11.0, 7.0, 3.0], dtype=torch.float64)
    torch.testing.assert_close(matvec(M, v), expected)
    w = torch.tensor([1.0, 0.0, 0.0], dtype=torch.float64)
    torch.testing.assert_close(conj_matvec(M, w), torch.tensor([5.0, 6.0], dtype=torch.float64))


def test_dense_operator_holds_matrix_by_reference() -> None:
    M = torch.zeros(2, 2, dtype=torch.float64)
    op = DenseOperator(M)
    M[0, 0] = 5.0

    out = op.matvec(torch.tensor([1.0, 0.0], dtype=torch.float64))
    assert out[0].item() == 5.0


def test_as_operator_passes_operators_through() -> None:
    op = DenseOperator(torch.eye(3, dtype=torch.float64))
    assert as_operator(op) is op


def test_as_operator_wraps_tensor() -> None:
    op = as_operator(torch.eye(2, dtype=torch.float32))
    assert isinstance(op, DenseOperator)


def test_as_operator_rejects_other_objects() -> None:
    with pytest.raises(TypeError):
        as_operator("not an operator")


def test_dense_operator_rejects_bad_tables() -> None:
    with pytest.raises(ValueError):
        DenseOperator(torch.zeros(3, dtype=torch.float64))
    with pytest.raises(TypeError):
        DenseOperator(torch.zeros(2, 2, dtype=torch.int64))


def test_free_functions_use_dense_overrides() -> None:
    M = _random_matrix(3, 2, torch.complex128)
    X = _random_matrix(2, 4, torch.complex128, seed=7)
    Y = _random_matrix(3, 4, torch.complex128, seed=8)

    torch.testing.assert_close(matmat(M, X), M @ X)
    torch.testing.assert_close(conj_matmat(M, Y), M.conj().T @ Y)


def test_to_dense_returns_matrix() -> None:
    M = _random_matrix(3, 3, torch.float64)
    assert torch.equal(DenseOperator(M).to_dense(), M)
