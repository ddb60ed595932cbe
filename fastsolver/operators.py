"""Linear operator interface.

An operator is anything that can apply a linear map A (``nrows`` x
``ncols``) to a vector. Four capabilities build on each other:

- ``MatVec``: ``nrows()``, ``ncols()`` and ``matvec(v)``,
  (ncols,) -> (nrows,). Required.
- ``MatMat``: ``matmat(X)``, (ncols, k) -> (nrows, k). Defaults to
  ``matvec`` applied column by column.
- ``ConjMatVec``: ``conj_matvec(v)``, (nrows,) -> (ncols,). Required if
  the adjoint is offered at all.
- ``ConjMatMat``: ``conj_matmat(X)``, (nrows, k) -> (ncols, k). Defaults
  to ``conj_matvec`` applied column by column.

``conj_matvec`` is the action of the conjugate adjoint A^H. For real
dtypes conjugation is the identity and A^H = A^T.

The batched defaults are free functions (:func:`columnwise_matmat`,
:func:`columnwise_conj_matmat`, built on :func:`batched`). Operators opt in
by inheriting :class:`LinearOperator` / :class:`AdjointOperator`, or supply
a cheaper batched method of their own. Overrides must give the same values
as the column-by-column default up to rounding.

Any 2-D tensor or ndarray is an operator through :class:`DenseOperator`;
:func:`as_operator` and the module-level ``matvec`` / ``matmat`` /
``conj_matvec`` / ``conj_matmat`` functions apply the wrapping
automatically.

Dimension conventions
---------------------
Shapes are preconditions, not checked: passing a vector whose length is
not ``ncols`` (or ``nrows`` for the adjoint) is a programming error and
the behaviour is whatever torch does with the mismatched product.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Protocol, Tuple, runtime_checkable

import numpy as np
import torch
from torch import Tensor

from fastsolver.logging_utils import debug_tensor_stats, log_operator_event
from fastsolver.types import conj, ensure_scalar

__all__ = [
    "MatVec",
    "MatMat",
    "ConjMatVec",
    "ConjMatMat",
    "batched",
    "columnwise_matmat",
    "columnwise_conj_matmat",
    "LinearOperator",
    "AdjointOperator",
    "CallableOperator",
    "DenseOperator",
    "as_operator",
    "nrows",
    "ncols",
    "matvec",
    "matmat",
    "conj_matvec",
    "conj_matmat",
]

VectorApplier = Callable[[Tensor], Tensor]


# ---------------------------------------------------------------------------
# Capability protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class MatVec(Protocol):
    """Operators that provide matrix-vector products."""

    def nrows(self) -> int:
        ...

    def ncols(self) -> int:
        ...

    def matvec(self, vec: Tensor) -> Tensor:
        ...


@runtime_checkable
class MatMat(MatVec, Protocol):
    """Application of the operator to a matrix whose columns are input vectors."""

    def matmat(self, mat: Tensor) -> Tensor:
        ...


@runtime_checkable
class ConjMatVec(MatVec, Protocol):
    """Product of the conjugate adjoint A^H with a vector."""

    def conj_matvec(self, vec: Tensor) -> Tensor:
        ...


@runtime_checkable
class ConjMatMat(MatMat, ConjMatVec, Protocol):
    """Product of the conjugate adjoint A^H with a matrix."""

    def conj_matmat(self, mat: Tensor) -> Tensor:
        ...


# ---------------------------------------------------------------------------
# Default derivations
# ---------------------------------------------------------------------------


def batched(apply_vec: VectorApplier, n_out: int) -> Callable[[Tensor], Tensor]:
    """Turn a single-vector applier into a column-by-column batched applier.

    The returned function maps X of shape (n_in, k) to Y of shape
    (n_out, k) with ``Y[:, j] = apply_vec(X[:, j])``, visiting columns in
    increasing order. Nothing is shared between columns. The output dtype
    is taken from the first column result (from X when k == 0).
    """

    def apply_mat(mat: Tensor) -> Tensor:
        k = int(mat.shape[1])
        if k == 0:
            return torch.zeros((n_out, 0), dtype=mat.dtype, device=mat.device)

        first = apply_vec(mat[:, 0])
        output = torch.zeros((n_out, k), dtype=first.dtype, device=first.device)
        output[:, 0] = first
        for index in range(1, k):
            output[:, index] = apply_vec(mat[:, index])
        return output

    return apply_mat


def columnwise_matmat(op: MatVec, mat: Tensor, *, logger: Optional[Any] = None) -> Tensor:
    """Default ``matmat``: apply ``op.matvec`` to each column of ``mat``."""
    log_operator_event(
        logger,
        "columnwise_matmat",
        shape=(op.nrows(), op.ncols()),
        n_columns=int(mat.shape[1]),
    )
    return batched(op.matvec, op.nrows())(mat)


def columnwise_conj_matmat(op: ConjMatVec, mat: Tensor, *, logger: Optional[Any] = None) -> Tensor:
    """Default ``conj_matmat``: apply ``op.conj_matvec`` to each column of ``mat``.

    ``mat`` has ``nrows`` rows; the result has ``ncols`` rows.
    """
    log_operator_event(
        logger,
        "columnwise_conj_matmat",
        shape=(op.nrows(), op.ncols()),
        n_columns=int(mat.shape[1]),
    )
    return batched(op.conj_matvec, op.ncols())(mat)


# ---------------------------------------------------------------------------
# Base classes carrying the defaults
# ---------------------------------------------------------------------------


class LinearOperator(ABC):
    """Base class for operators that only implement ``matvec``.

    Subclasses implement :meth:`nrows`, :meth:`ncols` and :meth:`matvec`;
    :meth:`matmat` falls back to :func:`columnwise_matmat` unless overridden.
    """

    logger: Optional[Any] = None

    @abstractmethod
    def nrows(self) -> int:
        """Return the number of rows of the operator."""

    @abstractmethod
    def ncols(self) -> int:
        """Return the number of columns of the operator."""

    @abstractmethod
    def matvec(self, vec: Tensor) -> Tensor:
        """Return the product of the operator with a vector."""

    def matmat(self, mat: Tensor) -> Tensor:
        """Return the product of the operator with a matrix."""
        return columnwise_matmat(self, mat, logger=self.logger)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.nrows(), self.ncols())

    def to_dense(
        self,
        dtype: Optional[torch.dtype] = None,
        device: Optional[torch.device] = None,
    ) -> Tensor:
        """Materialise the operator by applying it to the identity.

        Intended for debugging and parity tests on small operators.
        """
        dtype = dtype if dtype is not None else getattr(self, "dtype", torch.get_default_dtype())
        device = device if device is not None else getattr(self, "device", torch.device("cpu"))
        eye = torch.eye(self.ncols(), dtype=dtype, device=device)
        return self.matmat(eye)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape})"


class AdjointOperator(LinearOperator):
    """Base class for operators that also implement ``conj_matvec``.

    :meth:`conj_matmat` falls back to :func:`columnwise_conj_matmat` unless
    overridden.
    """

    @abstractmethod
    def conj_matvec(self, vec: Tensor) -> Tensor:
        """Return the product of the conjugate adjoint with a vector."""

    def conj_matmat(self, mat: Tensor) -> Tensor:
        """Return the product of the conjugate adjoint with a matrix."""
        return columnwise_conj_matmat(self, mat, logger=self.logger)


class CallableOperator(AdjointOperator):
    """Operator defined by matvec (and optionally conj-matvec) closures.

    Useful for matrix-free operators such as FMM-accelerated products,
    where only ``v -> A v`` is available. Batched products use the
    column-by-column defaults.
    """

    def __init__(
        self,
        shape: Tuple[int, int],
        matvec: VectorApplier,
        conj_matvec: Optional[VectorApplier] = None,
        *,
        dtype: Optional[torch.dtype] = None,
        device: Optional[torch.device | str] = None,
        logger: Optional[Any] = None,
    ) -> None:
        n_rows, n_cols = (int(s) for s in shape)
        if n_rows < 0 or n_cols < 0:
            raise ValueError(f"shape must be non-negative, got {tuple(shape)}")
        if not callable(matvec):
            raise TypeError("matvec must be callable")
        if conj_matvec is not None and not callable(conj_matvec):
            raise TypeError("conj_matvec must be callable or None")
        self._nrows = n_rows
        self._ncols = n_cols
        self._matvec = matvec
        self._conj_matvec = conj_matvec
        self.dtype = dtype if dtype is not None else torch.get_default_dtype()
        self.device = torch.device(device) if device is not None else torch.device("cpu")
        self.logger = logger

    def nrows(self) -> int:
        return self._nrows

    def ncols(self) -> int:
        return self._ncols

    def matvec(self, vec: Tensor) -> Tensor:
        return self._matvec(vec)

    def conj_matvec(self, vec: Tensor) -> Tensor:
        if self._conj_matvec is None:
            raise NotImplementedError(
                "CallableOperator was constructed without a conj_matvec closure"
            )
        return self._conj_matvec(vec)

    @property
    def has_adjoint(self) -> bool:
        return self._conj_matvec is not None


# ---------------------------------------------------------------------------
# Dense instantiation
# ---------------------------------------------------------------------------


def _as_tensor(x: Any, name: str) -> Tensor:
    if isinstance(x, Tensor):
        return x
    if isinstance(x, np.ndarray):
        # torch cannot view arrays with negative strides
        if any(s < 0 for s in x.strides):
            x = np.ascontiguousarray(x)
        return torch.from_numpy(x)
    try:
        return torch.as_tensor(x)
    except (TypeError, ValueError, RuntimeError) as exc:
        raise TypeError(f"{name} must be array-like, got {type(x).__name__}") from exc


class DenseOperator(AdjointOperator):
    """A dense 2-D table acting as a linear operator.

    The matrix is held by reference (no copy), except that numpy arrays with
    negative strides are copied first. Inputs are promoted to the
    common dtype of matrix and input and moved to the matrix's device, so a
    real vector can be applied to a complex matrix and vice versa.

    Batched products are overridden with a single dense product instead of
    the column-by-column defaults; the conjugate adjoint is evaluated as
    ``conj(conj(v) @ M)`` so A^H is never materialised.
    """

    def __init__(self, matrix: Any, *, logger: Optional[Any] = None) -> None:
        mat = _as_tensor(matrix, "matrix")
        if mat.ndim != 2:
            raise ValueError(f"matrix must be 2-D, got shape {tuple(mat.shape)}")
        ensure_scalar(mat, "matrix")
        self.matrix = mat
        self.logger = logger
        log_operator_event(
            logger,
            "dense_operator_created",
            shape=tuple(mat.shape),
            dtype=str(mat.dtype),
            device=str(mat.device),
        )

    @property
    def dtype(self) -> torch.dtype:
        return self.matrix.dtype

    @property
    def device(self) -> torch.device:
        return self.matrix.device

    def nrows(self) -> int:
        return int(self.matrix.shape[0])

    def ncols(self) -> int:
        return int(self.matrix.shape[1])

    def _promote(self, x: Any) -> Tuple[Tensor, Tensor]:
        """Return (matrix, x) cast to a common dtype on the matrix device."""
        x = _as_tensor(x, "input")
        dtype = torch.promote_types(self.matrix.dtype, x.dtype)
        mat = self.matrix if self.matrix.dtype == dtype else self.matrix.to(dtype)
        return mat, x.to(device=self.matrix.device, dtype=dtype)

    def matvec(self, vec: Tensor) -> Tensor:
        mat, v = self._promote(vec)
        return mat @ v

    def matmat(self, mat: Tensor) -> Tensor:
        m, x = self._promote(mat)
        out = m @ x
        debug_tensor_stats("dense_matmat", out, self.logger)
        return out

    def conj_matvec(self, vec: Tensor) -> Tensor:
        mat, v = self._promote(vec)
        return conj(conj(v) @ mat)

    def conj_matmat(self, mat: Tensor) -> Tensor:
        m, x = self._promote(mat)
        # A^H X == (X^H A)^H
        out = conj(conj(x).T @ m).T
        debug_tensor_stats("dense_conj_matmat", out, self.logger)
        return out

    def to_dense(
        self,
        dtype: Optional[torch.dtype] = None,
        device: Optional[torch.device] = None,
    ) -> Tensor:
        return self.matrix.to(
            device=device if device is not None else self.matrix.device,
            dtype=dtype if dtype is not None else self.matrix.dtype,
        )


# ---------------------------------------------------------------------------
# Functional entry points
# ---------------------------------------------------------------------------


def as_operator(obj: Any, *, logger: Optional[Any] = None) -> MatVec:
    """Return ``obj`` if it is already an operator, else wrap a dense table."""
    if isinstance(obj, MatVec):
        return obj
    if isinstance(obj, (Tensor, np.ndarray)):
        return DenseOperator(obj, logger=logger)
    raise TypeError(
        f"cannot interpret {type(obj).__name__} as a linear operator; "
        "expected an object with nrows/ncols/matvec or a 2-D tensor"
    )


def nrows(op: Any) -> int:
    return as_operator(op).nrows()


def ncols(op: Any) -> int:
    return as_operator(op).ncols()


def matvec(op: Any, vec: Tensor) -> Tensor:
    """Apply ``op`` to a vector."""
    return as_operator(op).matvec(vec)


def matmat(op: Any, mat: Tensor) -> Tensor:
    """Apply ``op`` to each column of ``mat``, using ``op.matmat`` when available."""
    operator = as_operator(op)
    if isinstance(operator, MatMat):
        return operator.matmat(mat)
    return columnwise_matmat(operator, mat)


def conj_matvec(op: Any, vec: Tensor) -> Tensor:
    """Apply the conjugate adjoint of ``op`` to a vector."""
    operator = as_operator(op)
    if not isinstance(operator, ConjMatVec):
        raise TypeError(f"{type(operator).__name__} does not provide conj_matvec")
    return operator.conj_matvec(vec)


def conj_matmat(op: Any, mat: Tensor) -> Tensor:
    """Apply the conjugate adjoint of ``op`` to each column of ``mat``."""
    operator = as_operator(op)
    if isinstance(operator, ConjMatMat):
        return operator.conj_matmat(mat)
    if isinstance(operator, ConjMatVec):
        return columnwise_conj_matmat(operator, mat)
    raise TypeError(f"{type(operator).__name__} does not provide conj_matvec")
