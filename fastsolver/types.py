"""Basic definitions used by everything else in fastsolver.

Scalar domain
-------------
Numeric tables are torch tensors, so the two scalar capability tags are
expressed as sets of torch dtypes:

- ``RealType``: float32 / float64. Real floating point, safe to share
  between threads, with floor/ceil/transcendentals and a machine epsilon.
- ``Scalar``: every ``RealType`` plus complex64 / complex128, i.e. any
  valid field element for linear algebra including conjugation.

Generic code written against ``Scalar`` must work for complex operands;
code written against ``RealType`` may assume there is no imaginary part.

The helpers ``ensure_real_type`` / ``ensure_scalar`` play the role of a
static type bound: they are called once at construction boundaries, never
inside numerical loops.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

import torch
from torch import Tensor

__all__ = [
    "REAL_DTYPES",
    "COMPLEX_DTYPES",
    "SCALAR_DTYPES",
    "RealType",
    "Scalar",
    "is_real_type",
    "is_scalar",
    "ensure_real_type",
    "ensure_scalar",
    "complex_dtype_for",
    "real_dtype_for",
    "machine_eps",
    "conj",
    "ThreadingType",
    "EvalMode",
    "SolverError",
    "Result",
]

# ---------------------------------------------------------------------------
# Scalar domain
# ---------------------------------------------------------------------------

REAL_DTYPES = (torch.float32, torch.float64)
COMPLEX_DTYPES = (torch.complex64, torch.complex128)
SCALAR_DTYPES = REAL_DTYPES + COMPLEX_DTYPES

# Type variables used in signatures to document which tag a table obeys.
RealType = TypeVar("RealType", bound=Tensor)
Scalar = TypeVar("Scalar", bound=Tensor)

_COMPLEX_OF = {
    torch.float32: torch.complex64,
    torch.float64: torch.complex128,
}
_REAL_OF = {
    torch.complex64: torch.float32,
    torch.complex128: torch.float64,
}


def is_real_type(dtype: torch.dtype) -> bool:
    """Return True if ``dtype`` conforms to ``RealType``."""
    return dtype in REAL_DTYPES


def is_scalar(dtype: torch.dtype) -> bool:
    """Return True if ``dtype`` conforms to ``Scalar``."""
    return dtype in SCALAR_DTYPES


def ensure_real_type(x: Tensor, name: str) -> None:
    """Ensure tensor has dtype float32 or float64."""
    if not is_real_type(x.dtype):
        raise TypeError(f"{name} must have dtype float32 or float64, got {x.dtype}")


def ensure_scalar(x: Tensor, name: str) -> None:
    """Ensure tensor has a real or complex floating point dtype."""
    if not is_scalar(x.dtype):
        raise TypeError(
            f"{name} must have dtype float32, float64, complex64 or complex128, "
            f"got {x.dtype}"
        )


def complex_dtype_for(dtype: torch.dtype) -> torch.dtype:
    """Return the complex dtype built over a real dtype (complex dtypes pass through)."""
    if dtype in COMPLEX_DTYPES:
        return dtype
    try:
        return _COMPLEX_OF[dtype]
    except KeyError:
        raise TypeError(f"no complex counterpart for dtype {dtype}") from None


def real_dtype_for(dtype: torch.dtype) -> torch.dtype:
    """Return the real subfield dtype of ``dtype`` (real dtypes pass through)."""
    if dtype in REAL_DTYPES:
        return dtype
    try:
        return _REAL_OF[dtype]
    except KeyError:
        raise TypeError(f"dtype {dtype} is not a Scalar dtype") from None


def machine_eps(dtype: torch.dtype) -> float:
    """Machine epsilon of the real subfield of ``dtype``."""
    return float(torch.finfo(real_dtype_for(dtype)).eps)


def conj(x: Tensor) -> Tensor:
    """Elementwise complex conjugate.

    Identity for real tensors. For complex tensors the lazy conjugate bit
    is resolved so the result is an ordinary materialised tensor.
    """
    if not x.is_complex():
        return x
    return x.conj().resolve_conj()


# ---------------------------------------------------------------------------
# Configuration switches consumed by higher layers
# ---------------------------------------------------------------------------


class ThreadingType(enum.Enum):
    """Whether kernel evaluation elsewhere should use multithreading."""

    PARALLEL = "parallel"
    SERIAL = "serial"


class EvalMode(enum.Enum):
    """Evaluation mode for kernels."""

    # Only evaluate Green's function values.
    VALUE = "value"
    # Evaluate values and derivatives.
    VALUE_GRAD = "value_grad"


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


class SolverError(RuntimeError):
    """Raised when an error ``Result`` is unwrapped."""


T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or a static descriptive error message.

    Reserved for higher layers; nothing in this package produces an error
    result. Build with :meth:`ok` / :meth:`err` rather than the constructor.
    """

    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value, error=None)

    @classmethod
    def err(cls, message: str) -> "Result[Any]":
        if not isinstance(message, str) or not message:
            raise ValueError("error message must be a non-empty string")
        return cls(value=None, error=message)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise SolverError(self.error)
        return self.value  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        if self.error is not None:
            return default
        return self.value  # type: ignore[return-value]
