from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Optional, Union

import torch

from fastsolver.kernels import KERNEL_NAMES, KernelType, kernel_from_name
from fastsolver.types import (
    EvalMode,
    ThreadingType,
    complex_dtype_for,
    is_scalar,
    real_dtype_for,
)
from fastsolver.utils.device import resolve_device

# -------------------------
# Solver configuration
# -------------------------

PrecisionKind = Literal["single", "double"]

_THREADING_ENV = "FASTSOLVER_THREADING"


def _default_threading() -> ThreadingType:
    """Threading switch from FASTSOLVER_THREADING ("parallel" / "serial")."""
    raw = os.environ.get(_THREADING_ENV, "").strip().lower()
    if raw == "serial":
        return ThreadingType.SERIAL
    return ThreadingType.PARALLEL


@dataclass
class SolverConfig:
    """Configuration consumed by solvers built on this layer.

    Parameters
    ----------
    kernel:
        String id of the kernel: "laplace", "helmholtz" or
        "modified_helmholtz".
    kernel_parameter:
        Wavenumber (complex) for "helmholtz", omega (real) for
        "modified_helmholtz". Ignored for "laplace".
    precision:
        "single" -> float32 / complex64, "double" -> float64 / complex128.
    use_complex:
        Whether operator tables are complex. Forced on for "helmholtz"
        since its kernel values are complex.
    dtype:
        Torch dtype of operator tables. Derived from ``precision`` and
        ``use_complex`` in ``__post_init__`` if not given.
    threading:
        Threading switch for kernel evaluation engines. Defaults to the
        FASTSOLVER_THREADING environment variable, else parallel.
    eval_mode:
        Whether kernel evaluation returns values only or values and
        gradients.
    device:
        Device string for freshly created tables; "auto" prefers CUDA.
    """

    kernel: str = "laplace"
    kernel_parameter: Optional[Union[complex, float]] = None
    precision: PrecisionKind = "double"
    use_complex: bool = False
    dtype: Optional[torch.dtype] = None
    threading: ThreadingType = field(default_factory=_default_threading)
    eval_mode: EvalMode = EvalMode.VALUE
    device: Optional[Union[str, torch.device]] = None

    def __post_init__(self) -> None:
        """Fill in derived fields and run basic validation."""
        self.kernel = str(self.kernel).strip().lower()
        if self.kernel == "helmholtz":
            self.use_complex = True

        if self.dtype is None and self.precision in ("single", "double"):
            real = torch.float64 if self.precision == "double" else torch.float32
            self.dtype = complex_dtype_for(real) if self.use_complex else real

        self.validate()

    def validate(self) -> None:
        """Cheap validation of basic parameters."""
        if self.precision not in ("single", "double"):
            raise ValueError(f"precision must be 'single' or 'double', got {self.precision!r}")

        if self.kernel not in KERNEL_NAMES:
            raise ValueError(f"unknown kernel {self.kernel!r}; expected one of {KERNEL_NAMES}")

        if self.kernel != "laplace" and self.kernel_parameter is None:
            raise ValueError(f"kernel {self.kernel!r} requires kernel_parameter")

        if self.dtype is None or not is_scalar(self.dtype):
            raise ValueError(
                "dtype must be one of float32, float64, complex64, complex128; "
                f"got {self.dtype!r}"
            )

        if self.use_complex and not self.dtype.is_complex:
            raise ValueError(f"use_complex=True requires a complex dtype, got {self.dtype}")

        if not isinstance(self.threading, ThreadingType):
            raise ValueError(f"threading must be a ThreadingType, got {self.threading!r}")

        if not isinstance(self.eval_mode, EvalMode):
            raise ValueError(f"eval_mode must be an EvalMode, got {self.eval_mode!r}")

        try:
            self.kernel_type()
        except TypeError as exc:
            raise ValueError(f"invalid kernel_parameter {self.kernel_parameter!r}") from exc

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def kernel_type(self) -> KernelType:
        """Return the kernel descriptor named by this config."""
        return kernel_from_name(self.kernel, self.kernel_parameter)

    @property
    def real_dtype(self) -> torch.dtype:
        """Dtype for particle coordinates (the real subfield of ``dtype``)."""
        if self.dtype is None:
            raise ValueError("dtype is not set")
        return real_dtype_for(self.dtype)

    @property
    def torch_device(self) -> torch.device:
        return resolve_device(self.device)


__all__ = [
    "PrecisionKind",
    "SolverConfig",
]
