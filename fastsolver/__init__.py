"""Basic data structures and types for kernel-based fast solvers.

This package is the foundation layer used by higher-level FMM / BEM code:

- Scalar domain (real vs complex torch dtypes).
- Kernel descriptors (Laplace, Helmholtz, modified Helmholtz).
- Owning and borrowing source/target particle containers.
- The linear operator interface (matvec / matmat / conjugate-adjoint
  products) with column-by-column defaults and a dense instantiation.
"""

from __future__ import annotations

from .types import (
    COMPLEX_DTYPES,
    REAL_DTYPES,
    SCALAR_DTYPES,
    EvalMode,
    RealType,
    Result,
    Scalar,
    SolverError,
    ThreadingType,
    conj,
    is_real_type,
    is_scalar,
)
from .kernels import (
    Helmholtz,
    KernelType,
    Laplace,
    ModifiedHelmholtz,
    dispatch_kernel,
    kernel_from_name,
)
from .particles import (
    ParticleContainer,
    ParticleContainerAccessor,
    ParticleContainerView,
    make_particle_container,
    make_particle_container_owned,
)
from .operators import (
    AdjointOperator,
    CallableOperator,
    ConjMatMat,
    ConjMatVec,
    DenseOperator,
    LinearOperator,
    MatMat,
    MatVec,
    as_operator,
    batched,
    columnwise_conj_matmat,
    columnwise_matmat,
    conj_matmat,
    conj_matvec,
    matmat,
    matvec,
)
from .config import SolverConfig

__version__ = "0.1.0"

__all__ = [
    "COMPLEX_DTYPES",
    "REAL_DTYPES",
    "SCALAR_DTYPES",
    "EvalMode",
    "RealType",
    "Result",
    "Scalar",
    "SolverError",
    "ThreadingType",
    "conj",
    "is_real_type",
    "is_scalar",
    "Helmholtz",
    "KernelType",
    "Laplace",
    "ModifiedHelmholtz",
    "dispatch_kernel",
    "kernel_from_name",
    "ParticleContainer",
    "ParticleContainerAccessor",
    "ParticleContainerView",
    "make_particle_container",
    "make_particle_container_owned",
    "AdjointOperator",
    "CallableOperator",
    "ConjMatMat",
    "ConjMatVec",
    "DenseOperator",
    "LinearOperator",
    "MatMat",
    "MatVec",
    "as_operator",
    "batched",
    "columnwise_conj_matmat",
    "columnwise_matmat",
    "conj_matmat",
    "conj_matvec",
    "matmat",
    "matvec",
    "SolverConfig",
]
