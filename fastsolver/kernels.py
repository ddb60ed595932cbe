"""Kernel descriptors.

A descriptor names a Green's function and carries its parameters; it does
not evaluate anything. The set is closed:

- :class:`Laplace`            g(x, y) = 1 / (4 pi |x - y|)
- :class:`Helmholtz`          g(x, y) = exp(1j * k * |x - y|) / (4 pi |x - y|)
- :class:`ModifiedHelmholtz`  g(x, y) = exp(-omega * |x - y|) / (4 pi |x - y|)

Parameters are always stored at double precision (Python ``complex`` /
``float``) regardless of the dtype used for the particle data.

Consumers should branch with :func:`dispatch_kernel`, which requires a
handler for every variant, so a new variant shows up at every call site.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar, Union

__all__ = [
    "Laplace",
    "Helmholtz",
    "ModifiedHelmholtz",
    "KernelType",
    "KERNEL_NAMES",
    "dispatch_kernel",
    "kernel_from_name",
]

R = TypeVar("R")


@dataclass(frozen=True)
class Laplace:
    """The Laplace kernel 1 / (4 pi r)."""

    @property
    def name(self) -> str:
        return "laplace"

    @property
    def is_complex(self) -> bool:
        return False


@dataclass(frozen=True)
class Helmholtz:
    """The Helmholtz kernel exp(1j k r) / (4 pi r) with complex wavenumber k."""

    wavenumber: complex

    def __post_init__(self) -> None:
        object.__setattr__(self, "wavenumber", complex(self.wavenumber))

    @property
    def name(self) -> str:
        return "helmholtz"

    @property
    def is_complex(self) -> bool:
        return True


@dataclass(frozen=True)
class ModifiedHelmholtz:
    """The modified Helmholtz kernel exp(-omega r) / (4 pi r)."""

    omega: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "omega", float(self.omega))

    @property
    def name(self) -> str:
        return "modified_helmholtz"

    @property
    def is_complex(self) -> bool:
        return False


KernelType = Union[Laplace, Helmholtz, ModifiedHelmholtz]

KERNEL_NAMES = ("laplace", "helmholtz", "modified_helmholtz")


def dispatch_kernel(
    kernel: KernelType,
    *,
    laplace: Callable[[Laplace], R],
    helmholtz: Callable[[Helmholtz], R],
    modified_helmholtz: Callable[[ModifiedHelmholtz], R],
) -> R:
    """Call the handler matching the variant of ``kernel`` and return its result."""
    if isinstance(kernel, Laplace):
        return laplace(kernel)
    if isinstance(kernel, Helmholtz):
        return helmholtz(kernel)
    if isinstance(kernel, ModifiedHelmholtz):
        return modified_helmholtz(kernel)
    raise TypeError(f"expected a kernel descriptor, got {type(kernel).__name__}")


def kernel_from_name(
    name: str,
    parameter: Optional[Union[complex, float]] = None,
) -> KernelType:
    """Build a descriptor from its string id.

    ``parameter`` is the wavenumber for ``"helmholtz"`` and omega for
    ``"modified_helmholtz"``; it is ignored for ``"laplace"``.
    """
    key = str(name).strip().lower()
    if key == "laplace":
        return Laplace()
    if key == "helmholtz":
        if parameter is None:
            raise ValueError("helmholtz kernel requires a wavenumber parameter")
        return Helmholtz(parameter)
    if key == "modified_helmholtz":
        if parameter is None:
            raise ValueError("modified_helmholtz kernel requires an omega parameter")
        if isinstance(parameter, complex):
            raise ValueError("modified_helmholtz omega must be real")
        return ModifiedHelmholtz(parameter)
    raise ValueError(f"unknown kernel {name!r}; expected one of {KERNEL_NAMES}")
