"""Source / target particle containers.

Two concrete containers share one read-only accessor interface
(:class:`ParticleContainerAccessor`):

- :class:`ParticleContainer` owns its tables. Construction clones the
  caller's data, so mutating the caller's tensors afterwards has no effect.
- :class:`ParticleContainerView` borrows the caller's tables without
  copying. It is only valid while the caller keeps that storage alive and
  does not mutate it; this is a usage contract, nothing checks it.

Tables have shape (n_points, dim). Source and target counts are
independent, zero points are fine, and the dimension is whatever the data
says: consistency between tables is left to the algorithms that consume
the geometry.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Tuple, runtime_checkable

import numpy as np
import torch
from torch import Tensor

from fastsolver.logging_utils import log_operator_event
from fastsolver.types import ensure_real_type

__all__ = [
    "ParticleContainerAccessor",
    "ParticleContainer",
    "ParticleContainerView",
    "make_particle_container_owned",
    "make_particle_container",
]


@runtime_checkable
class ParticleContainerAccessor(Protocol):
    """Anything that provides a table of sources and a table of targets."""

    def sources(self) -> Tensor:
        """Return a non-owning representation of the sources."""
        ...

    def targets(self) -> Tensor:
        """Return a non-owning representation of the targets."""
        ...


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _as_table(x: Any, name: str) -> Tensor:
    """Convert a tensor / ndarray to a 2-D real tensor.

    Zero-copy, except for ndarrays with a negative stride (e.g. ``arr[::-1]``):
    torch cannot view those, so they are copied into contiguous storage.
    """
    if isinstance(x, Tensor):
        t = x
    elif isinstance(x, np.ndarray):
        if any(s < 0 for s in x.strides):
            x = np.ascontiguousarray(x)
        t = torch.from_numpy(x)
    else:
        raise TypeError(f"{name} must be a torch.Tensor or numpy.ndarray, got {type(x).__name__}")
    if t.ndim != 2:
        raise ValueError(f"{name} must have shape (n_points, dim), got {tuple(t.shape)}")
    ensure_real_type(t, name)
    return t


def _check_pair(sources: Tensor, targets: Tensor) -> None:
    if sources.dtype != targets.dtype:
        raise TypeError(
            f"sources and targets must share a dtype, got {sources.dtype} and {targets.dtype}"
        )


class _ContainerBase:
    """Shape / dtype properties shared by both container kinds."""

    _sources: Tensor
    _targets: Tensor

    @property
    def dtype(self) -> torch.dtype:
        return self._sources.dtype

    @property
    def device(self) -> torch.device:
        return self._sources.device

    @property
    def n_sources(self) -> int:
        return int(self._sources.shape[0])

    @property
    def n_targets(self) -> int:
        return int(self._targets.shape[0])

    @property
    def dim(self) -> int:
        """Spatial dimension as stored in the sources table."""
        return int(self._sources.shape[1])

    @property
    def shapes(self) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        return tuple(self._sources.shape), tuple(self._targets.shape)

    def __repr__(self) -> str:
        src, tgt = self.shapes
        return f"{type(self).__name__}(sources={src}, targets={tgt}, dtype={self.dtype})"


# ---------------------------------------------------------------------------
# Owning container
# ---------------------------------------------------------------------------


class ParticleContainer(_ContainerBase):
    """Sources and targets owned by the container.

    The constructor clones its inputs and the accessors hand out copies, so
    the stored tables cannot be changed from outside once constructed.
    """

    def __init__(self, sources: Tensor, targets: Tensor) -> None:
        self._sources = sources.detach().clone()
        self._targets = targets.detach().clone()

    def sources(self) -> Tensor:
        """Return a copy of the sources."""
        return self._sources.clone()

    def targets(self) -> Tensor:
        """Return a copy of the targets."""
        return self._targets.clone()


def make_particle_container_owned(
    sources: Any,
    targets: Any,
    *,
    logger: Optional[Any] = None,
) -> ParticleContainer:
    """Create a container that owns private copies of ``sources`` and ``targets``."""
    src = _as_table(sources, "sources")
    tgt = _as_table(targets, "targets")
    _check_pair(src, tgt)
    container = ParticleContainer(src, tgt)
    log_operator_event(
        logger,
        "particle_container_created",
        owned=True,
        sources=tuple(src.shape),
        targets=tuple(tgt.shape),
        dtype=str(src.dtype),
    )
    return container


# ---------------------------------------------------------------------------
# Borrowing container
# ---------------------------------------------------------------------------


class ParticleContainerView(_ContainerBase):
    """Sources and targets borrowed from storage owned by the caller."""

    def __init__(self, sources: Tensor, targets: Tensor) -> None:
        self._sources = sources
        self._targets = targets

    def sources(self) -> Tensor:
        """Return a non-owning representation of the sources."""
        return self._sources

    def targets(self) -> Tensor:
        """Return a non-owning representation of the targets."""
        return self._targets


def make_particle_container(
    sources: Any,
    targets: Any,
    *,
    logger: Optional[Any] = None,
) -> ParticleContainerView:
    """Create a borrowing container over caller-owned ``sources`` and ``targets``.

    No data is copied. The caller must keep both tables alive and unmodified
    for as long as the view is in use.
    """
    src = _as_table(sources, "sources")
    tgt = _as_table(targets, "targets")
    _check_pair(src, tgt)
    log_operator_event(
        logger,
        "particle_container_created",
        owned=False,
        sources=tuple(src.shape),
        targets=tuple(tgt.shape),
        dtype=str(src.dtype),
    )
    return ParticleContainerView(src, tgt)
