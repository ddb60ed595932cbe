"""Device helpers.

Operators keep whatever device their data lives on; these helpers only
decide where freshly created tables should go.
"""

from __future__ import annotations

from typing import Optional, Union

import torch

__all__ = ["get_default_device", "resolve_device"]


def get_default_device() -> torch.device:
    """Return the preferred device, prioritizing CUDA when available."""
    if torch.cuda.is_available():
        return torch.device("cuda")
    return torch.device("cpu")


def resolve_device(device: Optional[Union[str, torch.device]] = None) -> torch.device:
    """Normalize a device argument; ``None`` means CPU, ``"auto"`` means :func:`get_default_device`."""
    if device is None:
        return torch.device("cpu")
    if isinstance(device, str) and device.strip().lower() == "auto":
        return get_default_device()
    return torch.device(device)
