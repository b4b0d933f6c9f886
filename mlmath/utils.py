"""
utils
==============

Small, reusable utilities shared across mlmath modules and scripts.

This module is intentionally lightweight and focused on:
- logging configuration
- device selection (CUDA / CPU)
- coercion of array-likes into float64 tensors of a known rank

Every numerical routine in the package works in double precision, so inputs
coming from numpy, nested lists or lower-precision tensors are converted here
once, at the boundary.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import torch
from torch import Tensor

from .errors import ShapeMismatchError


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure basic logging for scripts.

    Parameters
    ----------
    level:
        Logging level (e.g., logging.INFO).
    """
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def get_device() -> torch.device:
    """
    Return the best available PyTorch device for float64 work.

    Apple's MPS backend has no float64 support and is never selected.

    Returns
    -------
    torch.device
        "cuda" if available, else "cpu".
    """
    if torch.cuda.is_available():
        return torch.device("cuda")
    return torch.device("cpu")


def _as_float64(x: Any) -> Tensor:
    if isinstance(x, Tensor):
        return x.to(torch.float64)
    return torch.as_tensor(np.asarray(x, dtype=np.float64))


def as_matrix(x: Any, name: str = "matrix") -> Tensor:
    """
    Convert ``x`` into a 2-D float64 tensor.

    Sparse COO tensors stay sparse (coalesced); everything else is dense.

    Raises
    ------
    ShapeMismatchError
        If ``x`` is not two-dimensional.
    """
    t = _as_float64(x)
    if t.ndim != 2:
        raise ShapeMismatchError(f"{name} must be 2-D, got shape {tuple(t.shape)}.")
    return t.coalesce() if t.is_sparse else t


def as_vector(x: Any, name: str = "vector") -> Tensor:
    """
    Convert ``x`` into a 1-D float64 tensor (dense or sparse COO).

    Raises
    ------
    ShapeMismatchError
        If ``x`` is not one-dimensional.
    """
    t = _as_float64(x)
    if t.ndim != 1:
        raise ShapeMismatchError(f"{name} must be 1-D, got shape {tuple(t.shape)}.")
    return t.coalesce() if t.is_sparse else t


def nonzero_entries(vector: Tensor) -> tuple[Tensor, Tensor]:
    """
    Return ``(indices, values)`` of the non-zero entries of a 1-D tensor.

    For sparse vectors the stored entries are returned as-is.
    """
    if vector.is_sparse:
        return vector.indices()[0], vector.values()
    (indices,) = vector.nonzero(as_tuple=True)
    return indices, vector[indices]
