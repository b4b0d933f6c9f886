"""
GPU-accelerated dense matrix multiplication.

``multiply`` computes ``a @ b`` in double precision. On a CUDA device PyTorch
dispatches the product to cuBLAS (DGEMM); without one the same call runs on
the CPU BLAS, so callers never need a separate code path.

The result is always copied back to host memory.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, NamedTuple, Optional

import torch
from torch import Tensor

from .errors import ShapeMismatchError
from .utils import as_matrix, get_device

logger = logging.getLogger(__name__)


class CudaDeviceInfo(NamedTuple):
    """
    Description of a CUDA device.

    Attributes
    ----------
    index : int
        Device ordinal.
    name : str
        Marketing name reported by the driver.
    total_memory : int
        Total global memory in bytes.
    capability : tuple of int
        Compute capability ``(major, minor)``.
    """
    index: int
    name: str
    total_memory: int
    capability: tuple[int, int]


def cuda_available() -> bool:
    """Return True if a CUDA device is usable for cuBLAS kernels."""
    return torch.cuda.is_available()


@functools.lru_cache(maxsize=None)
def device_info(index: int = 0) -> Optional[CudaDeviceInfo]:
    """
    Query (and log once) the properties of a CUDA device.

    Parameters
    ----------
    index : int, optional
        Device ordinal. Default is 0.

    Returns
    -------
    CudaDeviceInfo or None
        None when CUDA is not available.
    """
    if not cuda_available():
        logger.info("CUDA is not available, matrix products run on the CPU.")
        return None

    props = torch.cuda.get_device_properties(index)
    info = CudaDeviceInfo(
        index=index,
        name=props.name,
        total_memory=props.total_memory,
        capability=(props.major, props.minor),
    )
    logger.info("Using device %s with total RAM of %d bytes!", info.name, info.total_memory)
    return info


def default_device() -> torch.device:
    """
    Device used by :func:`multiply` when none is given.

    MPS is never selected because it lacks float64 support.
    """
    return get_device()


def multiply(a: Any, b: Any, *, device: Optional[torch.device] = None) -> Tensor:
    """
    Multiply two dense matrices in double precision.

    Parameters
    ----------
    a : Tensor or array-like
        Left operand of shape (M, K).
    b : Tensor or array-like
        Right operand of shape (K, N).
    device : torch.device, optional
        Where to run the product. Defaults to :func:`default_device`.

    Returns
    -------
    Tensor
        Float64 product of shape (M, N), on the CPU.

    Raises
    ------
    ShapeMismatchError
        If an operand is not 2-D or the inner dimensions disagree.
    """
    a = as_matrix(a, name="a")
    b = as_matrix(b, name="b")
    if a.shape[1] != b.shape[0]:
        raise ShapeMismatchError(
            f"cannot multiply {tuple(a.shape)} by {tuple(b.shape)}: inner dimensions differ."
        )

    device = torch.device(device) if device is not None else default_device()
    if device.type == "cuda":
        device_info(device.index or 0)

    # Sparse operands are densified; the product is a dense GEMM.
    a_dev = (a.to_dense() if a.is_sparse else a).to(device)
    b_dev = (b.to_dense() if b.is_sparse else b).to(device)
    result = torch.matmul(a_dev, b_dev)

    if device.type == "cuda":
        torch.cuda.synchronize(device)
    return result.cpu()
