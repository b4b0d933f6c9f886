"""
Parameter folding.

Optimizers such as conjugate gradient or L-BFGS work on one flat parameter
vector, while models keep their weights as a list of matrices. This module
converts between the two representations.

---------------------------------------------------------------------
Layout
---------------------------------------------------------------------
Matrices are written one after the other in input order, each one
**column-major**: all rows of column 0 top-to-bottom, then column 1, ...

    fold([[1, 2],
          [3, 4]])  ->  [1, 3, 2, 4]

``unfold`` reads the vector back in exactly the same order, so

    unfold(fold(M), shapes_of(M)) == M

elementwise for any list of matrices M.
"""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple

import torch
from torch import Tensor

from .errors import ShapeMismatchError
from .utils import as_matrix, as_vector

Shape = Tuple[int, int]


def shapes_of(matrices: Sequence[Any]) -> List[Shape]:
    """
    Return the ``(rows, cols)`` of every matrix, in order.

    Parameters
    ----------
    matrices : Sequence
        2-D tensors or array-likes.

    Returns
    -------
    list of (int, int)
        Shape metadata suitable for :func:`unfold`.
    """
    return [tuple(as_matrix(m).shape) for m in matrices]  # type: ignore[misc]


def fold(matrices: Sequence[Any]) -> Tensor:
    """
    Fold matrices column-wise into a single vector.

    Parameters
    ----------
    matrices : Sequence
        2-D tensors or array-likes. Sparse inputs are densified.

    Returns
    -------
    Tensor
        Float64 vector of length ``sum(rows * cols)``. Empty if no matrices
        are given.

    Raises
    ------
    ShapeMismatchError
        If any input is not two-dimensional.
    """
    columns = []
    for i, m in enumerate(matrices):
        t = as_matrix(m, name=f"matrices[{i}]")
        if t.is_sparse:
            t = t.to_dense()
        # Row-major flatten of the transpose is the column-major flatten.
        columns.append(t.t().reshape(-1))

    if not columns:
        return torch.empty(0, dtype=torch.float64)
    return torch.cat(columns)


def _check_shape(shape: Any, i: int) -> Shape:
    try:
        dims = tuple(shape)
        rows, cols = (int(d) for d in dims)
        if (rows, cols) != dims:
            raise ValueError("non-integral dimension")
    except (TypeError, ValueError):
        raise ShapeMismatchError(
            f"shapes[{i}] must be a (rows, cols) pair, got {shape!r}."
        ) from None
    if rows < 0 or cols < 0:
        raise ShapeMismatchError(f"shapes[{i}] has negative dimensions: {shape!r}.")
    return rows, cols


def unfold(vector: Any, shapes: Sequence[Shape]) -> List[Tensor]:
    """
    Unfold a vector into matrices of the given shapes.

    Example: ``shapes = [(2, 3), (3, 2)]`` yields matrix 0 with 2 rows and
    3 columns followed by matrix 1 with 3 rows and 2 columns.

    Parameters
    ----------
    vector : Tensor or array-like
        Flat vector produced by :func:`fold` (or laid out the same way).
    shapes : Sequence of (int, int)
        Row and column count of each matrix, in order.

    Returns
    -------
    list of Tensor
        Freshly allocated float64 matrices; none of them aliases ``vector``.

    Raises
    ------
    ShapeMismatchError
        If ``vector`` is not 1-D, a shape is malformed, or
        ``len(vector) != sum(rows * cols)``.
    """
    v = as_vector(vector)
    if v.is_sparse:
        v = v.to_dense()
    checked = [_check_shape(s, i) for i, s in enumerate(shapes)]

    expected = sum(rows * cols for rows, cols in checked)
    if v.shape[0] != expected:
        raise ShapeMismatchError(
            f"vector has length {v.shape[0]} but shapes {checked} require {expected}."
        )

    matrices = []
    offset = 0
    for rows, cols in checked:
        size = rows * cols
        chunk = v[offset : offset + size]
        matrices.append(chunk.reshape(cols, rows).t().clone(memory_format=torch.contiguous_format))
        offset += size
    return matrices
