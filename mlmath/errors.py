"""
Exceptions raised by mlmath.

Every error is a local precondition violation: it is raised immediately to the
caller and nothing in the package retries or recovers from it.
"""

from __future__ import annotations


class MlMathError(Exception):
    """Base class for all mlmath errors."""


class ShapeMismatchError(MlMathError, ValueError):
    """
    Tensor shapes disagree with what an operation requires.

    Raised e.g. when ``unfold`` receives a vector whose length differs from the
    total size of the requested matrix shapes.
    """


class ModelNotTrainedError(MlMathError, RuntimeError):
    """Classification was requested before any successful training."""


class InputCardinalityError(MlMathError, ValueError):
    """The number of labels does not match the number of documents."""


class InvalidLabelError(MlMathError, ValueError):
    """A label is negative or outside the configured class range."""
