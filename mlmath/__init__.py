"""
mlmath: numerical utilities for machine learning

- parameter folding: pack a list of matrices into one vector and back
- double-precision matrix multiply dispatched to cuBLAS when CUDA is present
- multinomial Naive Bayes text classification
"""

__version__ = "0.1.0"

from .bayes import (
    MultinomialNaiveBayesClassifier,
    NaiveBayesModel,
    classify,
    classify_all,
    discover_classes,
    probability_distribution,
    train,
)
from .cuda import CudaDeviceInfo, cuda_available, default_device, device_info, multiply
from .errors import (
    InputCardinalityError,
    InvalidLabelError,
    MlMathError,
    ModelNotTrainedError,
    ShapeMismatchError,
)
from .folding import fold, shapes_of, unfold

__all__ = [
    # Folding
    "fold",
    "unfold",
    "shapes_of",
    # GPU
    "CudaDeviceInfo",
    "cuda_available",
    "default_device",
    "device_info",
    "multiply",
    # Naive Bayes
    "MultinomialNaiveBayesClassifier",
    "NaiveBayesModel",
    "classify",
    "classify_all",
    "discover_classes",
    "probability_distribution",
    "train",
    # Errors
    "MlMathError",
    "ShapeMismatchError",
    "ModelNotTrainedError",
    "InputCardinalityError",
    "InvalidLabelError",
]
