"""
Multinomial Naive Bayes text classification.

This module trains a per-class, per-token log-probability table and a class
prior vector from a document-term count matrix, and classifies new documents
by log-likelihood scoring.

---------------------------------------------------------------------
Inputs
---------------------------------------------------------------------
- document-term matrix X of shape (T, D): T tokens, D documents. **Documents
  are columns.** X may be a sparse COO tensor; a document is *populated* when
  its column holds at least one (stored or non-zero) entry. Unpopulated
  columns do not take part in training.
- labels y ∈ {0, …, K−1}^D, one class id per document column.

---------------------------------------------------------------------
Training
---------------------------------------------------------------------
Every cell of the count matrix starts at 1 (Laplace pseudo-count). For each
populated document d with class c = y_d the token counts of d are added to
row c, and

    n_c = total number of tokens seen in class c
    N_c = number of documents of class c

The log-probability table is

    log P(t | c) = log( count(c, t) / (n_c + T − 1) )

and the add-one smoothed class prior is

    π_c = (N_c + 1) / D_populated

Note that π does **not** sum to one: Σ_c π_c = (D + K) / D. The prior is only
ever used up to a normalizing constant, so this is harmless.

---------------------------------------------------------------------
Inference
---------------------------------------------------------------------
For a document x the class score is the log-likelihood

    s_c = Σ_{t : x_t ≠ 0} x_t · log P(t | c)

which is turned into a distribution with the log-sum-exp trick:

    p_c ∝ exp(s_c − max_k s_k) · π_c,      Σ_c p_c = 1

---------------------------------------------------------------------
Design
---------------------------------------------------------------------
``train`` is a pure function returning an immutable :class:`NaiveBayesModel`;
``classify`` and ``probability_distribution`` take that model explicitly.
:class:`MultinomialNaiveBayesClassifier` wraps the functions for callers who
prefer a stateful ``train``/``classify`` object. The wrapper is **not
thread-safe**: concurrent ``train`` and ``classify`` calls on one instance
are undefined.
"""

from __future__ import annotations

import logging
from typing import Any, NamedTuple, Optional

import numpy as np
import torch
from torch import Tensor

from .errors import (
    InputCardinalityError,
    InvalidLabelError,
    ModelNotTrainedError,
    ShapeMismatchError,
)
from .utils import as_matrix, as_vector, nonzero_entries

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class NaiveBayesModel(NamedTuple):
    """
    Trained multinomial Naive Bayes model.

    Attributes
    ----------
    log_probabilities : Tensor
        Float64 matrix of shape (K, T); entry (c, t) is the smoothed
        log-probability of token t under class c.
    class_prior : Tensor
        Float64 vector of shape (K,) with the add-one smoothed class priors.
    """
    log_probabilities: Tensor
    class_prior: Tensor

    @property
    def num_classes(self) -> int:
        return self.log_probabilities.shape[0]

    @property
    def num_tokens(self) -> int:
        return self.log_probabilities.shape[1]

    def classify(self, document: Any) -> int:
        """Shortcut for :func:`classify` with this model."""
        return classify(self, document)

    def probability_distribution(self, document: Any) -> Tensor:
        """Shortcut for :func:`probability_distribution` with this model."""
        return probability_distribution(self, document)


# =============================================================================
# Helper functions
# =============================================================================

def _as_labels(labels: Any) -> Tensor:
    y = labels if isinstance(labels, Tensor) else torch.as_tensor(np.asarray(labels))
    if y.ndim != 1:
        raise ShapeMismatchError(f"labels must be 1-D, got shape {tuple(y.shape)}.")
    if y.dtype.is_floating_point:
        if not torch.equal(y, torch.round(y)):
            raise InvalidLabelError("labels must be integral class ids.")
    elif y.dtype == torch.bool or y.dtype.is_complex:
        raise InvalidLabelError(f"labels must be integral class ids, got dtype {y.dtype}.")
    return y.to(torch.long)


def _check_non_negative(y: Tensor) -> None:
    if y.numel() and int(y.min()) < 0:
        bad = int(y[y < 0][0])
        raise InvalidLabelError(f"labels must be >= 0, found {bad}.")


def _document_entries(matrix: Tensor) -> tuple[Tensor, Tensor, Tensor]:
    """
    Return ``(token_indices, document_indices, counts)`` of a (T, D) matrix.

    Sparse matrices yield their stored entries, dense ones their non-zeros.
    """
    if matrix.is_sparse:
        indices = matrix.indices()
        return indices[0], indices[1], matrix.values()
    tokens, documents = matrix.nonzero(as_tuple=True)
    return tokens, documents, matrix[tokens, documents]


def _posterior(scores: Tensor, class_prior: Tensor) -> Tensor:
    """
    Turn log-likelihood scores of shape (..., K) into distributions over K.

    Log-sum-exp trick: shift by the max before exponentiating.
    """
    weighted = torch.exp(scores - scores.max(dim=-1, keepdim=True).values) * class_prior
    return weighted / weighted.sum(dim=-1, keepdim=True)


def _require_trained(model: Optional[NaiveBayesModel]) -> NaiveBayesModel:
    if model is None:
        raise ModelNotTrainedError("the classifier has not been trained. Call train() first.")
    return model


# =============================================================================
# Public API
# =============================================================================

def discover_classes(labels: Any) -> int:
    """
    Infer the number of classes from a label vector.

    Classes are assumed to be labeled densely as ``0, …, K−1``; ids that never
    occur still get a (wasted) row in the model, which is logged as a warning.

    Parameters
    ----------
    labels : Tensor or array-like
        Integer class ids.

    Returns
    -------
    int
        ``max(labels) + 1``.

    Raises
    ------
    InputCardinalityError
        If ``labels`` is empty.
    InvalidLabelError
        If a label is negative or not integral.
    """
    y = _as_labels(labels)
    if y.numel() == 0:
        raise InputCardinalityError("cannot discover classes from an empty label vector.")
    _check_non_negative(y)

    num_classes = int(y.max()) + 1
    unused = num_classes - torch.unique(y).numel()
    if unused:
        logger.warning(
            "%d of %d class ids never occur in the labels; their model rows stay unused.",
            unused,
            num_classes,
        )
    return num_classes


def train(
    document_term_matrix: Any,
    labels: Any,
    *,
    num_classes: Optional[int] = None,
    legacy_document_indexing: bool = False,
) -> NaiveBayesModel:
    """
    Train a multinomial Naive Bayes model.

    Parameters
    ----------
    document_term_matrix : Tensor or array-like
        Token counts of shape (T, D), one document per column. May be sparse.
    labels : Tensor or array-like
        Class id of each document column, shape (D,).
    num_classes : int, optional
        Number of classes K. Discovered with :func:`discover_classes` when
        omitted; when given, every label must be below it.
    legacy_document_indexing : bool, optional
        Reproduce the historical model layout, in which each document's total
        token count is written into cell ``(class, document_index)`` instead
        of spreading its counts over the token columns. Only meaningful when
        ``T >= D``. Default is False.

    Returns
    -------
    NaiveBayesModel
        Log-probability table (K, T) and class prior (K,).

    Raises
    ------
    InputCardinalityError
        If the label count differs from the document count, or no document
        is populated.
    InvalidLabelError
        If a label is negative, not integral, or ``>= num_classes``.
    ShapeMismatchError
        If the matrix is not 2-D, or legacy indexing is requested with fewer
        tokens than documents.
    ValueError
        If ``num_classes`` is not positive.
    """
    matrix = as_matrix(document_term_matrix, name="document_term_matrix")
    num_tokens, num_documents = matrix.shape
    y = _as_labels(labels)

    if y.shape[0] != num_documents:
        raise InputCardinalityError(
            f"got {y.shape[0]} labels for {num_documents} documents."
        )

    if num_classes is None:
        num_classes = discover_classes(y)
    else:
        if num_classes <= 0:
            raise ValueError(f"num_classes must be > 0, got {num_classes}.")
        _check_non_negative(y)
        if y.numel() and int(y.max()) >= num_classes:
            raise InvalidLabelError(
                f"label {int(y.max())} is out of range for {num_classes} classes."
            )

    tokens, documents, counts = _document_entries(matrix)
    populated = torch.unique(documents)
    if populated.numel() == 0:
        raise InputCardinalityError("the document-term matrix has no populated documents.")

    document_lengths = torch.zeros(num_documents, dtype=torch.float64)
    document_lengths.index_add_(0, documents, counts)
    classes = y[populated]

    token_per_class = torch.zeros(num_classes, dtype=torch.float64)
    token_per_class.index_add_(0, classes, document_lengths[populated])
    documents_per_class = torch.bincount(classes, minlength=num_classes).to(torch.float64)

    # Laplace pseudo-count for every (class, token) cell
    word_counts = torch.ones((num_classes, num_tokens), dtype=torch.float64)
    if legacy_document_indexing:
        if num_tokens < num_documents:
            raise ShapeMismatchError(
                f"legacy document indexing needs num_tokens >= num_documents, "
                f"got {num_tokens} tokens for {num_documents} documents."
            )
        word_counts[classes, populated] = document_lengths[populated]
    else:
        word_counts.index_put_((y[documents], tokens), counts, accumulate=True)

    denominator = token_per_class + num_tokens - 1
    # A class without tokens over a one-token vocabulary has nothing to smooth
    # against; its row falls back to the uniform log(1 / T).
    denominator = torch.where(denominator > 0, denominator, float(num_tokens)).unsqueeze(1)
    log_probabilities = torch.log(word_counts / denominator)
    class_prior = (documents_per_class + 1) / populated.numel()

    logger.debug(
        "Trained naive bayes on %d documents, %d classes, %d tokens.",
        populated.numel(),
        num_classes,
        num_tokens,
    )
    return NaiveBayesModel(log_probabilities=log_probabilities, class_prior=class_prior)


def probability_distribution(model: Optional[NaiveBayesModel], document: Any) -> Tensor:
    """
    Compute the posterior class distribution of a document.

    Parameters
    ----------
    model : NaiveBayesModel
        Trained model.
    document : Tensor or array-like
        Token counts of shape (T,). May be sparse.

    Returns
    -------
    Tensor
        Dense float64 vector of shape (K,) summing to one. For a document
        without tokens this is the normalized class prior.

    Raises
    ------
    ModelNotTrainedError
        If ``model`` is None.
    ShapeMismatchError
        If the document length differs from the model's token count.
    """
    model = _require_trained(model)
    x = as_vector(document, name="document")
    if x.shape[0] != model.num_tokens:
        raise ShapeMismatchError(
            f"document has {x.shape[0]} tokens but the model was trained on {model.num_tokens}."
        )

    indices, counts = nonzero_entries(x)
    # Log-likelihood per class, only over the tokens present in the document
    scores = model.log_probabilities[:, indices] @ counts
    return _posterior(scores, model.class_prior)


def classify(model: Optional[NaiveBayesModel], document: Any) -> int:
    """
    Return the most likely class of a document.

    Ties resolve to the lowest class index.
    """
    return int(torch.argmax(probability_distribution(model, document)))


def classify_all(model: Optional[NaiveBayesModel], document_term_matrix: Any) -> Tensor:
    """
    Classify every column of a (T, D) document-term matrix.

    All documents are scored in one sparse product over their stored
    entries, so the result matches :func:`classify` column by column.

    Returns
    -------
    Tensor
        Long tensor of shape (D,) with one class id per document.

    Raises
    ------
    ModelNotTrainedError
        If ``model`` is None.
    ShapeMismatchError
        If the matrix row count differs from the model's token count.
    """
    model = _require_trained(model)
    matrix = as_matrix(document_term_matrix, name="document_term_matrix")
    if matrix.shape[0] != model.num_tokens:
        raise ShapeMismatchError(
            f"documents have {matrix.shape[0]} tokens but the model was trained on {model.num_tokens}."
        )
    if not matrix.is_sparse:
        matrix = matrix.to_sparse()

    # (D, T) @ (T, K): zero counts never touch the log-probability table
    scores = torch.sparse.mm(matrix.t().coalesce(), model.log_probabilities.t())
    return torch.argmax(_posterior(scores, model.class_prior), dim=1)


# =============================================================================
# Stateful wrapper
# =============================================================================

class MultinomialNaiveBayesClassifier:
    """
    Stateful multinomial Naive Bayes classifier.

    Starts untrained; a successful :meth:`train` replaces any previous model
    wholesale (a failing one leaves it untouched). Not thread-safe.

    Parameters
    ----------
    num_classes : int, optional
        Fixed number of classes. Discovered from the labels when omitted.
    legacy_document_indexing : bool, optional
        See :func:`train`. Default is False.
    """

    def __init__(
        self,
        *,
        num_classes: Optional[int] = None,
        legacy_document_indexing: bool = False,
    ) -> None:
        if num_classes is not None and num_classes <= 0:
            raise ValueError(f"num_classes must be > 0, got {num_classes}.")

        self.num_classes = num_classes
        self.legacy_document_indexing = legacy_document_indexing
        self._model: Optional[NaiveBayesModel] = None

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> NaiveBayesModel:
        """The trained model; raises ModelNotTrainedError before training."""
        return _require_trained(self._model)

    def train(self, document_term_matrix: Any, labels: Any) -> NaiveBayesModel:
        self._model = train(
            document_term_matrix,
            labels,
            num_classes=self.num_classes,
            legacy_document_indexing=self.legacy_document_indexing,
        )
        return self._model

    def classify(self, document: Any) -> int:
        return classify(self._model, document)

    def probability_distribution(self, document: Any) -> Tensor:
        return probability_distribution(self._model, document)

    def score(self, document_term_matrix: Any, labels: Any) -> float:
        """
        Fraction of documents (columns) whose predicted class equals the label.

        Raises
        ------
        InputCardinalityError
            If the label count differs from the document count.
        """
        predicted = classify_all(self._model, document_term_matrix)
        y = _as_labels(labels)
        if y.shape[0] != predicted.shape[0]:
            raise InputCardinalityError(
                f"got {y.shape[0]} labels for {predicted.shape[0]} documents."
            )
        if predicted.numel() == 0:
            return 0.0
        return (predicted == y).double().mean().item()
