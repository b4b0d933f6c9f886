import logging
import math

import numpy as np
import pytest
import torch

from mlmath.bayes import (
    MultinomialNaiveBayesClassifier,
    NaiveBayesModel,
    classify,
    classify_all,
    discover_classes,
    probability_distribution,
    train,
)
from mlmath.errors import (
    InputCardinalityError,
    InvalidLabelError,
    ModelNotTrainedError,
    ShapeMismatchError,
)


def _two_document_corpus():
    """3 tokens x 2 documents: doc0 = [2, 0, 1] (class 0), doc1 = [0, 3, 0] (class 1)"""
    X = torch.tensor(
        [
            [2.0, 0.0],
            [0.0, 3.0],
            [1.0, 0.0],
        ]
    )
    y = torch.tensor([0, 1])
    return X, y


def _random_corpus(seed: int = 0, T: int = 20, D: int = 30, K: int = 4):
    g = torch.Generator().manual_seed(seed)
    X = torch.randint(0, 4, (T, D), generator=g).to(torch.float64)
    y = torch.arange(D) % K
    return X, y


# =============================================================================
# Training
# =============================================================================

def test_train_scenario_classifies_token_owner():
    """Token 0 only occurs in class 0, so [1, 0, 0] is class 0"""
    X, y = _two_document_corpus()
    model = train(X, y)

    assert isinstance(model, NaiveBayesModel)
    assert model.num_classes == 2
    assert model.num_tokens == 3
    assert classify(model, [1.0, 0.0, 0.0]) == 0
    assert classify(model, [0.0, 1.0, 0.0]) == 1


def test_train_log_probabilities():
    """counts start at 1, denominator is tokens in class + T - 1"""
    X, y = _two_document_corpus()
    model = train(X, y)

    expected = torch.log(
        torch.tensor(
            [
                [3.0 / 5.0, 1.0 / 5.0, 2.0 / 5.0],
                [1.0 / 5.0, 4.0 / 5.0, 1.0 / 5.0],
            ],
            dtype=torch.float64,
        )
    )
    assert model.log_probabilities.dtype == torch.float64
    assert torch.allclose(model.log_probabilities, expected, atol=1e-12)


def test_legacy_document_indexing():
    """Document totals land in cell (class, document index)"""
    X, y = _two_document_corpus()
    model = train(X, y, legacy_document_indexing=True)

    expected = torch.log(
        torch.tensor(
            [
                [3.0 / 5.0, 1.0 / 5.0, 1.0 / 5.0],
                [1.0 / 5.0, 3.0 / 5.0, 1.0 / 5.0],
            ],
            dtype=torch.float64,
        )
    )
    assert torch.allclose(model.log_probabilities, expected, atol=1e-12)
    assert classify(model, [1.0, 0.0, 0.0]) == 0


def test_legacy_document_indexing_needs_enough_tokens():
    X = torch.ones(2, 3)
    with pytest.raises(ShapeMismatchError):
        train(X, [0, 1, 0], legacy_document_indexing=True)


def test_class_prior_does_not_sum_to_one():
    """Add-one prior sums to (D + K) / D"""
    X, y = _random_corpus()
    model = train(X, y)
    D, K = X.shape[1], model.num_classes

    assert model.class_prior.sum().item() == pytest.approx((D + K) / D)
    assert model.class_prior.sum().item() != pytest.approx(1.0)


def test_unpopulated_documents_are_skipped():
    X = torch.tensor(
        [
            [2.0, 0.0, 0.0],
            [0.0, 3.0, 0.0],
            [1.0, 0.0, 0.0],
        ]
    )
    model = train(X, [0, 1, 1])

    # Two populated documents, one per class
    assert model.class_prior.tolist() == [1.0, 1.0]
    reference = train(X[:, :2], [0, 1])
    assert torch.equal(model.log_probabilities, reference.log_probabilities)


def test_sparse_matrix_matches_dense():
    X, y = _random_corpus(seed=3)
    dense = train(X, y)
    sparse = train(X.to_sparse(), y)

    assert torch.allclose(dense.log_probabilities, sparse.log_probabilities, atol=1e-12)
    assert torch.equal(dense.class_prior, sparse.class_prior)


def test_training_is_deterministic():
    X, y = _random_corpus(seed=1)
    first = train(X, y)
    second = train(X.clone(), y.clone())

    assert torch.equal(first.log_probabilities, second.log_probabilities)
    assert torch.equal(first.class_prior, second.class_prior)


def test_train_accepts_numpy():
    X, y = _two_document_corpus()
    model = train(X.numpy(), np.array([0, 1]))
    assert classify(model, np.array([1, 0, 0])) == 0


def test_explicit_num_classes_adds_rows():
    X, y = _two_document_corpus()
    model = train(X, y, num_classes=3)

    assert model.num_classes == 3
    # Unseen class: only pseudo-counts, prior (0 + 1) / 2
    assert model.class_prior[2].item() == pytest.approx(0.5)
    assert torch.allclose(
        model.log_probabilities[2],
        torch.full((3,), math.log(1.0 / 2.0), dtype=torch.float64),
    )


def test_one_token_vocabulary_with_unseen_class():
    """Class 1 has no documents and T = 1, so n_c + T - 1 is zero"""
    model = train(torch.tensor([[1.0, 2.0]]), [0, 2])

    assert model.num_classes == 3
    assert model.log_probabilities[1].tolist() == [0.0]
    assert bool(torch.isfinite(model.log_probabilities).all())

    dist = probability_distribution(model, [1.0])
    assert not torch.isnan(dist).any()
    assert abs(dist.sum().item() - 1.0) < 1e-9

    explicit = train(torch.tensor([[4.0]]), [0], num_classes=2)
    dist = probability_distribution(explicit, [3.0])
    assert abs(dist.sum().item() - 1.0) < 1e-9


# =============================================================================
# Validation
# =============================================================================

def test_label_count_mismatch():
    X, _ = _two_document_corpus()
    with pytest.raises(InputCardinalityError):
        train(X, [0, 1, 1])


def test_negative_label():
    X, _ = _two_document_corpus()
    with pytest.raises(InvalidLabelError):
        train(X, [0, -1])
    with pytest.raises(InvalidLabelError):
        train(X, [0, -1], num_classes=2)


def test_label_out_of_configured_range():
    X, _ = _two_document_corpus()
    with pytest.raises(InvalidLabelError):
        train(X, [0, 2], num_classes=2)
    with pytest.raises(ValueError):
        train(X, [0, 1], num_classes=0)


def test_non_integral_labels():
    X, _ = _two_document_corpus()
    with pytest.raises(InvalidLabelError):
        train(X, [0.0, 1.5])


def test_no_populated_documents():
    with pytest.raises(InputCardinalityError):
        train(torch.zeros(3, 2), [0, 1])


def test_discover_classes(caplog):
    assert discover_classes([0, 1, 1, 0]) == 2

    with caplog.at_level(logging.WARNING, logger="mlmath.bayes"):
        assert discover_classes(torch.tensor([0, 3])) == 4
    assert "never occur" in caplog.text

    with pytest.raises(InputCardinalityError):
        discover_classes([])
    with pytest.raises(InvalidLabelError):
        discover_classes([0, -2])


# =============================================================================
# Inference
# =============================================================================

def test_distribution_sums_to_one():
    X, y = _random_corpus(seed=2)
    model = train(X, y)
    g = torch.Generator().manual_seed(5)

    for _ in range(10):
        doc = torch.randint(0, 6, (X.shape[0],), generator=g).to(torch.float64)
        dist = probability_distribution(model, doc)
        assert dist.shape == (model.num_classes,)
        assert abs(dist.sum().item() - 1.0) < 1e-9
        assert bool((dist >= 0).all())


def test_zero_document_returns_normalized_prior():
    X, y = _random_corpus(seed=4, K=3)
    model = train(X, y)

    dist = probability_distribution(model, torch.zeros(X.shape[0]))

    assert abs(dist.sum().item() - 1.0) < 1e-9
    assert torch.allclose(dist, model.class_prior / model.class_prior.sum())


def test_sparse_document():
    X, y = _two_document_corpus()
    model = train(X, y)
    doc = torch.tensor([1.0, 0.0, 2.0])

    dense = probability_distribution(model, doc)
    sparse = probability_distribution(model, doc.to_sparse())

    assert torch.allclose(dense, sparse)
    assert not sparse.is_sparse


def test_distribution_handles_long_documents():
    """Huge counts underflow without the max shift"""
    X, y = _two_document_corpus()
    model = train(X, y)

    dist = probability_distribution(model, [5000.0, 0.0, 0.0])

    assert not torch.isnan(dist).any()
    assert dist[0].item() == pytest.approx(1.0)


def test_tie_resolves_to_lowest_class():
    X = torch.eye(2)
    for labels in ([0, 1], [1, 0]):
        model = train(X, labels)
        assert classify(model, [1.0, 1.0]) == 0
        assert classify(model, [0.0, 0.0]) == 0


def test_document_length_mismatch():
    X, y = _two_document_corpus()
    model = train(X, y)
    with pytest.raises(ShapeMismatchError):
        classify(model, [1.0, 0.0])


def test_untrained_model():
    with pytest.raises(ModelNotTrainedError):
        classify(None, [1.0, 0.0, 0.0])
    with pytest.raises(ModelNotTrainedError):
        probability_distribution(None, [1.0, 0.0, 0.0])


def test_classify_all():
    X, y = _two_document_corpus()
    model = train(X, y)

    assert classify_all(model, X).tolist() == [0, 1]
    assert classify_all(model, X.to_sparse()).tolist() == [0, 1]


def test_classify_all_matches_classify():
    X, y = _random_corpus(seed=6, K=3)
    model = train(X, y)
    g = torch.Generator().manual_seed(7)
    docs = torch.randint(0, 5, (X.shape[0], 12), generator=g).to(torch.float64)
    docs[:, 0] = 0.0

    expected = [classify(model, docs[:, j]) for j in range(docs.shape[1])]

    assert classify_all(model, docs).tolist() == expected
    assert classify_all(model, docs.to_sparse()).tolist() == expected


def test_classify_all_ties_and_edges():
    model = train(torch.eye(2), [0, 1])

    assert classify_all(model, torch.tensor([[1.0, 0.0], [1.0, 0.0]])).tolist() == [0, 0]
    assert classify_all(model, torch.zeros(2, 0)).shape == (0,)
    with pytest.raises(ShapeMismatchError):
        classify_all(model, torch.zeros(3, 2))
    with pytest.raises(ModelNotTrainedError):
        classify_all(None, torch.zeros(2, 2))


def test_model_shortcuts():
    X, y = _two_document_corpus()
    model = train(X, y)
    doc = [0.0, 2.0, 0.0]

    assert model.classify(doc) == classify(model, doc)
    assert torch.equal(model.probability_distribution(doc), probability_distribution(model, doc))


# =============================================================================
# Stateful classifier
# =============================================================================

def test_classifier_lifecycle():
    clf = MultinomialNaiveBayesClassifier()
    assert not clf.is_trained
    with pytest.raises(ModelNotTrainedError):
        clf.classify([1.0, 0.0, 0.0])
    with pytest.raises(ModelNotTrainedError):
        clf.model

    X, y = _two_document_corpus()
    model = clf.train(X, y)

    assert clf.is_trained
    assert clf.model is model
    assert clf.classify([1.0, 0.0, 0.0]) == 0
    assert clf.probability_distribution([1.0, 0.0, 0.0]).shape == (2,)
    assert clf.score(X, y) == 1.0


def test_retraining_replaces_model():
    clf = MultinomialNaiveBayesClassifier()
    X, y = _two_document_corpus()
    first = clf.train(X, y)
    second = clf.train(X, 1 - y)

    assert clf.model is second
    assert clf.classify([1.0, 0.0, 0.0]) == 1
    # the returned model values are independent of the classifier
    assert classify(first, [1.0, 0.0, 0.0]) == 0


def test_failed_training_keeps_previous_model():
    clf = MultinomialNaiveBayesClassifier()
    X, y = _two_document_corpus()
    model = clf.train(X, y)

    with pytest.raises(InputCardinalityError):
        clf.train(X, [0])
    assert clf.model is model


def test_classifier_configuration():
    with pytest.raises(ValueError):
        MultinomialNaiveBayesClassifier(num_classes=0)

    clf = MultinomialNaiveBayesClassifier(num_classes=3, legacy_document_indexing=True)
    X, y = _two_document_corpus()
    model = clf.train(X, y)
    assert model.num_classes == 3


def test_score_label_mismatch():
    clf = MultinomialNaiveBayesClassifier()
    X, y = _two_document_corpus()
    clf.train(X, y)
    with pytest.raises(InputCardinalityError):
        clf.score(X, [0])


if __name__ == "__main__":
    test_train_scenario_classifies_token_owner()
    test_train_log_probabilities()
    test_legacy_document_indexing()
    test_class_prior_does_not_sum_to_one()
    test_unpopulated_documents_are_skipped()
    test_training_is_deterministic()
    test_distribution_sums_to_one()
    test_tie_resolves_to_lowest_class()
    test_classifier_lifecycle()
    print("Tests passed!")
