"""Offline-оценка качества классификатора на отложенной выборке."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    confusion_matrix,
    precision_recall_fscore_support,
)
from sklearn.model_selection import KFold

from category_classifier import config
from category_classifier.model import NaiveBayesClassifier
from category_classifier.schemas import TrainingExample

logger = logging.getLogger(__name__)


@dataclass
class LabelMetrics:
    label: str
    precision: float
    recall: float
    f1: float
    support: int


@dataclass
class ConfusionMatrix:
    labels: list[str]
    matrix: list[list[int]]

    def count(self, actual: str, predicted: str) -> int:
        if actual not in self.labels or predicted not in self.labels:
            return 0
        return self.matrix[self.labels.index(actual)][self.labels.index(predicted)]

    def as_mapping(self) -> dict[tuple[str, str], int]:
        return {
            (actual, predicted): self.matrix[i][j]
            for i, actual in enumerate(self.labels)
            for j, predicted in enumerate(self.labels)
        }


@dataclass
class HoldoutResult:
    train_size: int
    test_size: int
    accuracy: float
    confusion: ConfusionMatrix
    per_label: list[LabelMetrics]


@dataclass
class FoldResult:
    fold: int
    train_size: int
    test_size: int
    accuracy: float


def train_model(examples: Sequence[TrainingExample]) -> NaiveBayesClassifier:
    """Обучает новую, ни с чем не связанную модель."""
    model = NaiveBayesClassifier()
    model.learn_many(examples)
    return model


def predict_labels(
    model: NaiveBayesClassifier, examples: Sequence[TrainingExample]
) -> list[str]:
    return [model.categorize(example.text) or config.UNCATEGORIZED for example in examples]


def split_holdout(
    examples: Sequence[TrainingExample], train_fraction: float = config.TRAIN_FRACTION
) -> tuple[list[TrainingExample], list[TrainingExample]]:
    """Детерминированный сплит по порядку хранения, без перемешивания."""
    split_index = int(len(examples) * train_fraction)
    return list(examples[:split_index]), list(examples[split_index:])


def contiguous_folds(size: int, n_splits: int) -> list[tuple[np.ndarray, np.ndarray]]:
    """Индексы train/test для k последовательных фолдов."""
    return list(KFold(n_splits=n_splits, shuffle=False).split(np.arange(size)))


def score_predictions(
    y_true: Sequence[str], y_pred: Sequence[str], train_size: int = 0
) -> HoldoutResult:
    labels = sorted(set(y_true) | set(y_pred))
    accuracy = float(accuracy_score(y_true, y_pred)) if y_true else 0.0
    cm = confusion_matrix(y_true, y_pred, labels=labels)
    precision, recall, f1_per_class, support = precision_recall_fscore_support(
        y_true,
        y_pred,
        labels=labels,
        zero_division=0,
    )
    per_label = [
        LabelMetrics(
            label=label,
            precision=float(precision[idx]),
            recall=float(recall[idx]),
            f1=float(f1_per_class[idx]),
            support=int(support[idx]),
        )
        for idx, label in enumerate(labels)
    ]
    class_metrics = pd.DataFrame(
        {
            "Class": labels,
            "Precision": precision,
            "Recall": recall,
            "F1": f1_per_class,
            "Support": support,
        }
    )
    logger.info("Per-class metrics:\n%s", class_metrics.to_string(index=False))
    return HoldoutResult(
        train_size=train_size,
        test_size=len(y_true),
        accuracy=accuracy,
        confusion=ConfusionMatrix(labels=labels, matrix=cm.astype(int).tolist()),
        per_label=per_label,
    )


def evaluate_holdout(
    examples: Sequence[TrainingExample], train_fraction: float = config.TRAIN_FRACTION
) -> HoldoutResult:
    train_part, test_part = split_holdout(examples, train_fraction)
    model = train_model(train_part)
    y_true = [example.label for example in test_part]
    y_pred = predict_labels(model, test_part)
    result = score_predictions(y_true, y_pred, train_size=len(train_part))
    logger.info(
        "Holdout accuracy=%.3f (train=%d, test=%d)",
        result.accuracy,
        result.train_size,
        result.test_size,
    )
    return result


def evaluate_fold(
    examples: Sequence[TrainingExample],
    fold: int,
    train_index: np.ndarray,
    test_index: np.ndarray,
) -> FoldResult:
    train_part = [examples[i] for i in train_index]
    test_part = [examples[i] for i in test_index]
    model = train_model(train_part)
    y_true = [example.label for example in test_part]
    y_pred = predict_labels(model, test_part)
    accuracy = float(accuracy_score(y_true, y_pred)) if y_true else 0.0
    logger.info("Fold %d accuracy=%.3f", fold, accuracy)
    return FoldResult(
        fold=fold,
        train_size=len(train_part),
        test_size=len(test_part),
        accuracy=accuracy,
    )
