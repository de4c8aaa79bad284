import asyncio
import logging
from datetime import datetime, timezone

import numpy as np
from dishka import Provider, Scope, provide

from app.schemas import ml as ml_schemas
from app.services.errors import InsufficientDataError, ValidationError
from app.services.transactions import TransactionRepository
from app.settings.ml import ModelSettings
from category_classifier import TrainingExample
from category_classifier.evaluation import (
    contiguous_folds,
    evaluate_fold,
    evaluate_holdout,
)

logger = logging.getLogger(__name__)


class ModelEvaluationEngine:
    """
    Оценка качества на одноразовых моделях.

    Каждая модель строится с нуля из выборки транзакций и выбрасывается после
    подсчёта метрик, поэтому оценка не пересекается с боевым
    CategoryClassifierService и может идти параллельно с обучением.
    """

    def __init__(self, transactions: TransactionRepository, settings: ModelSettings):
        self.transactions = transactions
        self.settings = settings

    async def _sample(self, sample_cap: int | None) -> list[TrainingExample]:
        cap = sample_cap or self.settings.evaluation_sample_cap
        examples = await self.transactions.labelled_sample(cap)
        logger.info("Fetched %d labelled transactions (cap=%d)", len(examples), cap)
        return examples

    async def evaluate(self, sample_cap: int | None = None) -> ml_schemas.EvaluationReport:
        examples = await self._sample(sample_cap)
        minimum = self.settings.min_evaluation_samples
        if len(examples) < minimum:
            raise InsufficientDataError(
                f"Для оценки нужно минимум {minimum} транзакций, найдено {len(examples)}"
            )

        result = evaluate_holdout(examples, self.settings.train_fraction)
        report = ml_schemas.EvaluationReport(
            sample_size=len(examples),
            train_size=result.train_size,
            test_size=result.test_size,
            accuracy=result.accuracy,
            per_class=[
                ml_schemas.PerClassMetric(
                    category=metric.label,
                    precision=metric.precision,
                    recall=metric.recall,
                    f1=metric.f1,
                    support=metric.support,
                )
                for metric in result.per_label
            ],
            confusion_matrix=ml_schemas.ConfusionMatrixBlock(
                labels=result.confusion.labels,
                matrix=result.confusion.matrix,
            ),
            evaluated_at=datetime.now(timezone.utc),
        )
        self._save_report(report)
        return report

    def _save_report(self, report: ml_schemas.EvaluationReport) -> None:
        report_path = self.settings.report_path
        try:
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Failed to write evaluation report to %s", report_path)
            return
        logger.info("Evaluation report saved to %s", report_path)

    async def cross_validate(
        self, k: int | None = None, sample_cap: int | None = None
    ) -> ml_schemas.CrossValidationReport:
        k = k if k is not None else self.settings.cv_folds
        if k < 2:
            raise ValidationError("Число фолдов должно быть не меньше 2")

        examples = await self._sample(sample_cap)
        if len(examples) < 2 * k:
            raise InsufficientDataError(
                f"Для {k}-fold нужно минимум {2 * k} транзакций, найдено {len(examples)}"
            )

        folds: list[ml_schemas.FoldMetric] = []
        for fold, (train_index, test_index) in enumerate(
            contiguous_folds(len(examples), k), start=1
        ):
            # cancellation point between folds
            await asyncio.sleep(0)
            result = evaluate_fold(examples, fold, train_index, test_index)
            folds.append(
                ml_schemas.FoldMetric(
                    fold=result.fold,
                    train_size=result.train_size,
                    test_size=result.test_size,
                    accuracy=result.accuracy,
                )
            )

        accuracies = np.array([fold.accuracy for fold in folds])
        logger.info(
            "%d-fold CV accuracy: %.3f ± %.3f", k, accuracies.mean(), accuracies.std()
        )
        return ml_schemas.CrossValidationReport(
            k=k,
            sample_size=len(examples),
            folds=folds,
            mean_accuracy=float(accuracies.mean()),
            std_accuracy=float(accuracies.std()),
        )


class EvaluationServicesProvider(Provider):
    scope = Scope.REQUEST

    engine = provide(ModelEvaluationEngine)
