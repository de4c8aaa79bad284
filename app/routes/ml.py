import json
import logging

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, HTTPException, status

from app.schemas import ml as ml_schemas
from app.services.ml.evaluation import ModelEvaluationEngine
from app.services.ml.service import CategoryClassifierService
from app.settings.ml import ModelSettings

router = APIRouter(prefix="/ml", tags=["ml"], route_class=DishkaRoute)
logger = logging.getLogger(__name__)


@router.get("/status")
async def classifier_status(
    classifier: FromDishka[CategoryClassifierService],
) -> ml_schemas.ClassifierStatus:
    return classifier.status()


@router.post("/train")
async def train_classifier(
    classifier: FromDishka[CategoryClassifierService],
) -> ml_schemas.TrainingResult:
    """Переобучает модель на всех транзакциях. 409, если обучение уже идёт."""
    return await classifier.train()


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_classifier(
    classifier: FromDishka[CategoryClassifierService],
) -> None:
    await classifier.reset()


@router.post("/predict")
async def predict_category(
    data: ml_schemas.PredictRequest,
    classifier: FromDishka[CategoryClassifierService],
) -> ml_schemas.PredictResponse:
    prediction = await classifier.explain(data.description, data.type)
    return ml_schemas.PredictResponse(
        category=prediction.category, proba=prediction.proba
    )


@router.post("/evaluate")
async def evaluate_classifier(
    engine: FromDishka[ModelEvaluationEngine],
    data: ml_schemas.EvaluateRequest | None = None,
) -> ml_schemas.EvaluationReport:
    """Holdout-оценка на одноразовой модели, боевую модель не трогает."""
    return await engine.evaluate(data.sample_cap if data else None)


@router.post("/cross-validate")
async def cross_validate_classifier(
    engine: FromDishka[ModelEvaluationEngine],
    data: ml_schemas.CrossValidateRequest | None = None,
) -> ml_schemas.CrossValidationReport:
    data = data or ml_schemas.CrossValidateRequest()
    return await engine.cross_validate(data.k, data.sample_cap)


@router.get(
    "/report",
    summary="Последний отчёт holdout-оценки",
)
async def get_evaluation_report(
    settings: FromDishka[ModelSettings],
) -> ml_schemas.EvaluationReport:
    """Возвращает json-отчёт, который сохраняется при каждой оценке модели."""
    report_path = settings.report_path
    if not report_path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="MODEL_REPORT_NOT_FOUND: запустите POST /ml/evaluate, чтобы построить отчёт.",
        )
    try:
        payload = json.loads(report_path.read_text(encoding="utf-8"))
        return ml_schemas.EvaluationReport.model_validate(payload)
    except (OSError, ValueError) as exc:
        logger.exception("Failed to read evaluation report: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"FAILED_TO_READ_REPORT: {exc}",
        )
