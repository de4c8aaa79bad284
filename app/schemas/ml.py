"""Pydantic-схемы ответов API для ML."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import TransactionType


class APIModel(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), from_attributes=True)


class ClassifierStatus(APIModel):
    is_ready: bool
    state: str
    last_trained_at: Optional[datetime] = None
    model_path: str
    model_exists: bool
    backup_path: str
    backup_exists: bool
    total_categories: int


class TrainingResult(APIModel):
    trained: bool
    examples: int = 0
    categories: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    persisted: bool = False
    last_trained_at: Optional[datetime] = None


class PerClassMetric(APIModel):
    category: str
    precision: float
    recall: float
    f1: float
    support: int


class ConfusionMatrixBlock(APIModel):
    labels: List[str]
    matrix: List[List[int]]


class EvaluationReport(APIModel):
    sample_size: int
    train_size: int
    test_size: int
    accuracy: float
    per_class: List[PerClassMetric]
    confusion_matrix: ConfusionMatrixBlock
    evaluated_at: datetime


class FoldMetric(APIModel):
    fold: int
    train_size: int
    test_size: int
    accuracy: float


class CrossValidationReport(APIModel):
    k: int
    sample_size: int
    folds: List[FoldMetric]
    mean_accuracy: float
    std_accuracy: float


class EvaluateRequest(APIModel):
    sample_cap: Optional[int] = Field(default=None, ge=1)


class CrossValidateRequest(APIModel):
    k: Optional[int] = None
    sample_cap: Optional[int] = Field(default=None, ge=1)


class PredictRequest(APIModel):
    description: str = Field(min_length=1, max_length=1024)
    type: TransactionType


class PredictResponse(APIModel):
    category: str
    proba: Dict[str, float]
