from pathlib import Path

from category_classifier import config as category_config
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ML_", protected_namespaces=())

    model_path: Path = category_config.MODEL_PATH
    backup_path: Path = category_config.BACKUP_MODEL_PATH
    report_path: Path = category_config.REPORT_PATH

    training_page_size: int = Field(default=category_config.TRAINING_PAGE_SIZE, ge=1)
    evaluation_sample_cap: int = Field(
        default=category_config.EVALUATION_SAMPLE_CAP, ge=1
    )
    min_evaluation_samples: int = Field(
        default=category_config.MIN_EVALUATION_SAMPLES, ge=1
    )
    train_fraction: float = Field(default=category_config.TRAIN_FRACTION, gt=0, lt=1)
    cv_folds: int = Field(default=category_config.CV_FOLDS, ge=2)
    retrain_interval_minutes: int = Field(default=0, ge=0)
