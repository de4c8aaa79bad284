from category_classifier.model import ModelFormatError, NaiveBayesClassifier
from category_classifier.schemas import (
    PredictionResponse,
    TrainingExample,
    build_input_text,
)
from category_classifier.config import UNCATEGORIZED

__all__ = [
    "ModelFormatError",
    "NaiveBayesClassifier",
    "PredictionResponse",
    "TrainingExample",
    "UNCATEGORIZED",
    "build_input_text",
]
