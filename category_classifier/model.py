import logging
import math
import re
from collections import Counter, defaultdict
from collections.abc import Iterable

from pydantic import BaseModel, ValidationError, model_validator

from category_classifier import config
from category_classifier.schemas import TrainingExample

logger = logging.getLogger(__name__)

__all__ = ["ModelFormatError", "NaiveBayesClassifier", "NaiveBayesState", "tokenize"]

TOKEN_PATTERN = re.compile(r"\w+")


class ModelFormatError(ValueError):
    """Сериализованное состояние модели пустое или повреждено."""


def tokenize(text: str) -> list[str]:
    return TOKEN_PATTERN.findall(text.lower())


class NaiveBayesState(BaseModel):
    """Текстовое (JSON) представление обученной модели."""

    format_version: int
    total_documents: int
    doc_count: dict[str, int]
    word_count: dict[str, int]
    word_frequency: dict[str, dict[str, int]]
    vocabulary: list[str]

    @model_validator(mode="after")
    def check_consistency(self) -> "NaiveBayesState":
        if self.format_version != config.FORMAT_VERSION:
            raise ValueError(
                f"Unsupported model format version: {self.format_version}"
            )
        labels = set(self.doc_count)
        if labels != set(self.word_count) or labels != set(self.word_frequency):
            raise ValueError("Label tables are inconsistent")
        if self.total_documents != sum(self.doc_count.values()):
            raise ValueError("total_documents does not match doc_count")
        return self


class NaiveBayesClassifier:
    """
    Мультиномиальный наивный байесовский классификатор на мешке слов.

    Модель хранит только частотные таблицы, поэтому её можно дообучать
    инкрементально (:meth:`learn`) и сериализовать в JSON (:meth:`dumps`).
    Вероятность слова считается со сглаживанием Лапласа:
    ``(freq(word, label) + 1) / (word_count(label) + |vocabulary|)``.
    """

    def __init__(self) -> None:
        self.total_documents = 0
        self.doc_count: Counter[str] = Counter()
        self.word_count: Counter[str] = Counter()
        self.word_frequency: defaultdict[str, Counter[str]] = defaultdict(Counter)
        self.vocabulary: set[str] = set()

    @property
    def labels(self) -> list[str]:
        return sorted(self.doc_count)

    @property
    def is_empty(self) -> bool:
        return self.total_documents == 0

    def learn(self, text: str, label: str) -> None:
        tokens = Counter(tokenize(text))
        self.total_documents += 1
        self.doc_count[label] += 1
        frequencies = self.word_frequency[label]
        self.word_count.setdefault(label, 0)
        for token, count in tokens.items():
            self.vocabulary.add(token)
            frequencies[token] += count
            self.word_count[label] += count

    def learn_many(self, examples: Iterable[TrainingExample]) -> int:
        learned = 0
        for example in examples:
            self.learn(example.text, example.label)
            learned += 1
        return learned

    def _log_scores(self, text: str) -> dict[str, float]:
        tokens = Counter(tokenize(text))
        vocabulary_size = len(self.vocabulary)
        scores: dict[str, float] = {}
        for label in self.labels:
            score = math.log(self.doc_count[label] / self.total_documents)
            denominator = (self.word_count[label] + vocabulary_size) or 1
            frequencies = self.word_frequency.get(label, Counter())
            for token, count in tokens.items():
                score += count * math.log((frequencies.get(token, 0) + 1) / denominator)
            scores[label] = score
        return scores

    def categorize(self, text: str) -> str | None:
        """Наиболее вероятная категория или ``None``, если модель пустая."""
        if self.is_empty:
            return None
        scores = self._log_scores(text)
        return max(scores, key=scores.__getitem__)

    def predict_proba(self, text: str) -> dict[str, float]:
        """Распределение вероятностей по всем известным категориям."""
        if self.is_empty:
            return {}
        scores = self._log_scores(text)
        top = max(scores.values())
        weights = {label: math.exp(score - top) for label, score in scores.items()}
        total = sum(weights.values())
        return {label: weight / total for label, weight in weights.items()}

    def to_state(self) -> NaiveBayesState:
        return NaiveBayesState(
            format_version=config.FORMAT_VERSION,
            total_documents=self.total_documents,
            doc_count={label: self.doc_count[label] for label in self.labels},
            word_count={label: self.word_count[label] for label in self.labels},
            word_frequency={
                label: dict(sorted(self.word_frequency[label].items()))
                for label in self.labels
            },
            vocabulary=sorted(self.vocabulary),
        )

    @classmethod
    def from_state(cls, state: NaiveBayesState) -> "NaiveBayesClassifier":
        classifier = cls()
        classifier.total_documents = state.total_documents
        classifier.doc_count.update(state.doc_count)
        classifier.word_count.update(state.word_count)
        for label, frequencies in state.word_frequency.items():
            classifier.word_frequency[label].update(frequencies)
        classifier.vocabulary.update(state.vocabulary)
        return classifier

    def dumps(self) -> str:
        return self.to_state().model_dump_json()

    @classmethod
    def loads(cls, payload: str) -> "NaiveBayesClassifier":
        if not payload.strip():
            raise ModelFormatError("Model payload is empty")
        try:
            state = NaiveBayesState.model_validate_json(payload)
        except ValidationError as exc:
            raise ModelFormatError(f"Malformed model payload: {exc}") from exc
        if state.total_documents == 0:
            raise ModelFormatError("Model payload holds no trained documents")
        classifier = cls.from_state(state)
        logger.debug(
            "Naive Bayes model restored: %d documents, %d labels",
            classifier.total_documents,
            len(classifier.labels),
        )
        return classifier
