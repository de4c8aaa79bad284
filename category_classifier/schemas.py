from dataclasses import dataclass, field


def build_input_text(description: str, transaction_type: str) -> str:
    """Текст, по которому обучается и предсказывает классификатор."""
    return f"{description} {transaction_type}".lower()


@dataclass(frozen=True)
class TrainingExample:
    text: str
    label: str

    @classmethod
    def from_transaction(
        cls, description: str, transaction_type: str, label: str
    ) -> "TrainingExample":
        return cls(text=build_input_text(description, transaction_type), label=label)


@dataclass
class PredictionResponse:
    category: str
    proba: dict[str, float] = field(default_factory=dict)
