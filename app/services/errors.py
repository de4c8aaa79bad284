class BaseServiceError(Exception):
    detail: str = "Неизвестная ошибка сервиса"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.detail
        super().__init__(self.detail)


class ValidationError(BaseServiceError):
    detail = "Некорректные входные данные"


class NotFoundError(BaseServiceError):
    detail = "Объект не найден"


class SaldoNotFoundError(NotFoundError):
    detail = "Saldo не найдено"


class TransactionNotFoundError(NotFoundError):
    detail = "Транзакция не найдена"


class CategoryNotFoundError(NotFoundError):
    detail = "Категория не найдена"


class InsufficientBalanceError(BaseServiceError):
    detail = "Недостаточно средств для этой транзакции"


class InsufficientDataError(BaseServiceError):
    detail = "Недостаточно данных для оценки модели"


class ModelCorruptError(BaseServiceError):
    detail = "Файл модели повреждён"


class PersistenceError(BaseServiceError):
    detail = "Не удалось сохранить модель на диск"


class TrainingInProgressError(BaseServiceError):
    detail = "Обучение модели уже выполняется"
