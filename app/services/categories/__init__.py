import logging
from uuid import UUID

from dishka import Provider, Scope, provide
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.category import Category
from app.models.enums import TransactionType

logger = logging.getLogger(__name__)


class CategoryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, category_id: UUID) -> Category | None:
        return await self.session.get(Category, category_id)

    async def find_by_name_type(
        self, name: str, category_type: TransactionType
    ) -> Category | None:
        query = (
            select(Category)
            .where(
                func.lower(Category.name) == name.lower(),
                Category.type == category_type,
            )
            .limit(1)
        )
        return await self.session.scalar(query)

    async def create(self, category: Category) -> Category:
        async with self.session.begin_nested():
            self.session.add(category)
        return category


class CategoryResolver:
    """Находит категорию по предсказанной метке или создаёт новую."""

    def __init__(self, categories: CategoryRepository):
        self.categories = categories

    async def resolve(self, label: str, category_type: TransactionType) -> Category:
        existing = await self.categories.find_by_name_type(label, category_type)
        if existing is not None:
            return existing

        category = Category(
            name=label.lower(),
            type=category_type,
            description=f"Auto-generated category for {label}",
        )
        try:
            await self.categories.create(category)
        except IntegrityError:
            logger.info(
                "Category %r (%s) was created concurrently, re-reading", label, category_type
            )
            existing = await self.categories.find_by_name_type(label, category_type)
            if existing is None:
                raise
            return existing
        logger.info("Auto-created category %r (%s)", category.name, category_type)
        return category


class CategoryServicesProvider(Provider):
    scope = Scope.REQUEST

    repository = provide(CategoryRepository)
    resolver = provide(CategoryResolver)
