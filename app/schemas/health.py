from datetime import datetime

from app.schemas.base import BaseSchema
from typing import Literal


class JobSchema(BaseSchema):
    id: str
    name: str
    next_run_time: datetime | None = None


class HealthSchema(BaseSchema):
    status: Literal["ok", "error"]
    classifier_ready: bool
    jobs: list[JobSchema]
