from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

RESULT_COMPLETED = "Task completed successfully!"
ERROR_FAILED = "Simulated internal processing error during execution."
ERROR_DELETED = "Task explicitly deleted by user request."


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"  # marker only, the worker finalizes it
    DELETED_BY_USER = "deleted_by_user"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.DELETED_BY_USER})


class TaskRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    status: TaskStatus = TaskStatus.PENDING
    creation_time: datetime
    start_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    processing_duration: Optional[float] = None  # seconds
    result: Optional[str] = None
    error: Optional[str] = None

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
