"""Storage models shared by API, client and persistence backends."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Priority = Literal["low", "normal", "high"]


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class UserRecord(BaseModel):
    """Principal row created by the identity provider."""

    id: str
    is_anonymous: bool = True
    created_at: datetime


class TaskRecord(BaseModel):
    """Persisted task row."""

    id: str
    owner: str
    title: str
    description: str | None = None
    priority: Priority = "normal"
    due_date: date | None = None
    is_complete: bool = False
    created_at: datetime


class NewTask(StrictModel):
    """Insert payload. `owner` is checked against the caller by the insert policy."""

    owner: str | None = None
    title: str = Field(min_length=1)
    description: str | None = None
    priority: Priority = "normal"
    due_date: date | None = None
    is_complete: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class TaskChanges(StrictModel):
    """Partial update payload; `owner`, `id` and `created_at` are not updatable."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    priority: Priority | None = None
    due_date: date | None = None
    is_complete: bool | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _reject_nulls_for_required_columns(self) -> "TaskChanges":
        for name in ("title", "priority", "is_complete"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def as_update(self) -> dict[str, object]:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)
