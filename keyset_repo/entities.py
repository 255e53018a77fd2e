from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel
from pydantic.config import ConfigDict


class BaseEntity(BaseModel):
    """Base entity class for all database models.

    Ids are assigned by the database (auto-increment), so a new entity has
    no id until it was created.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        use_enum_values=True, validate_assignment=True
    )
    id: int | None = None


class UpdateModel(BaseModel):
    """Base class for closed update field sets. Unknown keys fail validation."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


def is_descending(direction: Any) -> bool:
    """Only a case-insensitive 'desc' means descending; anything else is ascending."""
    if isinstance(direction, Enum):
        direction = direction.value
    return isinstance(direction, str) and direction.lower() == "desc"
