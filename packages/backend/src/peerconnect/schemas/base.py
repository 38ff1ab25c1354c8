"""Shared schema building blocks.

Learn: the public API speaks camelCase (firstName, topicIds, ...) while
Python code stays snake_case. alias_generator=to_camel maps one onto the
other; populate_by_name lets tests and services build models with either
spelling, and FastAPI serializes responses by alias.
"""

import re
import uuid
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

UUID_V4 = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)

MIN_TOPICS = 3
MAX_TOPICS = 5


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_topic_ids(value: Any) -> Any:
    """Onboarding topic selection: 3 to 5 distinct-looking v4 UUIDs.

    Count is checked before format, so ["x"] reports the count problem.
    """
    if not isinstance(value, list):
        raise PydanticCustomError("topic_ids_type", "Topic IDs must be an array")
    if len(value) < MIN_TOPICS:
        raise PydanticCustomError("topic_ids_min", "You must select at least 3 topics")
    if len(value) > MAX_TOPICS:
        raise PydanticCustomError("topic_ids_max", "You can select at most 5 topics")
    for item in value:
        if not isinstance(item, str) or not UUID_V4.fullmatch(item):
            raise PydanticCustomError(
                "topic_ids_uuid", "Each topic ID must be a valid UUID"
            )
    return value


TopicIds = Annotated[list[uuid.UUID], BeforeValidator(_check_topic_ids)]


class MessageResponse(CamelModel):
    message: str


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=-(-total // limit))
