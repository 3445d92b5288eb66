import uuid
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from app.utils.datetime_utils import to_utc


class CamelCaseBaseModel(BaseModel):
    """
    Base model for every request and response body.

    Clients send and receive camelCase keys while the code works with
    snake_case attributes. Dump with ``model_dump(by_alias=True)`` to get the
    wire shape. Timestamps are stored as naive UTC, so datetimes are always
    rendered with an explicit UTC offset.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        if value is None or isinstance(value, (str, bool, int, float)):
            return value

        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        if isinstance(value, datetime):
            return to_utc(value).isoformat()

        if isinstance(value, date):
            return value.isoformat()

        if isinstance(value, Enum):
            return value.value

        if isinstance(value, uuid.UUID):
            return str(value)

        if isinstance(value, dict):
            return {key: self.serialize_any(item) for key, item in value.items()}

        if isinstance(value, (list, tuple, set)):
            return [self.serialize_any(item) for item in value]

        return str(value)
