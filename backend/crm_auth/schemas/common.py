"""Shared response envelope."""
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(CamelModel, Generic[T]):
    """Successful response."""

    success: bool = True
    data: T


class ErrorEnvelope(BaseModel):
    """Error response."""

    success: bool = False
    error: str
    code: str


class MessageResponse(CamelModel):
    """Generic message response."""

    message: str
