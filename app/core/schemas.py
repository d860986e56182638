"""Shared schema bases for billing request and response bodies."""

from typing import Generic, List, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serialises as camelCase (amountPaid) and accepts either camelCase or snake_case input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Page(CamelModel, Generic[T]):
    items: List[T]
    total: int
    limit: int
    offset: int
