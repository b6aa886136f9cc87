"""Shared response building blocks."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

ItemT = TypeVar("ItemT")


class BaseResponse(BaseModel):
    # Responses are built straight from ORM rows and service dataclasses
    model_config = ConfigDict(from_attributes=True)


class ListResponse(BaseModel, Generic[ItemT]):  # noqa: UP046
    items: list[ItemT]
    total: int
