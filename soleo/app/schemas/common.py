"""Response envelope shared by every endpoint."""
from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None

    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    success: bool = True
    message: str

    model_config = ConfigDict(populate_by_name=True)


class PageInfo(BaseModel):
    total: int
    current_page: int = Field(alias="currentPage")
    total_pages: int = Field(alias="totalPages")
    limit: int

    model_config = ConfigDict(populate_by_name=True)
