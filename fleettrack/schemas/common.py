from typing import Literal

from pydantic import BaseModel, Field

SortOrder = Literal["asc", "desc"]


class PageParams(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
