from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookswap.models.book import BookCondition


class Book(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    digital_id: str
    title: str
    author: str
    condition: BookCondition
    owner_id: int
    is_available: bool
    point_value: Optional[int] = None
    created_at: Optional[datetime] = None


class BookCreate(BaseModel):
    """도서 등록 요청"""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=300)
    condition: BookCondition = BookCondition.GOOD
    digital_id: Optional[str] = Field(
        None, max_length=64, description="재등록 시 기존 실물 식별자"
    )

    @field_validator("title", "author")
    @classmethod
    def strip_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class BookAvailabilityUpdate(BaseModel):
    is_available: bool


class BookListingResponse(BaseModel):
    book: Book
    points_earned: int
    message: str
