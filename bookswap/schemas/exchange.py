from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bookswap.models.book import BookCondition
from bookswap.models.book_request import BookRequestStatus


class BookValueBreakdown(BaseModel):
    """가치 산정 내역"""

    base_points: int
    condition_multiplier: float
    condition_label: str
    rarity_multiplier: float
    copies_in_system: int
    demand_multiplier: float
    pending_requests: int
    final_points: int


class BookValueResponse(BaseModel):
    points: int
    breakdown: BookValueBreakdown


class BookRequestCreate(BaseModel):
    book_id: int = Field(..., gt=0)
    message: Optional[str] = Field(None, max_length=500)


class BookRequest(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_id: int
    requester_id: int
    owner_id: int
    points_offered: int
    message: Optional[str] = None
    status: BookRequestStatus
    created_at: Optional[datetime] = None


class BookSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    author: str
    condition: BookCondition


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nickname: str


class BookRequestDetail(BookRequest):
    """목록 조회용 - 도서/상대방 정보 포함"""

    book: BookSummary
    counterpart: UserSummary


class RequestBookResponse(BaseModel):
    request: BookRequest
    points_spent: int
    message: str


class RequestActionResponse(BaseModel):
    success: bool = True
    request: BookRequest
    message: str


class AcceptRequestResponse(RequestActionResponse):
    declined_request_ids: List[int] = Field(default_factory=list)
    failed_sibling_ids: List[int] = Field(default_factory=list)


class CompleteExchangeResponse(RequestActionResponse):
    points_earned: int


class HasRequestedResponse(BaseModel):
    has_requested: bool
    request_status: Optional[BookRequestStatus] = None
    request_id: Optional[int] = None


class RequestCountsResponse(BaseModel):
    pending_incoming: int
    pending_outgoing: int
    accepted_incoming: int
