"""
도서 교환 API 라우터

공개 엔드포인트:
- GET /exchange/books/{book_id}/value: 도서 가치 및 산정 내역

사용자 엔드포인트 (Bearer 토큰 필요):
- GET /exchange/books/{book_id}/requested: 내가 이 도서를 요청 중인지
- POST /exchange/requests: 교환 요청 (포인트 예약)
- POST /exchange/requests/{id}/accept|decline|complete: 소유자 처리
- POST /exchange/requests/{id}/cancel: 요청자 취소
- GET /exchange/requests/incoming|outgoing: 받은/보낸 요청 목록
- GET /exchange/requests/counts: 대기 중 요청 수
"""

import logging
from typing import List, Optional

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Path, Query

from bookswap.containers import Container
from bookswap.core.auth_middleware import get_current_active_user
from bookswap.models.book_request import BookRequestStatus
from bookswap.schemas.exchange import (
    AcceptRequestResponse,
    BookRequestCreate,
    BookRequestDetail,
    BookValueResponse,
    CompleteExchangeResponse,
    HasRequestedResponse,
    RequestActionResponse,
    RequestBookResponse,
    RequestCountsResponse,
)
from bookswap.schemas.user import User as UserSchema
from bookswap.services.exchange_service import ExchangeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exchange", tags=["exchange"])


@router.get("/books/{book_id}/value", response_model=BookValueResponse)
@inject
async def get_book_value(
    book_id: int = Path(..., gt=0),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> BookValueResponse:
    """도서 가치 조회 (인증 불필요, 캐시 사용)"""
    return exchange_service.get_book_value(book_id)


@router.get("/books/{book_id}/requested", response_model=HasRequestedResponse)
@inject
async def has_requested_book(
    book_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> HasRequestedResponse:
    return exchange_service.has_user_requested_book(book_id, current_user.id)


@router.post("/requests", response_model=RequestBookResponse, status_code=201)
@inject
async def request_book(
    payload: BookRequestCreate,
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> RequestBookResponse:
    """
    교환 요청 - 현재 산정 가치만큼 포인트를 예약

    HTTP Status:
        201: 요청 생성
        400: 교환 불가/본인 도서/중복/파밍 감지/잔액 부족
        404: 도서 없음
    """
    return exchange_service.create_request(
        requester_id=current_user.id,
        book_id=payload.book_id,
        message=payload.message,
    )


@router.post("/requests/{request_id}/accept", response_model=AcceptRequestResponse)
@inject
async def accept_request(
    request_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> AcceptRequestResponse:
    """요청 수락 - 같은 도서의 다른 대기 요청은 자동 거절/환불"""
    return exchange_service.accept_request(request_id, current_user.id)


@router.post("/requests/{request_id}/decline", response_model=RequestActionResponse)
@inject
async def decline_request(
    request_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> RequestActionResponse:
    return exchange_service.decline_request(request_id, current_user.id)


@router.post("/requests/{request_id}/complete", response_model=CompleteExchangeResponse)
@inject
async def complete_exchange(
    request_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> CompleteExchangeResponse:
    """인계 완료 확인 - 소유권 이전 및 포인트 지급"""
    return exchange_service.complete_exchange(request_id, current_user.id)


@router.post("/requests/{request_id}/cancel", response_model=RequestActionResponse)
@inject
async def cancel_request(
    request_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> RequestActionResponse:
    return exchange_service.cancel_request(request_id, current_user.id)


@router.get("/requests/incoming", response_model=List[BookRequestDetail])
@inject
async def get_incoming_requests(
    status: Optional[BookRequestStatus] = Query(None),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> List[BookRequestDetail]:
    return exchange_service.get_incoming_requests(current_user.id, status)


@router.get("/requests/outgoing", response_model=List[BookRequestDetail])
@inject
async def get_outgoing_requests(
    status: Optional[BookRequestStatus] = Query(None),
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> List[BookRequestDetail]:
    return exchange_service.get_outgoing_requests(current_user.id, status)


@router.get("/requests/counts", response_model=RequestCountsResponse)
@inject
async def get_request_counts(
    current_user: UserSchema = Depends(get_current_active_user),
    exchange_service: ExchangeService = Depends(
        Provide[Container.services.exchange_service]
    ),
) -> RequestCountsResponse:
    return exchange_service.get_request_counts(current_user.id)
