"""
포인트 원장 API 라우터

사용자용 엔드포인트:
- GET /points/me: 내 포인트 현황 (잔액, 누적 적립/사용)
- GET /points/history: 내 거래 내역 (커서 기반)
- GET /points/integrity/my: 내 포인트 정합성 검증

관리자용 엔드포인트:
- POST /points/admin/bonus: 보너스 포인트 지급 (외부 충전 완료 등)
- GET /points/admin/integrity/global: 전체 정합성 검증
"""

import logging
from typing import Optional

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Query

from bookswap.containers import Container
from bookswap.core.auth_middleware import get_current_active_user, require_admin
from bookswap.schemas.points import (
    BonusPointsRequest,
    PointsIntegrityCheckResponse,
    PointsSummaryResponse,
    PointsTransactionResponse,
    TransactionHistoryResponse,
)
from bookswap.schemas.user import User as UserSchema
from bookswap.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/me", response_model=PointsSummaryResponse)
@inject
async def get_my_points(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsSummaryResponse:
    """
    내 포인트 현황

    - total_earned: 도서 등록/교환 완료로 얻은 포인트 (충전 제외)
    - total_spent: 차감된 포인트 절댓값 합
    """
    return point_service.get_points_summary(current_user.id)


@router.get("/history", response_model=TransactionHistoryResponse)
@inject
async def get_my_history(
    cursor: Optional[int] = Query(None, gt=0, description="이전 응답의 next_cursor"),
    limit: Optional[int] = Query(None, description="페이지 크기 (1~50, 기본 20)"),
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> TransactionHistoryResponse:
    return point_service.get_history(current_user.id, cursor=cursor, limit=limit)


@router.get("/integrity/my", response_model=PointsIntegrityCheckResponse)
@inject
async def verify_my_integrity(
    current_user: UserSchema = Depends(get_current_active_user),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_user_integrity(current_user.id)


@router.post("/admin/bonus", response_model=PointsTransactionResponse)
@inject
async def add_bonus_points(
    payload: BonusPointsRequest,
    admin_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsTransactionResponse:
    """보너스 지급 (관리자) - 결제 완료 웹훅 등 외부 충전 트리거가 호출"""
    logger.info(
        f"Admin {admin_user.id} granting {payload.points} bonus points to user {payload.user_id}"
    )
    return point_service.add_bonus_points(
        user_id=payload.user_id,
        points=payload.points,
        description=payload.description,
    )


@router.get("/admin/integrity/global", response_model=PointsIntegrityCheckResponse)
@inject
async def verify_global_integrity(
    admin_user: UserSchema = Depends(require_admin),
    point_service: PointService = Depends(Provide[Container.services.point_service]),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_global_integrity()
