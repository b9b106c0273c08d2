from typing import List

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Path

from bookswap.containers import Container
from bookswap.core.auth_middleware import get_current_active_user
from bookswap.schemas.book import (
    Book,
    BookAvailabilityUpdate,
    BookCreate,
    BookListingResponse,
)
from bookswap.schemas.user import User as UserSchema
from bookswap.services.book_service import BookService

router = APIRouter(prefix="/books", tags=["books"])


@router.post("/", response_model=BookListingResponse, status_code=201)
@inject
async def list_book(
    payload: BookCreate,
    current_user: UserSchema = Depends(get_current_active_user),
    book_service: BookService = Depends(Provide[Container.services.book_service]),
) -> BookListingResponse:
    """도서 등록 - 등록 보상 포인트 지급"""
    return book_service.list_book(
        owner_id=current_user.id,
        title=payload.title,
        author=payload.author,
        condition=payload.condition,
        digital_id=payload.digital_id,
    )


@router.get("/mine", response_model=List[Book])
@inject
async def get_my_books(
    current_user: UserSchema = Depends(get_current_active_user),
    book_service: BookService = Depends(Provide[Container.services.book_service]),
) -> List[Book]:
    return book_service.get_my_books(current_user.id)


@router.get("/{book_id}", response_model=Book)
@inject
async def get_book(
    book_id: int = Path(..., gt=0),
    book_service: BookService = Depends(Provide[Container.services.book_service]),
) -> Book:
    return book_service.get_book(book_id)


@router.patch("/{book_id}/availability", response_model=Book)
@inject
async def set_book_availability(
    payload: BookAvailabilityUpdate,
    book_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_active_user),
    book_service: BookService = Depends(Provide[Container.services.book_service]),
) -> Book:
    return book_service.set_availability(book_id, current_user.id, payload.is_available)
