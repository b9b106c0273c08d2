import pytest

from bookswap.core.exceptions import BusinessLogicError, ErrorCode, InsufficientBalanceError
from bookswap.models import BookRequestStatus


def _exchange(exchange_service, book, giver, receiver):
    created = exchange_service.create_request(receiver.id, book.id)
    exchange_service.accept_request(created.request.id, giver.id)
    exchange_service.complete_exchange(created.request.id, giver.id)
    return created


class TestAntiFarming:
    def test_requesting_back_from_receiver_is_circular(
        self, exchange_service, make_user, make_book, balance_of
    ):
        alice = make_user(points=100)
        xavier = make_user(points=100)
        book = make_book(alice)
        _exchange(exchange_service, book, alice, xavier)

        with pytest.raises(BusinessLogicError) as exc_info:
            exchange_service.create_request(alice.id, book.id)

        assert exc_info.value.error_code == ErrorCode.FARMING_CIRCULAR_EXCHANGE
        assert "Circular exchange detected" in exc_info.value.message
        assert balance_of(alice) == 175

    def test_relisted_copy_cannot_be_reclaimed(
        self, exchange_service, book_service, make_user, make_book
    ):
        alice = make_user()
        xavier = make_user(points=100)
        yolanda = make_user(points=100)
        original = make_book(alice, digital_id="COPY-D")
        _exchange(exchange_service, original, alice, xavier)
        _exchange(exchange_service, original, xavier, yolanda)

        relisted = book_service.list_book(
            owner_id=yolanda.id,
            title="Dune",
            author="Frank Herbert",
            digital_id="COPY-D",
        ).book

        with pytest.raises(BusinessLogicError) as exc_info:
            exchange_service.create_request(xavier.id, relisted.id)

        assert exc_info.value.error_code == ErrorCode.FARMING_PRIOR_OWNERSHIP
        assert exc_info.value.message.startswith("You have previously owned this book")

    def test_farming_checked_before_balance(self, exchange_service, make_user, make_book):
        alice = make_user()
        xavier = make_user(points=75)
        book = make_book(alice)
        _exchange(exchange_service, book, alice, xavier)
        # 대기 요청 1건으로 가치가 79 가 되어 alice(75) 는 잔액도 부족
        exchange_service.create_request(make_user(points=100).id, book.id)
        assert exchange_service.valuation_service.compute_value(book).points == 79

        with pytest.raises(BusinessLogicError) as exc_info:
            exchange_service.create_request(alice.id, book.id)
        assert exc_info.value.error_code == ErrorCode.FARMING_CIRCULAR_EXCHANGE

    def test_unrelated_users_pass(self, exchange_service, make_user, make_book):
        alice = make_user()
        xavier = make_user(points=100)
        zed = make_user(points=200)
        book = make_book(alice)
        _exchange(exchange_service, book, alice, xavier)

        created = exchange_service.create_request(zed.id, book.id)

        assert created.request.status == BookRequestStatus.PENDING
        assert created.request.owner_id == xavier.id

    def test_declined_history_does_not_block(self, exchange_service, make_user, make_book):
        alice = make_user()
        xavier = make_user(points=100)
        book = make_book(alice)
        created = exchange_service.create_request(xavier.id, book.id)
        exchange_service.decline_request(created.request.id, alice.id)

        again = exchange_service.create_request(xavier.id, book.id)

        assert again.request.status == BookRequestStatus.PENDING

    def test_rejection_has_no_side_effects(
        self, db_session, exchange_service, make_user, make_book, balance_of
    ):
        alice = make_user(points=500)
        xavier = make_user(points=100)
        book = make_book(alice)
        _exchange(exchange_service, book, alice, xavier)
        before = balance_of(alice)

        with pytest.raises(BusinessLogicError):
            exchange_service.create_request(alice.id, book.id)

        assert balance_of(alice) == before
        assert exchange_service.has_user_requested_book(book.id, alice.id).has_requested is False

    def test_insufficient_points_still_reported_for_clean_requests(
        self, exchange_service, make_user, make_book
    ):
        book = make_book(make_user())
        with pytest.raises(InsufficientBalanceError):
            exchange_service.create_request(make_user(points=10).id, book.id)
