import pytest

from bookswap.core.exceptions import NotFoundError
from bookswap.models import TransactionType, User
from bookswap.repositories.points_repository import PointsRepository


def _credit_many(db_session, user, amounts):
    repo = PointsRepository(db_session)
    for amount in amounts:
        repo.credit(user.id, amount, TransactionType.BONUS, f"bonus {amount}")
    db_session.commit()


class TestTransactionHistory:
    def test_pages_newest_first_with_cursor(self, db_session, point_service, make_user):
        user = make_user()
        _credit_many(db_session, user, [1, 2, 3, 4, 5])

        first = point_service.get_history(user.id, limit=2)
        assert [t.amount for t in first.transactions] == [5, 4]
        assert first.next_cursor == first.transactions[-1].id - 1

        second = point_service.get_history(user.id, cursor=first.next_cursor, limit=2)
        assert [t.amount for t in second.transactions] == [3, 2]

        last = point_service.get_history(user.id, cursor=second.next_cursor, limit=2)
        assert [t.amount for t in last.transactions] == [1]
        assert last.next_cursor is None

    def test_limit_is_clamped(self, db_session, point_service, make_user):
        user = make_user()
        _credit_many(db_session, user, range(1, 61))

        assert len(point_service.get_history(user.id, limit=0).transactions) == 1
        assert len(point_service.get_history(user.id, limit=500).transactions) == 50
        assert len(point_service.get_history(user.id).transactions) == 20

    def test_only_own_entries(self, db_session, point_service, make_user):
        alice = make_user(points=10)
        bob = make_user(points=20)

        history = point_service.get_history(alice.id)

        assert [t.user_id for t in history.transactions] == [alice.id]
        # 다른 사용자의 항목 id 를 커서로 써도 노출되지 않음
        foreign_cursor = point_service.get_history(bob.id).transactions[0].id
        assert point_service.get_history(alice.id, cursor=foreign_cursor).transactions == []


class TestPointsSummary:
    def test_bonus_excluded_from_earned(
        self, db_session, point_service, book_service, exchange_service, make_user
    ):
        owner = make_user()
        requester = make_user(points=100)
        listing = book_service.list_book(owner.id, "Dune", "Frank Herbert")
        created = exchange_service.create_request(requester.id, listing.book.id)
        exchange_service.accept_request(created.request.id, owner.id)
        exchange_service.complete_exchange(created.request.id, owner.id)

        owner_summary = point_service.get_points_summary(owner.id)
        requester_summary = point_service.get_points_summary(requester.id)

        assert owner_summary.total_earned == 10 + 75
        assert owner_summary.current_points == 85
        assert owner_summary.transaction_count == 2
        assert requester_summary.total_earned == 0
        assert requester_summary.total_spent == 75
        assert requester_summary.current_points == 25

    def test_unknown_user(self, point_service):
        with pytest.raises(NotFoundError):
            point_service.get_points_summary(42)


class TestBonusPoints:
    def test_bonus_credit_and_row(self, db_session, point_service, make_user):
        user = make_user(points=5)

        result = point_service.add_bonus_points(user.id, 1000)

        assert result.balance_after == 1005
        assert result.transaction.type == TransactionType.BONUS
        assert result.transaction.description == "Purchased 1,000 points"
        assert point_service.verify_user_integrity(user.id).status == "OK"

    def test_bonus_for_unknown_user_writes_nothing(self, db_session, point_service):
        with pytest.raises(NotFoundError):
            point_service.add_bonus_points(77, 100)
        assert PointsRepository(db_session).get_history(77, limit=10) == ([], None)


class TestIntegrity:
    def test_detects_balance_drift(self, db_session, point_service, make_user):
        healthy = make_user(points=30)
        drifted = make_user(points=30)
        db_session.query(User).filter(User.id == drifted.id).update(
            {User.points: 31}, synchronize_session=False
        )
        db_session.commit()

        assert point_service.verify_user_integrity(healthy.id).status == "OK"
        user_check = point_service.verify_user_integrity(drifted.id)
        assert user_check.status == "MISMATCH"
        assert user_check.calculated_balance == 30
        assert user_check.recorded_balance == 31

        global_check = point_service.verify_global_integrity()
        assert global_check.status == "MISMATCH"
        assert global_check.mismatched_user_ids == [drifted.id]
        assert global_check.user_count == 2

    def test_users_without_entries_are_consistent(self, point_service, make_user):
        make_user()
        assert point_service.verify_global_integrity().status == "OK"
