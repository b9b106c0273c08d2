from unittest.mock import Mock

import pytest

from bookswap.core.exceptions import NotFoundError
from bookswap.models import BookCondition, BookRequestStatus
from bookswap.repositories.book_request_repository import BookRequestRepository
from bookswap.services.redis_service import RedisService
from bookswap.services.valuation_service import (
    ValuationService,
    calculate_points,
    demand_multiplier,
    rarity_multiplier,
)


class TestCalculatePoints:
    """가치 산정 순수 함수 테스트"""

    def test_single_good_copy_without_demand(self):
        result = calculate_points(50, BookCondition.GOOD, copies_in_system=1, pending_requests=0)

        assert result.points == 75
        assert result.breakdown.condition_multiplier == 1.0
        assert result.breakdown.rarity_multiplier == 1.5
        assert result.breakdown.demand_multiplier == 1.0
        assert result.breakdown.final_points == 75
        assert result.breakdown.condition_label == "Good"

    def test_all_multipliers_combined(self):
        # 50 * 1.5 * 1.15 * 1.05 = 90.5625
        result = calculate_points(50, BookCondition.NEW, copies_in_system=4, pending_requests=2)
        assert result.points == 91

    def test_half_rounds_up(self):
        # 50 * 0.7 * 1.5 = 52.5
        result = calculate_points(50, BookCondition.ACCEPTABLE, copies_in_system=1, pending_requests=0)
        assert result.points == 53

    def test_unknown_condition_defaults_to_one(self):
        result = calculate_points(50, "MINT", copies_in_system=1, pending_requests=0)
        assert result.points == 75
        assert result.breakdown.condition_multiplier == 1.0

    @pytest.mark.parametrize(
        "copies,expected",
        [(0, 1.5), (1, 1.5), (2, 1.3), (3, 1.3), (4, 1.15), (5, 1.15), (6, 1.0), (10, 1.0), (11, 0.85)],
    )
    def test_rarity_thresholds(self, copies, expected):
        assert float(rarity_multiplier(copies)) == expected

    @pytest.mark.parametrize(
        "pending,expected",
        [(0, 1.0), (1, 1.05), (2, 1.05), (3, 1.15), (4, 1.15), (5, 1.3), (9, 1.3), (10, 1.5)],
    )
    def test_demand_thresholds(self, pending, expected):
        assert float(demand_multiplier(pending)) == expected


class TestValuationService:
    def test_dune_example(self, valuation_service, make_user, make_book):
        owner = make_user()
        dune = make_book(owner, title="Dune", author="Frank Herbert")

        result = valuation_service.compute_value(dune)

        assert result.points == 75
        assert result.breakdown.copies_in_system == 1
        assert result.breakdown.pending_requests == 0

    def test_similar_books_match_case_insensitive_substring(
        self, valuation_service, make_user, make_book
    ):
        owner = make_user()
        dune = make_book(owner, title="Dune", author="Frank Herbert")
        make_book(owner, title="DUNE Messiah", author="frank herbert")
        make_book(owner, title="Dune", author="Frank Herbert", is_available=False)
        make_book(owner, title="Foundation", author="Isaac Asimov")

        result = valuation_service.compute_value(dune)

        assert result.breakdown.copies_in_system == 2
        assert result.breakdown.rarity_multiplier == 1.3
        assert result.points == 65

    def test_wildcards_in_title_are_literal(self, valuation_service, make_user, make_book):
        owner = make_user()
        book = make_book(owner, title="100%", author="A_B")
        make_book(owner, title="1000 Nights", author="AxB")

        result = valuation_service.compute_value(book)

        assert result.breakdown.copies_in_system == 1

    def test_pending_requests_on_similar_books_raise_demand(
        self, db_session, valuation_service, make_user, make_book
    ):
        owner = make_user()
        dune = make_book(owner, title="Dune", author="Frank Herbert")
        other = make_book(owner, title="Dune Messiah", author="Frank Herbert", is_available=False)
        repo = BookRequestRepository(db_session)
        for book in (dune, other, other):
            repo.create_request(book.id, make_user().id, owner.id, 10, None)
        declined = repo.create_request(dune.id, make_user().id, owner.id, 10, None)
        repo.transition(declined.id, BookRequestStatus.PENDING, BookRequestStatus.DECLINED)
        db_session.commit()

        result = valuation_service.compute_value(dune)

        assert result.breakdown.pending_requests == 3
        assert result.breakdown.demand_multiplier == 1.15

    def test_compute_value_is_deterministic(self, valuation_service, make_user, make_book):
        owner = make_user()
        dune = make_book(owner)

        first = valuation_service.compute_value(dune)
        second = valuation_service.compute_value(dune)

        assert first == second

    def test_get_book_value_refreshes_point_value(
        self, db_session, valuation_service, make_user, make_book
    ):
        owner = make_user()
        dune = make_book(owner)
        assert dune.point_value is None

        result = valuation_service.get_book_value(dune.id)

        assert result.points == 75
        assert valuation_service.book_repo.get_by_id(dune.id).point_value == 75

    def test_get_book_value_missing_book(self, valuation_service):
        with pytest.raises(NotFoundError):
            valuation_service.get_book_value(999)


class TestValuationCache:
    def test_cache_miss_stores_entry(self, db_session, settings, make_user, make_book):
        redis_service = Mock(spec=RedisService)
        redis_service.get.return_value = None
        service = ValuationService(db_session, settings, redis_service=redis_service)
        dune = make_book(make_user())

        result = service.get_book_value(dune.id)

        redis_service.set.assert_called_once_with(
            f"bookswap:valuation:{dune.id}",
            result.model_dump(),
            settings.VALUATION_CACHE_TTL_SECONDS,
        )

    def test_cache_hit_skips_computation(self, db_session, settings):
        cached = calculate_points(50, BookCondition.NEW, 1, 0)
        redis_service = Mock(spec=RedisService)
        redis_service.get.return_value = cached.model_dump()
        service = ValuationService(db_session, settings, redis_service=redis_service)

        # 캐시 적중 시 도서 조회조차 하지 않음
        result = service.get_book_value(12345)

        assert result == cached
        redis_service.set.assert_not_called()

    def test_malformed_cache_entry_is_recomputed(self, db_session, settings, make_user, make_book):
        redis_service = Mock(spec=RedisService)
        redis_service.get.return_value = {"unexpected": True}
        service = ValuationService(db_session, settings, redis_service=redis_service)
        dune = make_book(make_user())

        assert service.get_book_value(dune.id).points == 75

    def test_invalidate_deletes_key(self, db_session, settings):
        redis_service = Mock(spec=RedisService)
        service = ValuationService(db_session, settings, redis_service=redis_service)

        service.invalidate(7)

        redis_service.delete.assert_called_once_with("bookswap:valuation:7")
