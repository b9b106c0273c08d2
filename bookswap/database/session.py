from contextlib import contextmanager
from bookswap.database.connection import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context():
    """컨텍스트 매니저를 사용한 데이터베이스 세션 관리"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def atomic(db):
    """요청 스코프 세션 위에서 하나의 원자 단위를 실행

    블록이 정상 종료되면 commit, 예외가 나면 rollback 후 그대로 다시 던진다.
    잔액 변경과 원장 행 추가는 항상 같은 블록 안에서 일어나야 한다.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
