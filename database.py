from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import ConsensusException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./consensus.db"
    log_level: str = "INFO"
    sql_echo: bool = False

    class Config:
        env_file = ".env"
        env_prefix = "CONSENSUS_"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True,
    echo=settings.sql_echo
)


def enable_sqlite_foreign_keys(target_engine):
    """
    SQLite 預設不檢查 foreign key，ondelete=CASCADE / SET NULL 都不會生效

    每條新連線都要下 PRAGMA foreign_keys=ON，移除成員時才會一起刪掉他的選票和完成紀錄
    """
    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if settings.database_url.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return kwargs.get('db')


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(self, db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            round_obj = Round(...)
            db.add(round_obj)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）
        - 業務規則異常（ConsensusException）只記 info，其他異常記 error + traceback

    注意：
        - db: Session 可以是任一個位置參數（instance method 的 self 之後）或 db= 關鍵字參數
        - 不要在函式內手動 commit（decorator 會處理）
        - 不要巢狀呼叫被裝飾的函式（內層會提早 commit）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except ConsensusException as e:
            logger.info(f"Transaction rejected in {func.__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
